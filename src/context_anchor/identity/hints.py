"""AnchorHints and the deterministic anchor hash.

The anchor hash is computed from the *stable* hint fields only: project
path, workspace, support type and organization. Each non-empty field is
rendered as ``"<field>=<value>"``; the list is sorted and serialized as
compact JSON before hashing. Sorting makes the hash independent of field
order, and keeping the field name in each item stops the same value in
two different fields from colliding.
"""
from __future__ import annotations

import hashlib
import json

from pydantic import BaseModel, field_validator

from context_anchor.errors import InsufficientHintsError

STABLE_FIELDS: tuple[str, ...] = ("project_path", "workspace", "support_type", "organization")


class AnchorHints(BaseModel):
    """Everything a caller knows about the session it wants to resolve.

    Parameters
    ----------
    project_path:
        Filesystem or repository path the session works in.
    workspace:
        Workspace or tenant label.
    support_type:
        Category of support the session provides (e.g. ``"development"``).
    organization:
        Owning organization.
    anchor_id:
        Explicit anchor id. When set, it is looked up directly and the
        stable fields are ignored.
    session_id:
        The session being resolved.
    platform:
        Label of the platform the session runs on.
    """

    project_path: str | None = None
    workspace: str | None = None
    support_type: str | None = None
    organization: str | None = None
    anchor_id: str | None = None
    session_id: str | None = None
    platform: str | None = None

    @field_validator("*", mode="before")
    @classmethod
    def _blank_to_none(cls, value: object) -> object:
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    def stable_fields(self) -> dict[str, str]:
        """Return the non-empty stable fields."""
        return {
            name: getattr(self, name)
            for name in STABLE_FIELDS
            if getattr(self, name) is not None
        }


def canonical_anchor_fields(hints: AnchorHints) -> list[str]:
    """Return the sorted ``field=value`` list the anchor hash is built from."""
    return sorted(f"{name}={value}" for name, value in hints.stable_fields().items())


def compute_anchor_hash(hints: AnchorHints) -> str:
    """Compute the anchor hash for *hints*.

    Parameters
    ----------
    hints:
        Resolution hints. Only the stable fields contribute.

    Returns
    -------
    str
        Lower-case hex SHA-256 digest.

    Raises
    ------
    InsufficientHintsError
        If no stable field is set.
    """
    fields = canonical_anchor_fields(hints)
    if not fields:
        raise InsufficientHintsError()
    text = json.dumps(fields, separators=(",", ":"))
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


__all__ = ["AnchorHints", "STABLE_FIELDS", "canonical_anchor_fields", "compute_anchor_hash"]
