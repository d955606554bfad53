"""IdentityAnchor and SessionBinding records.

An anchor is the durable identity a stream of ephemeral sessions resolves
to. Anchors are never deleted; they only move between statuses, ending in
``retired``. A session binding links one session id to one anchor for the
lifetime of that session.
"""
from __future__ import annotations

import datetime
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from context_anchor.timeutil import format_ts as _format_ts
from context_anchor.timeutil import parse_ts as _parse_ts
from context_anchor.timeutil import utcnow as _utcnow

DEFAULT_TRUST_SCORE = 50.0
DEFAULT_TRUST_LEVEL = 3


class AnchorStatus(str, Enum):
    """Lifecycle status of an identity anchor."""

    ACTIVE = "active"
    DORMANT = "dormant"
    RETIRED = "retired"

    def can_transition_to(self, target: "AnchorStatus") -> bool:
        """Return True when moving from this status to *target* is allowed."""
        return target in _ALLOWED_TRANSITIONS[self]


_ALLOWED_TRANSITIONS: dict[AnchorStatus, frozenset[AnchorStatus]] = {
    AnchorStatus.ACTIVE: frozenset({AnchorStatus.DORMANT, AnchorStatus.RETIRED}),
    AnchorStatus.DORMANT: frozenset({AnchorStatus.ACTIVE, AnchorStatus.RETIRED}),
    AnchorStatus.RETIRED: frozenset(),
}


class AnchorIssuer(str, Enum):
    """Where an anchor's global identifier came from."""

    AUTHORITY = "authority"
    LOCAL = "local"


@dataclass
class IdentityAnchor:
    """The durable identity record a session resolves to.

    Parameters
    ----------
    anchor_id:
        Opaque global identifier, minted by the authority or generated locally.
    anchor_hash:
        Deterministic hash of the stable identifying fields.
    project_path, workspace, support_type, organization:
        The stable identifying fields the hash was computed from.
    trust_score:
        Continuous trust score in [0, 100].
    trust_level:
        Discrete trust level in [0, 5].
    status:
        Current lifecycle status.
    issuer:
        Whether ``anchor_id`` was issued by the authority or locally.
    current_sessions:
        Session ids with an open binding to this anchor.
    total_sessions:
        Number of sessions ever bound to this anchor.
    created_at:
        UTC creation time.
    last_activity:
        UTC time of the latest bind, unbind, or status change.
    version:
        Optimistic-concurrency version, bumped by the store on every update.
    """

    anchor_id: str
    anchor_hash: str
    project_path: str | None = None
    workspace: str | None = None
    support_type: str | None = None
    organization: str | None = None
    trust_score: float = DEFAULT_TRUST_SCORE
    trust_level: int = DEFAULT_TRUST_LEVEL
    status: AnchorStatus = AnchorStatus.ACTIVE
    issuer: AnchorIssuer = AnchorIssuer.AUTHORITY
    current_sessions: list[str] = field(default_factory=list)
    total_sessions: int = 0
    created_at: datetime.datetime = field(default_factory=_utcnow)
    last_activity: datetime.datetime = field(default_factory=_utcnow)
    version: int = 0

    def to_dict(self) -> dict[str, object]:
        """Serialize to a plain dictionary."""
        return {
            "anchor_id": self.anchor_id,
            "anchor_hash": self.anchor_hash,
            "project_path": self.project_path,
            "workspace": self.workspace,
            "support_type": self.support_type,
            "organization": self.organization,
            "trust_score": self.trust_score,
            "trust_level": self.trust_level,
            "status": self.status.value,
            "issuer": self.issuer.value,
            "current_sessions": list(self.current_sessions),
            "total_sessions": self.total_sessions,
            "created_at": self.created_at.isoformat(),
            "last_activity": self.last_activity.isoformat(),
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "IdentityAnchor":
        return cls(
            anchor_id=str(data["anchor_id"]),
            anchor_hash=str(data["anchor_hash"]),
            project_path=data.get("project_path"),
            workspace=data.get("workspace"),
            support_type=data.get("support_type"),
            organization=data.get("organization"),
            trust_score=float(data.get("trust_score", DEFAULT_TRUST_SCORE)),
            trust_level=int(data.get("trust_level", DEFAULT_TRUST_LEVEL)),
            status=AnchorStatus(data.get("status", AnchorStatus.ACTIVE.value)),
            issuer=AnchorIssuer(data.get("issuer", AnchorIssuer.AUTHORITY.value)),
            current_sessions=list(data.get("current_sessions") or []),
            total_sessions=int(data.get("total_sessions", 0)),
            created_at=_parse_ts(data.get("created_at")) or _utcnow(),
            last_activity=_parse_ts(data.get("last_activity")) or _utcnow(),
            version=int(data.get("version", 0)),
        )


@dataclass
class SessionBinding:
    """Links one ephemeral session to exactly one anchor for its duration.

    A binding is *open* while ``unbound_at`` is ``None``. A session id has at
    most one open binding at any moment; closed bindings are kept forever.
    """

    session_id: str
    anchor_id: str
    platform: str = "unknown"
    binding_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    bound_at: datetime.datetime = field(default_factory=_utcnow)
    unbound_at: datetime.datetime | None = None
    interactions: int = 0
    decisions: int = 0
    unbind_reason: str | None = None

    @property
    def is_open(self) -> bool:
        return self.unbound_at is None

    def to_dict(self) -> dict[str, object]:
        """Serialize to a plain dictionary."""
        return {
            "binding_id": self.binding_id,
            "session_id": self.session_id,
            "anchor_id": self.anchor_id,
            "platform": self.platform,
            "bound_at": self.bound_at.isoformat(),
            "unbound_at": _format_ts(self.unbound_at),
            "interactions": self.interactions,
            "decisions": self.decisions,
            "unbind_reason": self.unbind_reason,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SessionBinding":
        return cls(
            binding_id=str(data["binding_id"]),
            session_id=str(data["session_id"]),
            anchor_id=str(data["anchor_id"]),
            platform=str(data.get("platform") or "unknown"),
            bound_at=_parse_ts(data.get("bound_at")) or _utcnow(),
            unbound_at=_parse_ts(data.get("unbound_at")),
            interactions=int(data.get("interactions", 0)),
            decisions=int(data.get("decisions", 0)),
            unbind_reason=data.get("unbind_reason"),
        )


__all__ = [
    "AnchorIssuer",
    "AnchorStatus",
    "DEFAULT_TRUST_LEVEL",
    "DEFAULT_TRUST_SCORE",
    "IdentityAnchor",
    "SessionBinding",
]
