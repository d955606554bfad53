"""LedgerEntry and the canonical hashing used to chain entries.

An entry's content hash is the SHA-256 of the canonical JSON form of its
identifying fields together with ``previous_hash``. Canonical JSON means
sorted keys and compact separators, so the same content always hashes to
the same digest regardless of dict insertion order.
"""
from __future__ import annotations

import datetime
import hashlib
import json
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

GENESIS_HASH = "genesis"


class LedgerEventType(str, Enum):
    """Event types written to an anchor's ledger."""

    CREATED = "created"
    SESSION_START = "session_start"
    SESSION_END = "session_end"
    DNA_ACCUMULATED = "dna_accumulated"
    TRUST_EVOLVED = "trust_evolved"
    STATUS_CHANGED = "status_changed"


def canonical_json(value: Any) -> str:
    """Return the deterministic JSON text used for every content hash."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)


def sha256_hex(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def compute_entry_hash(
    entry_id: str,
    anchor_id: str,
    session_id: str | None,
    event_type: str,
    payload: dict[str, Any],
    timestamp: str,
    previous_hash: str,
) -> str:
    """Compute the content hash for a ledger entry.

    Parameters
    ----------
    entry_id:
        Unique id of the entry.
    anchor_id:
        Anchor the entry belongs to.
    session_id:
        Session that caused the event, or ``None``.
    event_type:
        String value of the event type.
    payload:
        JSON-compatible payload.
    timestamp:
        ISO-8601 timestamp string exactly as stored.
    previous_hash:
        Hash of the anchor's prior entry, or :data:`GENESIS_HASH`.

    Returns
    -------
    str
        Lower-case hex SHA-256 digest.
    """
    return sha256_hex(
        canonical_json(
            {
                "entry_id": entry_id,
                "anchor_id": anchor_id,
                "session_id": session_id,
                "event_type": event_type,
                "payload": payload,
                "timestamp": timestamp,
                "previous_hash": previous_hash,
            }
        )
    )


@dataclass(frozen=True)
class LedgerEntry:
    """One immutable, hash-chained record of something that happened to an anchor.

    Parameters
    ----------
    entry_id:
        Unique id of this entry.
    anchor_id:
        Anchor the entry belongs to.
    sequence:
        Zero-based position of the entry in its anchor's chain.
    session_id:
        Session responsible for the event, if any.
    event_type:
        String value of a :class:`LedgerEventType` (or a custom string).
    payload:
        Arbitrary JSON-compatible structured data.
    timestamp:
        ISO-8601 UTC timestamp string.
    previous_hash:
        Content hash of the prior entry, or ``"genesis"``.
    content_hash:
        SHA-256 over the entry's fields and ``previous_hash``.
    """

    entry_id: str
    anchor_id: str
    sequence: int
    session_id: str | None
    event_type: str
    payload: dict[str, Any]
    timestamp: str
    previous_hash: str
    content_hash: str

    @classmethod
    def build(
        cls,
        anchor_id: str,
        sequence: int,
        previous_hash: str,
        event_type: str,
        payload: dict[str, Any] | None = None,
        session_id: str | None = None,
        timestamp: datetime.datetime | None = None,
    ) -> "LedgerEntry":
        """Create a new entry and compute its content hash."""
        entry_id = uuid.uuid4().hex
        ts = (timestamp or datetime.datetime.now(datetime.timezone.utc)).isoformat()
        body = dict(payload or {})
        # Round-trip through JSON so the stored payload matches what was hashed.
        body = json.loads(canonical_json(body))
        content_hash = compute_entry_hash(
            entry_id, anchor_id, session_id, event_type, body, ts, previous_hash
        )
        return cls(
            entry_id=entry_id,
            anchor_id=anchor_id,
            sequence=sequence,
            session_id=session_id,
            event_type=event_type,
            payload=body,
            timestamp=ts,
            previous_hash=previous_hash,
            content_hash=content_hash,
        )

    def recompute_hash(self) -> str:
        """Recompute this entry's hash from its stored fields."""
        return compute_entry_hash(
            self.entry_id,
            self.anchor_id,
            self.session_id,
            self.event_type,
            self.payload,
            self.timestamp,
            self.previous_hash,
        )

    def to_dict(self) -> dict[str, object]:
        """Serialize to a plain dictionary."""
        return {
            "entry_id": self.entry_id,
            "anchor_id": self.anchor_id,
            "sequence": self.sequence,
            "session_id": self.session_id,
            "event_type": self.event_type,
            "payload": self.payload,
            "timestamp": self.timestamp,
            "previous_hash": self.previous_hash,
            "content_hash": self.content_hash,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LedgerEntry":
        return cls(
            entry_id=str(data["entry_id"]),
            anchor_id=str(data["anchor_id"]),
            sequence=int(data["sequence"]),
            session_id=data.get("session_id"),
            event_type=str(data["event_type"]),
            payload=dict(data.get("payload") or {}),
            timestamp=str(data["timestamp"]),
            previous_hash=str(data["previous_hash"]),
            content_hash=str(data["content_hash"]),
        )


__all__ = [
    "GENESIS_HASH",
    "LedgerEntry",
    "LedgerEventType",
    "canonical_json",
    "compute_entry_hash",
    "sha256_hex",
]
