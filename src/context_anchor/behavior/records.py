"""ExposureRecord and BehavioralEvent — append-only behavioral evidence."""
from __future__ import annotations

import datetime
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from context_anchor.ledger.entry import canonical_json, sha256_hex
from context_anchor.timeutil import parse_ts, utcnow


class InteractionType(str, Enum):
    """How an anchor interacted with an external source."""

    READ = "read"
    WRITE = "write"
    EXECUTE = "execute"
    QUERY = "query"
    CHAT = "chat"
    OBSERVE = "observe"


class BehavioralEventType(str, Enum):
    TRAIT_SHIFT = "trait_shift"
    TREND_CHANGE = "trend_change"
    RED_FLAG_DETECTED = "red_flag_detected"


@dataclass(frozen=True)
class ExposureRecord:
    """One logged interaction between an anchor and an external source.

    Parameters
    ----------
    anchor_id:
        The exposed anchor.
    source:
        Source identifier, usually a host name.
    source_category:
        Category from the source profile (documentation, social, ...).
    interaction_type:
        How the anchor interacted with the source.
    sentiment:
        Score in [-1, 1], derived from the source's stability.
    compliance_alignment:
        Score in [0, 1], taken from the source's compliance profile.
    session_id:
        Session in which the exposure occurred, if known.
    """

    anchor_id: str
    source: str
    source_category: str
    interaction_type: InteractionType
    sentiment: float
    compliance_alignment: float
    session_id: str | None = None
    exposure_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: datetime.datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, object]:
        """Serialize to a plain dictionary."""
        return {
            "exposure_id": self.exposure_id,
            "anchor_id": self.anchor_id,
            "source": self.source,
            "source_category": self.source_category,
            "interaction_type": self.interaction_type.value,
            "sentiment": self.sentiment,
            "compliance_alignment": self.compliance_alignment,
            "session_id": self.session_id,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ExposureRecord":
        return cls(
            exposure_id=str(data["exposure_id"]),
            anchor_id=str(data["anchor_id"]),
            source=str(data["source"]),
            source_category=str(data["source_category"]),
            interaction_type=InteractionType(data["interaction_type"]),
            sentiment=float(data["sentiment"]),
            compliance_alignment=float(data["compliance_alignment"]),
            session_id=data.get("session_id"),
            timestamp=parse_ts(data.get("timestamp")) or utcnow(),
        )


@dataclass(frozen=True)
class BehavioralEvent:
    """Point-in-time record of why a trait shift, trend change, or red flag happened.

    Parameters
    ----------
    anchor_id:
        The anchor the event concerns.
    event_type:
        What kind of behavioral event this is.
    previous_state:
        Relevant values before the assessment.
    new_state:
        Relevant values after the assessment.
    factors:
        Ordered contributing factors, most significant first.
    severity:
        Integer severity in [0, 10].
    acknowledged:
        Whether an operator has acknowledged the event. Acknowledgement is
        stored as a separate flag; the event content never changes.
    """

    anchor_id: str
    event_type: BehavioralEventType
    previous_state: dict[str, Any]
    new_state: dict[str, Any]
    factors: list[dict[str, Any]]
    severity: int
    event_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: datetime.datetime = field(default_factory=utcnow)
    acknowledged: bool = False

    @property
    def content_hash(self) -> str:
        return sha256_hex(
            canonical_json(
                {
                    "event_id": self.event_id,
                    "anchor_id": self.anchor_id,
                    "event_type": self.event_type.value,
                    "previous_state": self.previous_state,
                    "new_state": self.new_state,
                    "factors": self.factors,
                    "severity": self.severity,
                    "timestamp": self.timestamp.isoformat(),
                }
            )
        )

    def to_dict(self) -> dict[str, object]:
        """Serialize to a plain dictionary."""
        return {
            "event_id": self.event_id,
            "anchor_id": self.anchor_id,
            "event_type": self.event_type.value,
            "previous_state": self.previous_state,
            "new_state": self.new_state,
            "factors": self.factors,
            "severity": self.severity,
            "timestamp": self.timestamp.isoformat(),
            "acknowledged": self.acknowledged,
            "content_hash": self.content_hash,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BehavioralEvent":
        return cls(
            event_id=str(data["event_id"]),
            anchor_id=str(data["anchor_id"]),
            event_type=BehavioralEventType(data["event_type"]),
            previous_state=dict(data.get("previous_state") or {}),
            new_state=dict(data.get("new_state") or {}),
            factors=list(data.get("factors") or []),
            severity=int(data.get("severity", 0)),
            timestamp=parse_ts(data.get("timestamp")) or utcnow(),
            acknowledged=bool(data.get("acknowledged", False)),
        )


__all__ = [
    "BehavioralEvent",
    "BehavioralEventType",
    "ExposureRecord",
    "InteractionType",
]
