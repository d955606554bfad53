"""TrustEvolutionRecord — audit snapshot of one persisted trust change."""
from __future__ import annotations

import datetime
import uuid
from dataclasses import dataclass, field
from typing import Any

from context_anchor.ledger.entry import canonical_json, sha256_hex
from context_anchor.timeutil import parse_ts, utcnow


@dataclass(frozen=True)
class TrustEvolutionRecord:
    """Why an anchor's trust score and level changed.

    Parameters
    ----------
    anchor_id:
        The anchor whose trust evolved.
    previous_score, new_score:
        Composite trust score before and after, 0 – 100.
    previous_level, new_level:
        Integer trust level before and after, 0 – 5.
    factors:
        Sub-scores that produced ``new_score``, in fixed order. Each item has
        ``name``, ``score``, ``weight`` and ``contribution`` keys.
    trigger:
        What prompted the recalculation.
    severity:
        Integer severity in [0, 10], larger for bigger moves.
    interactions:
        ``total_interactions`` of the DNA profile at calculation time.
    """

    anchor_id: str
    previous_score: float
    new_score: float
    previous_level: int
    new_level: int
    factors: list[dict[str, Any]]
    trigger: str = "experience_accumulated"
    severity: int = 0
    interactions: int = 0
    record_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: datetime.datetime = field(default_factory=utcnow)

    @property
    def score_delta(self) -> float:
        return round(self.new_score - self.previous_score, 2)

    @property
    def level_changed(self) -> bool:
        return self.new_level != self.previous_level

    @property
    def content_hash(self) -> str:
        return sha256_hex(
            canonical_json(
                {
                    "record_id": self.record_id,
                    "anchor_id": self.anchor_id,
                    "previous_score": self.previous_score,
                    "new_score": self.new_score,
                    "previous_level": self.previous_level,
                    "new_level": self.new_level,
                    "factors": self.factors,
                    "trigger": self.trigger,
                    "timestamp": self.timestamp.isoformat(),
                }
            )
        )

    def to_dict(self) -> dict[str, object]:
        """Serialize to a plain dictionary."""
        return {
            "record_id": self.record_id,
            "anchor_id": self.anchor_id,
            "previous_score": self.previous_score,
            "new_score": self.new_score,
            "previous_level": self.previous_level,
            "new_level": self.new_level,
            "factors": self.factors,
            "trigger": self.trigger,
            "severity": self.severity,
            "interactions": self.interactions,
            "timestamp": self.timestamp.isoformat(),
            "content_hash": self.content_hash,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TrustEvolutionRecord":
        return cls(
            record_id=str(data["record_id"]),
            anchor_id=str(data["anchor_id"]),
            previous_score=float(data["previous_score"]),
            new_score=float(data["new_score"]),
            previous_level=int(data["previous_level"]),
            new_level=int(data["new_level"]),
            factors=list(data.get("factors") or []),
            trigger=str(data.get("trigger") or "experience_accumulated"),
            severity=int(data.get("severity", 0)),
            interactions=int(data.get("interactions", 0)),
            timestamp=parse_ts(data.get("timestamp")) or utcnow(),
        )


__all__ = ["TrustEvolutionRecord"]
