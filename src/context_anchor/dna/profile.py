"""DNAProfile — the accumulated behavioral and competency summary for one anchor.

The profile is mutated only by :class:`~context_anchor.dna.accumulator.DNAAccumulator`.
Every other component reads it.
"""
from __future__ import annotations

import copy
import datetime
from dataclasses import dataclass, field
from typing import Any

from context_anchor.timeutil import format_ts, parse_ts


@dataclass
class Competency:
    """A named skill observed for an anchor.

    Parameters
    ----------
    name:
        Competency name, used as the merge key.
    level:
        Highest proficiency level observed so far.
    observations:
        How many sessions reported this competency.
    domain:
        Optional expertise domain the competency belongs to.
    """

    name: str
    level: float = 1.0
    observations: int = 1
    domain: str | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "name": self.name,
            "level": self.level,
            "observations": self.observations,
            "domain": self.domain,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Competency":
        return cls(
            name=str(data["name"]),
            level=float(data.get("level", 1.0)),
            observations=int(data.get("observations", 1)),
            domain=data.get("domain"),
        )


@dataclass
class PatternObservation:
    """A recurring working pattern (e.g. "write-test-first") and how often it was seen."""

    name: str
    category: str = "general"
    domain: str | None = None
    count: int = 1

    def to_dict(self) -> dict[str, object]:
        return {
            "name": self.name,
            "category": self.category,
            "domain": self.domain,
            "count": self.count,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PatternObservation":
        return cls(
            name=str(data["name"]),
            category=str(data.get("category") or "general"),
            domain=data.get("domain"),
            count=int(data.get("count", 1)),
        )


@dataclass
class InfluenceSource:
    """Cumulative exposure of an anchor to one external source."""

    source: str
    category: str = "unknown"
    interactions: int = 0
    stability: float = 0.5
    compliance: float = 0.5
    impact: str = "neutral"
    first_seen: datetime.datetime | None = None
    last_seen: datetime.datetime | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "source": self.source,
            "category": self.category,
            "interactions": self.interactions,
            "stability": self.stability,
            "compliance": self.compliance,
            "impact": self.impact,
            "first_seen": format_ts(self.first_seen),
            "last_seen": format_ts(self.last_seen),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "InfluenceSource":
        return cls(
            source=str(data["source"]),
            category=str(data.get("category") or "unknown"),
            interactions=int(data.get("interactions", 0)),
            stability=float(data.get("stability", 0.5)),
            compliance=float(data.get("compliance", 0.5)),
            impact=str(data.get("impact") or "neutral"),
            first_seen=parse_ts(data.get("first_seen")),
            last_seen=parse_ts(data.get("last_seen")),
        )


@dataclass
class DNAProfile:
    """Running aggregate profile for one anchor.

    Parameters
    ----------
    anchor_id:
        The anchor this profile summarizes.
    total_interactions, total_decisions:
        Lifetime counters across all committed sessions.
    success_rate:
        Interaction-weighted running success rate in [0, 1].
    outcomes_successful, outcomes_failed:
        Lifetime outcome counters derived from session successes.
    anomaly_count:
        Lifetime count of reported anomalies.
    corrections:
        Lifetime count of self-corrections.
    risk_score:
        Exponential moving average of session risk, 0 – 100.
    unique_entities:
        Distinct entity identifiers seen across sessions.
    avg_response_ms:
        Interaction-weighted mean response time, if any session reported it.
    competencies:
        Competencies keyed by name.
    expertise_domains:
        Union of every domain reported.
    patterns:
        Pattern observations keyed by name.
    traits:
        Latest behavioral trait scores, 0 – 1.
    influence_sources:
        Cumulative exposure keyed by source.
    trend, trend_confidence:
        Latest behavioral trend direction and its confidence.
    red_flag_count:
        Red flags raised by the latest behavioral assessment.
    interactions_at_last_trust_calc:
        ``total_interactions`` when trust was last recalculated.
    first_updated, last_updated:
        UTC timestamps of the first and latest session commit.
    last_assessment:
        UTC timestamp of the latest behavioral assessment.
    version:
        Optimistic-concurrency version, bumped by the store on every update.
    """

    anchor_id: str
    total_interactions: int = 0
    total_decisions: int = 0
    success_rate: float = 0.0
    outcomes_successful: int = 0
    outcomes_failed: int = 0
    anomaly_count: int = 0
    corrections: int = 0
    risk_score: float = 0.0
    unique_entities: list[str] = field(default_factory=list)
    avg_response_ms: float | None = None
    competencies: dict[str, Competency] = field(default_factory=dict)
    expertise_domains: list[str] = field(default_factory=list)
    patterns: dict[str, PatternObservation] = field(default_factory=dict)
    traits: dict[str, float] = field(default_factory=dict)
    influence_sources: dict[str, InfluenceSource] = field(default_factory=dict)
    trend: str = "stable"
    trend_confidence: float = 0.0
    red_flag_count: int = 0
    interactions_at_last_trust_calc: int = 0
    first_updated: datetime.datetime | None = None
    last_updated: datetime.datetime | None = None
    last_assessment: datetime.datetime | None = None
    version: int = 0

    @property
    def total_outcomes(self) -> int:
        return self.outcomes_successful + self.outcomes_failed

    @property
    def pattern_observations(self) -> int:
        return sum(p.count for p in self.patterns.values())

    def copy(self) -> "DNAProfile":
        """Return a deep copy suitable for a read-modify-write cycle."""
        return copy.deepcopy(self)

    def to_dict(self) -> dict[str, object]:
        """Serialize to a plain dictionary."""
        return {
            "anchor_id": self.anchor_id,
            "total_interactions": self.total_interactions,
            "total_decisions": self.total_decisions,
            "success_rate": self.success_rate,
            "outcomes_successful": self.outcomes_successful,
            "outcomes_failed": self.outcomes_failed,
            "anomaly_count": self.anomaly_count,
            "corrections": self.corrections,
            "risk_score": self.risk_score,
            "unique_entities": list(self.unique_entities),
            "avg_response_ms": self.avg_response_ms,
            "competencies": {k: c.to_dict() for k, c in self.competencies.items()},
            "expertise_domains": list(self.expertise_domains),
            "patterns": {k: p.to_dict() for k, p in self.patterns.items()},
            "traits": dict(self.traits),
            "influence_sources": {
                k: s.to_dict() for k, s in self.influence_sources.items()
            },
            "trend": self.trend,
            "trend_confidence": self.trend_confidence,
            "red_flag_count": self.red_flag_count,
            "interactions_at_last_trust_calc": self.interactions_at_last_trust_calc,
            "first_updated": format_ts(self.first_updated),
            "last_updated": format_ts(self.last_updated),
            "last_assessment": format_ts(self.last_assessment),
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DNAProfile":
        return cls(
            anchor_id=str(data["anchor_id"]),
            total_interactions=int(data.get("total_interactions", 0)),
            total_decisions=int(data.get("total_decisions", 0)),
            success_rate=float(data.get("success_rate", 0.0)),
            outcomes_successful=int(data.get("outcomes_successful", 0)),
            outcomes_failed=int(data.get("outcomes_failed", 0)),
            anomaly_count=int(data.get("anomaly_count", 0)),
            corrections=int(data.get("corrections", 0)),
            risk_score=float(data.get("risk_score", 0.0)),
            unique_entities=list(data.get("unique_entities") or []),
            avg_response_ms=data.get("avg_response_ms"),
            competencies={
                k: Competency.from_dict(v)
                for k, v in (data.get("competencies") or {}).items()
            },
            expertise_domains=list(data.get("expertise_domains") or []),
            patterns={
                k: PatternObservation.from_dict(v)
                for k, v in (data.get("patterns") or {}).items()
            },
            traits={k: float(v) for k, v in (data.get("traits") or {}).items()},
            influence_sources={
                k: InfluenceSource.from_dict(v)
                for k, v in (data.get("influence_sources") or {}).items()
            },
            trend=str(data.get("trend") or "stable"),
            trend_confidence=float(data.get("trend_confidence", 0.0)),
            red_flag_count=int(data.get("red_flag_count", 0)),
            interactions_at_last_trust_calc=int(
                data.get("interactions_at_last_trust_calc", 0)
            ),
            first_updated=parse_ts(data.get("first_updated")),
            last_updated=parse_ts(data.get("last_updated")),
            last_assessment=parse_ts(data.get("last_assessment")),
            version=int(data.get("version", 0)),
        )


__all__ = ["Competency", "DNAProfile", "InfluenceSource", "PatternObservation"]
