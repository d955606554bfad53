"""BehavioralAssessmentEngine — trait scores, trend, changes and red flags.

Assessment is pull-based: nothing runs until :meth:`assess` is called.
Each call recomputes every trait from the anchor's DNA profile, compares
it with the traits stored by the previous assessment, records behavioral
events for significant shifts and red flags, and stores the new traits
through the DNA accumulator.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from context_anchor.behavior.records import (
    BehavioralEvent,
    BehavioralEventType,
    ExposureRecord,
    InteractionType,
)
from context_anchor.behavior.traits import (
    TRAIT_DEFINITIONS,
    BehavioralTrait,
    SourceProfiles,
)
from context_anchor.dna.profile import DNAProfile
from context_anchor.errors import AnchorNotFoundError

if TYPE_CHECKING:
    from context_anchor.dna.accumulator import DNAAccumulator
    from context_anchor.store.base import AnchorStore

logger = logging.getLogger(__name__)

CHANGE_THRESHOLD = 0.15
TREND_MOVEMENT = 0.05
TREND_SATURATION_INTERACTIONS = 100
NEUTRAL_TRAIT = 0.5
SOURCE_CONCERN_INTERACTIONS = 20
SOURCE_CONCERN_STABILITY = 0.4
CONCERN_RED_FLAGS = 3
CONCERN_ANOMALIES = 5

_CORRECTION_MARKERS = ("correct", "retry", "fix")


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


@dataclass(frozen=True)
class TraitChange:
    """A trait that moved by more than the change threshold."""

    trait: str
    previous: float
    current: float

    @property
    def direction(self) -> str:
        return "increased" if self.current > self.previous else "decreased"

    def to_dict(self) -> dict[str, object]:
        return {
            "trait": self.trait,
            "from": round(self.previous, 4),
            "to": round(self.current, 4),
            "direction": self.direction,
        }


@dataclass(frozen=True)
class RedFlag:
    """A trait past its threshold or a concerning source exposure."""

    kind: str
    reason: str
    severity: int
    trait: str | None = None
    value: float | None = None
    threshold: float | None = None
    source: str | None = None
    interactions: int | None = None

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {
            "kind": self.kind,
            "reason": self.reason,
            "severity": self.severity,
        }
        if self.trait is not None:
            data.update(trait=self.trait, value=round(self.value or 0.0, 4), threshold=self.threshold)
        if self.source is not None:
            data.update(source=self.source, interactions=self.interactions)
        return data


@dataclass(frozen=True)
class TrendAnalysis:
    direction: str
    confidence: float
    improvements: list[str] = field(default_factory=list)
    degradations: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        return {
            "direction": self.direction,
            "confidence": self.confidence,
            "improvements": list(self.improvements),
            "degradations": list(self.degradations),
        }


@dataclass(frozen=True)
class BehavioralAssessment:
    """Result of :meth:`BehavioralAssessmentEngine.assess`."""

    anchor_id: str
    traits: dict[str, float]
    previous_traits: dict[str, float]
    trend: TrendAnalysis
    changes: list[TraitChange]
    red_flags: list[RedFlag]
    events: list[BehavioralEvent]

    def to_dict(self) -> dict[str, object]:
        return {
            "anchor_id": self.anchor_id,
            "traits": {k: round(v, 4) for k, v in self.traits.items()},
            "previous_traits": dict(self.previous_traits),
            "trend": self.trend.to_dict(),
            "changes": [c.to_dict() for c in self.changes],
            "red_flags": [f.to_dict() for f in self.red_flags],
            "events": [e.event_id for e in self.events],
        }


class BehavioralAssessmentEngine:
    """Derives behavioral traits from DNA and exposure evidence.

    Parameters
    ----------
    store:
        Durable store (anchors, exposures, behavioral events).
    accumulator:
        The DNA accumulator; the only way assessment results are stored.
    source_profiles:
        Stability/compliance map for external sources. Defaults to the
        built-in map.
    """

    def __init__(
        self,
        store: AnchorStore,
        accumulator: DNAAccumulator,
        source_profiles: SourceProfiles | None = None,
    ) -> None:
        self._store = store
        self._accumulator = accumulator
        self._sources = source_profiles if source_profiles is not None else SourceProfiles()

    @property
    def source_profiles(self) -> SourceProfiles:
        return self._sources

    # ------------------------------------------------------------------
    # Exposure
    # ------------------------------------------------------------------

    def log_exposure(
        self,
        anchor_id: str,
        source: str,
        interaction_type: InteractionType | str = InteractionType.READ,
        session_id: str | None = None,
        interactions: int = 1,
    ) -> ExposureRecord:
        """Record that *anchor_id* consumed information from *source*.

        The exposure is appended to the store and folded into the anchor's
        influence map.

        Raises
        ------
        AnchorNotFoundError
            If the anchor does not exist.
        ValueError
            If *interactions* is not positive or *interaction_type* is unknown.
        """
        if interactions < 1:
            raise ValueError(f"interactions must be >= 1, got {interactions}")
        if self._store.get_anchor(anchor_id) is None:
            raise AnchorNotFoundError(anchor_id)
        profile = self._sources.lookup(source)
        record = ExposureRecord(
            anchor_id=anchor_id,
            source=source,
            source_category=profile.category,
            interaction_type=InteractionType(interaction_type),
            sentiment=round((profile.stability - 0.5) * 2, 4),
            compliance_alignment=profile.compliance,
            session_id=session_id,
        )
        self._store.append_exposure(record)
        self._accumulator.record_exposure(
            anchor_id,
            source,
            category=profile.category,
            stability=profile.stability,
            compliance=profile.compliance,
            interactions=interactions,
        )
        return record

    # ------------------------------------------------------------------
    # Assessment
    # ------------------------------------------------------------------

    def assess(self, anchor_id: str) -> BehavioralAssessment:
        """Recompute traits, trend and red flags for *anchor_id*.

        The first assessment of an anchor has no stored traits to compare
        against. Changes are then measured from the neutral 0.5, so a new
        anchor may record a ``trait_shift``; the trend has no baseline and
        is reported ``stable`` without a ``trend_change`` event.

        Raises
        ------
        AnchorNotFoundError
            If the anchor does not exist.
        ProfileNotFoundError
            If the anchor has no DNA profile.
        """
        anchor = self._store.get_anchor(anchor_id)
        if anchor is None:
            raise AnchorNotFoundError(anchor_id)
        profile = self._accumulator.get_profile(anchor_id)

        previous = dict(profile.traits)
        traits = self.compute_traits(profile, anchor.trust_level)
        changes = detect_changes(previous, traits)
        # No baseline yet: nothing has moved.
        baseline = previous if previous else traits
        trend = analyze_trend(baseline, traits, profile.total_interactions)
        red_flags = self.check_red_flags(traits, profile)

        events: list[BehavioralEvent] = []
        if changes:
            events.append(
                BehavioralEvent(
                    anchor_id=anchor_id,
                    event_type=BehavioralEventType.TRAIT_SHIFT,
                    previous_state=previous,
                    new_state={k: round(v, 4) for k, v in traits.items()},
                    factors=[c.to_dict() for c in changes],
                    severity=7 if len(changes) >= 3 else 5,
                )
            )
        if trend.direction != profile.trend and trend.direction != "stable":
            events.append(
                BehavioralEvent(
                    anchor_id=anchor_id,
                    event_type=BehavioralEventType.TREND_CHANGE,
                    previous_state={"trend": profile.trend},
                    new_state={"trend": trend.direction, "confidence": trend.confidence},
                    factors=[
                        {"improvements": trend.improvements, "degradations": trend.degradations}
                    ],
                    severity=4,
                )
            )
        for flag in red_flags:
            events.append(
                BehavioralEvent(
                    anchor_id=anchor_id,
                    event_type=BehavioralEventType.RED_FLAG_DETECTED,
                    previous_state={},
                    new_state={"flag": flag.to_dict()},
                    factors=[{"reason": flag.reason}],
                    severity=flag.severity,
                )
            )
        for event in events:
            self._store.append_behavioral_event(event)

        self._accumulator.apply_assessment(
            anchor_id,
            traits=traits,
            trend=trend.direction,
            trend_confidence=trend.confidence,
            red_flag_count=len(red_flags),
        )
        if red_flags:
            logger.info("anchor %s raised %d red flag(s)", anchor_id, len(red_flags))
        return BehavioralAssessment(
            anchor_id=anchor_id,
            traits=traits,
            previous_traits=previous,
            trend=trend,
            changes=changes,
            red_flags=red_flags,
            events=events,
        )

    def compute_traits(self, profile: DNAProfile, trust_level: int) -> dict[str, float]:
        """Compute every trait score from *profile*."""
        return {
            BehavioralTrait.VOLATILE.value: volatility(profile),
            BehavioralTrait.COMPLIANT.value: self._compliance(profile),
            BehavioralTrait.CREATIVE.value: creativity(profile),
            BehavioralTrait.METHODICAL.value: methodicalness(profile),
            BehavioralTrait.RESILIENT.value: resilience(profile),
            BehavioralTrait.SELF_CORRECTING.value: self_correction(profile),
            BehavioralTrait.FOCUSED.value: focus(profile),
            BehavioralTrait.TRUST_ALIGNED.value: _clamp(trust_level / 5),
        }

    def _compliance(self, profile: DNAProfile) -> float:
        base = profile.success_rate if profile.total_interactions > 0 else NEUTRAL_TRAIT
        weighted = 0.0
        count = 0
        for name, source in profile.influence_sources.items():
            weighted += self._sources.lookup(name).compliance * source.interactions
            count += source.interactions
        score = base * 0.6 + (weighted / count) * 0.4 if count else base
        return _clamp(score - profile.anomaly_count * 0.02)

    def check_red_flags(self, traits: dict[str, float], profile: DNAProfile) -> list[RedFlag]:
        """Return red flags for *traits* and *profile*'s influence sources."""
        flags: list[RedFlag] = []
        for trait, definition in TRAIT_DEFINITIONS.items():
            value = traits.get(trait.value, NEUTRAL_TRAIT)
            distance = definition.exceedance(value)
            if distance <= 0:
                continue
            side = "above" if definition.inverse else "below"
            flags.append(
                RedFlag(
                    kind="trait_threshold",
                    reason=f"{trait.value} is {side} threshold",
                    severity=max(1, min(10, round(distance * 10))),
                    trait=trait.value,
                    value=value,
                    threshold=definition.red_flag_threshold,
                )
            )
        for name, source in sorted(profile.influence_sources.items()):
            stability = self._sources.lookup(name).stability
            if (
                source.interactions > SOURCE_CONCERN_INTERACTIONS
                and stability < SOURCE_CONCERN_STABILITY
            ):
                flags.append(
                    RedFlag(
                        kind="source_concern",
                        reason=f"High exposure to low-stability source: {name}",
                        severity=min(8, round(source.interactions / 10)),
                        source=name,
                        interactions=source.interactions,
                    )
                )
        return flags

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def behavior_summary(self, anchor_id: str, recent_events: int = 10) -> dict[str, Any]:
        """Return stored traits, trend, recent events and top exposure sources."""
        profile = self._accumulator.get_profile(anchor_id)
        events = self._store.list_behavioral_events(anchor_id, limit=recent_events)
        counts: dict[str, list[float]] = {}
        for exposure in self._store.list_exposures(anchor_id):
            counts.setdefault(exposure.source, []).append(exposure.compliance_alignment)
        top = sorted(counts.items(), key=lambda kv: (-len(kv[1]), kv[0]))[:5]
        return {
            "anchor_id": anchor_id,
            "traits": dict(profile.traits),
            "trend": {"direction": profile.trend, "confidence": profile.trend_confidence},
            "red_flag_count": profile.red_flag_count,
            "anomaly_count": profile.anomaly_count,
            "success_rate": profile.success_rate,
            "last_assessment": (
                profile.last_assessment.isoformat() if profile.last_assessment else None
            ),
            "influence_sources": {
                k: s.to_dict() for k, s in profile.influence_sources.items()
            },
            "top_exposures": [
                {
                    "source": source,
                    "count": len(values),
                    "avg_compliance": round(sum(values) / len(values), 4),
                }
                for source, values in top
            ],
            "recent_events": [e.to_dict() for e in events],
        }

    def anchors_with_concerns(self) -> list[dict[str, Any]]:
        """Return anchors that are degrading, heavily flagged, or anomalous."""
        concerns = []
        for profile in self._store.list_dna():
            if (
                profile.trend == "degrading"
                or profile.red_flag_count > CONCERN_RED_FLAGS
                or profile.anomaly_count > CONCERN_ANOMALIES
            ):
                concerns.append(
                    {
                        "anchor_id": profile.anchor_id,
                        "trend": profile.trend,
                        "red_flag_count": profile.red_flag_count,
                        "anomaly_count": profile.anomaly_count,
                    }
                )
        return sorted(
            concerns, key=lambda c: (-c["red_flag_count"], -c["anomaly_count"], c["anchor_id"])
        )

    def acknowledge_event(self, event_id: str) -> bool:
        """Mark a behavioral event as acknowledged."""
        return self._store.acknowledge_behavioral_event(event_id)


# ------------------------------------------------------------------
# Trait formulas
# ------------------------------------------------------------------


def volatility(profile: DNAProfile) -> float:
    """0.5 baseline, raised by anomalies, a low success rate and failures."""
    score = NEUTRAL_TRAIT
    if profile.anomaly_count > 10:
        score += 0.3
    elif profile.anomaly_count > 5:
        score += 0.15
    if profile.success_rate < 0.5:
        score += 0.2
    if profile.total_outcomes > 0:
        score += (profile.outcomes_failed / profile.total_outcomes) * 0.2
    return _clamp(score)


def creativity(profile: DNAProfile) -> float:
    categories = {p.category for p in profile.patterns.values()}
    return _clamp(len(categories) / 10)


def methodicalness(profile: DNAProfile) -> float:
    if profile.pattern_observations < 5:
        return NEUTRAL_TRAIT
    per_category: dict[str, int] = {}
    for pattern in profile.patterns.values():
        per_category[pattern.category] = per_category.get(pattern.category, 0) + pattern.count
    repeated = sum(1 for count in per_category.values() if count > 1)
    return _clamp(0.3 + (repeated / len(per_category)) * 0.7)


def resilience(profile: DNAProfile) -> float:
    if profile.total_outcomes < 5:
        return NEUTRAL_TRAIT
    return _clamp(profile.outcomes_successful / profile.total_outcomes)


def self_correction(profile: DNAProfile) -> float:
    pattern_corrections = sum(
        p.count
        for p in profile.patterns.values()
        if any(m in p.name.lower() or m in p.category.lower() for m in _CORRECTION_MARKERS)
    )
    return _clamp(0.3 + (profile.corrections + pattern_corrections) * 0.1)


def focus(profile: DNAProfile) -> float:
    observations = profile.pattern_observations
    if observations < 3:
        return NEUTRAL_TRAIT
    domains = {p.domain or "unknown" for p in profile.patterns.values()}
    return _clamp(0.3 + (1 - len(domains) / observations) * 0.7)


# ------------------------------------------------------------------
# Change and trend detection
# ------------------------------------------------------------------


def detect_changes(previous: dict[str, float], current: dict[str, float]) -> list[TraitChange]:
    """Return traits whose score moved by more than the change threshold."""
    changes = []
    for trait, value in current.items():
        old = previous.get(trait, NEUTRAL_TRAIT)
        if abs(value - old) > CHANGE_THRESHOLD:
            changes.append(TraitChange(trait=trait, previous=old, current=value))
    return changes


def analyze_trend(
    previous: dict[str, float], current: dict[str, float], interactions: int
) -> TrendAnalysis:
    """Classify the overall direction of trait movement.

    A trait counts as improved or degraded when it moved by more than
    ``TREND_MOVEMENT``, taking inverse traits into account. One side must
    outnumber the other by at least two to call a direction; mixed
    movement otherwise reads as volatile.
    """
    improvements: list[str] = []
    degradations: list[str] = []
    for trait, definition in TRAIT_DEFINITIONS.items():
        diff = current.get(trait.value, NEUTRAL_TRAIT) - previous.get(trait.value, NEUTRAL_TRAIT)
        if abs(diff) <= TREND_MOVEMENT:
            continue
        improved = diff < 0 if definition.inverse else diff > 0
        (improvements if improved else degradations).append(trait.value)

    if len(improvements) > len(degradations) + 1:
        direction = "improving"
    elif len(degradations) > len(improvements) + 1:
        direction = "degrading"
    elif improvements and degradations:
        direction = "volatile"
    else:
        direction = "stable"
    confidence = min(1.0, interactions / TREND_SATURATION_INTERACTIONS)
    return TrendAnalysis(direction, confidence, improvements, degradations)


__all__ = [
    "BehavioralAssessment",
    "BehavioralAssessmentEngine",
    "RedFlag",
    "TraitChange",
    "TrendAnalysis",
    "analyze_trend",
    "creativity",
    "detect_changes",
    "focus",
    "methodicalness",
    "resilience",
    "self_correction",
    "volatility",
]
