"""ArchetypeClassifier — places an anchor in capability space.

Capabilities are derived from the DNA profile (and the traits stored by
the last behavioral assessment), stability is estimated from them, and
the nearest catalog archetype is chosen by L1 distance with the stability
gap counted twice.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from context_anchor.archetype.catalog import (
    ARCHETYPE_CATALOG,
    Archetype,
    CapabilityDimension,
)
from context_anchor.dna.profile import DNAProfile

if TYPE_CHECKING:
    from context_anchor.dna.accumulator import DNAAccumulator

Dim = CapabilityDimension

COMPLEX_PATTERN_CATEGORIES = frozenset({"reasoning", "analysis", "planning"})
DEFAULT_RESPONSE_SPEED = 0.6
DEFAULT_COLLABORATION = 0.5
STABILITY_WEIGHT = 2.0


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


@dataclass(frozen=True)
class Recommendation:
    action: str
    kind: str
    message: str
    best_for: tuple[str, ...] = ()
    avoid_for: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {"action": self.action, "type": self.kind, "message": self.message}
        if self.best_for or self.avoid_for:
            data["best_for"] = list(self.best_for)
            data["avoid_for"] = list(self.avoid_for)
        return data


@dataclass(frozen=True)
class Tradeoff:
    complexity: float
    stability: float
    ratio: float
    assessment: str

    def to_dict(self) -> dict[str, object]:
        return {
            "complexity": round(self.complexity, 4),
            "stability": round(self.stability, 4),
            "ratio": round(self.ratio, 4),
            "assessment": self.assessment,
        }


@dataclass(frozen=True)
class Classification:
    """Result of :meth:`ArchetypeClassifier.classify`.

    ``ranking`` lists every archetype name with its distance, nearest first.
    """

    anchor_id: str
    capabilities: dict[CapabilityDimension, float]
    stability: float
    archetype: Archetype
    distance: float
    ranking: list[tuple[str, float]] = field(default_factory=list)
    tradeoff: Tradeoff | None = None
    recommendations: list[Recommendation] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        return {
            "anchor_id": self.anchor_id,
            "capabilities": {d.value: round(v, 4) for d, v in self.capabilities.items()},
            "stability": round(self.stability, 4),
            "archetype": self.archetype.name,
            "distance": round(self.distance, 4),
            "ranking": [{"name": n, "distance": round(d, 4)} for n, d in self.ranking],
            "tradeoff": self.tradeoff.to_dict() if self.tradeoff else None,
            "recommendations": [r.to_dict() for r in self.recommendations],
        }


class ArchetypeClassifier:
    """Classifies anchors against :data:`ARCHETYPE_CATALOG`.

    Parameters
    ----------
    accumulator:
        Source of DNA profiles.
    catalog:
        Archetypes to match against, in tie-break order.
    """

    def __init__(
        self,
        accumulator: DNAAccumulator,
        catalog: tuple[Archetype, ...] = ARCHETYPE_CATALOG,
    ) -> None:
        if not catalog:
            raise ValueError("catalog must contain at least one archetype")
        self._accumulator = accumulator
        self._catalog = catalog

    def classify(self, anchor_id: str) -> Classification:
        """Classify *anchor_id*.

        Raises
        ------
        ProfileNotFoundError
            If the anchor has no DNA profile.
        """
        profile = self._accumulator.get_profile(anchor_id)
        capabilities = compute_capabilities(profile)
        stability = estimate_stability(capabilities, profile.traits)
        ranking = rank_archetypes(capabilities, stability, self._catalog)
        best_name, best_distance = ranking[0]
        best = next(a for a in self._catalog if a.name == best_name)
        return Classification(
            anchor_id=anchor_id,
            capabilities=capabilities,
            stability=stability,
            archetype=best,
            distance=best_distance,
            ranking=ranking,
            tradeoff=analyze_tradeoff(capabilities, stability),
            recommendations=recommend(capabilities, stability, best),
        )


# ------------------------------------------------------------------
# Formulas
# ------------------------------------------------------------------


def compute_capabilities(profile: DNAProfile) -> dict[CapabilityDimension, float]:
    """Derive the eight capability scores from *profile*."""
    traits = profile.traits
    rate = profile.success_rate
    anomalies = profile.anomaly_count
    complex_patterns = sum(
        p.count for p in profile.patterns.values() if p.category in COMPLEX_PATTERN_CATEGORIES
    )
    domains = {c.domain for c in profile.competencies.values() if c.domain}
    if profile.avg_response_ms:
        speed = _clamp(1 - profile.avg_response_ms / 10000)
    else:
        speed = DEFAULT_RESPONSE_SPEED

    return {
        Dim.REASONING: min(1.0, len(profile.competencies) * 0.05 + complex_patterns * 0.1),
        Dim.PATTERN_RECOGNITION: _clamp(
            rate * 0.7 + min(profile.pattern_observations / 20, 1.0) * 0.3
        ),
        Dim.ADAPTABILITY: _clamp(
            traits.get("volatile", 0.5) * 0.3
            + traits.get("resilient", 0.5) * 0.7
            - anomalies * 0.02
        ),
        Dim.PRECISION: _clamp(rate - anomalies * 0.02),
        Dim.DIVERGENT_THINKING: min(1.0, len(domains) / 5),
        Dim.RESPONSE_SPEED: speed,
        Dim.RETENTION: min(1.0, profile.total_interactions / 200),
        Dim.COLLABORATION: DEFAULT_COLLABORATION,
    }


def estimate_stability(
    capabilities: dict[CapabilityDimension, float], traits: dict[str, float]
) -> float:
    """Estimate stability: precision and method raise it, complexity lowers it."""
    score = (
        0.5
        + (capabilities[Dim.PRECISION] - 0.5) * 0.3
        - (capabilities[Dim.REASONING] - 0.5) * 0.15
        - (capabilities[Dim.ADAPTABILITY] - 0.5) * 0.1
        - (capabilities[Dim.DIVERGENT_THINKING] - 0.5) * 0.2
        - traits.get("volatile", 0.5) * 0.2
        + traits.get("methodical", 0.5) * 0.2
        + traits.get("compliant", 0.5) * 0.1
    )
    return _clamp(score)


def archetype_distance(
    capabilities: dict[CapabilityDimension, float], stability: float, archetype: Archetype
) -> float:
    gap = sum(
        abs(capabilities.get(dim, 0.0) - archetype.capabilities.get(dim, 0.0))
        for dim in CapabilityDimension
    )
    return gap + STABILITY_WEIGHT * abs(stability - archetype.stability)


def rank_archetypes(
    capabilities: dict[CapabilityDimension, float],
    stability: float,
    catalog: tuple[Archetype, ...] = ARCHETYPE_CATALOG,
) -> list[tuple[str, float]]:
    """Archetype names with distances, nearest first; ties keep catalog order."""
    scored = [(a.name, archetype_distance(capabilities, stability, a)) for a in catalog]
    return sorted(scored, key=lambda item: item[1])


def analyze_tradeoff(capabilities: dict[CapabilityDimension, float], stability: float) -> Tradeoff:
    complexity = (
        capabilities[Dim.REASONING]
        + capabilities[Dim.ADAPTABILITY]
        + capabilities[Dim.DIVERGENT_THINKING]
    ) / 3
    ratio = complexity / max(stability, 0.1)
    if ratio > 1.5:
        assessment = "High capability, watch for instability"
    elif ratio < 0.5:
        assessment = "Stable but limited complexity handling"
    else:
        assessment = "Balanced profile"
    return Tradeoff(complexity, stability, ratio, assessment)


def recommend(
    capabilities: dict[CapabilityDimension, float],
    stability: float,
    archetype: Archetype,
) -> list[Recommendation]:
    """Rule-based task-assignment advice; the archetype match is always last."""
    recs: list[Recommendation] = []
    if capabilities[Dim.REASONING] > 0.7 and stability < 0.4:
        recs.append(
            Recommendation(
                "pair_with_sentinel",
                "warning",
                "High reasoning but low stability; pair with a sentinel for critical tasks",
            )
        )
    if capabilities[Dim.ADAPTABILITY] < 0.3:
        recs.append(
            Recommendation(
                "specialize",
                "limitation",
                "Limited adaptability; avoid tasks with frequent context switches",
            )
        )
    if capabilities[Dim.DIVERGENT_THINKING] > 0.8:
        recs.append(
            Recommendation(
                "assign_creative_tasks",
                "opportunity",
                "Strong divergent thinking; consider for innovation work",
            )
        )
    if stability > 0.8 and capabilities[Dim.REASONING] < 0.4:
        recs.append(
            Recommendation(
                "routine_tasks",
                "limitation",
                "Very stable but limited complexity handling; best for routine automation",
            )
        )
    if capabilities[Dim.COLLABORATION] > 0.7:
        recs.append(
            Recommendation(
                "assign_orchestration",
                "opportunity",
                "Strong collaboration; consider as orchestrator",
            )
        )
    recs.append(
        Recommendation(
            "archetype_match",
            "archetype_match",
            f"Best matches the {archetype.name} archetype",
            best_for=archetype.best_for,
            avoid_for=archetype.avoid_for,
        )
    )
    return recs


__all__ = [
    "ArchetypeClassifier",
    "Classification",
    "Recommendation",
    "Tradeoff",
    "analyze_tradeoff",
    "archetype_distance",
    "compute_capabilities",
    "estimate_stability",
    "rank_archetypes",
    "recommend",
]
