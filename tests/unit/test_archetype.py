"""Unit tests for context_anchor.archetype — catalog, capabilities and classification."""
from __future__ import annotations

import pytest

from context_anchor.archetype.catalog import (
    ARCHETYPE_CATALOG,
    CapabilityDimension,
    get_archetype,
)
from context_anchor.archetype.classifier import (
    ArchetypeClassifier,
    analyze_tradeoff,
    archetype_distance,
    compute_capabilities,
    estimate_stability,
    rank_archetypes,
    recommend,
)
from context_anchor.dna.accumulator import DNAAccumulator
from context_anchor.dna.metrics import SessionMetrics
from context_anchor.dna.profile import Competency, DNAProfile, PatternObservation
from context_anchor.errors import ProfileNotFoundError
from context_anchor.ledger.chain import EventLedger
from context_anchor.store import InMemoryAnchorStore

Dim = CapabilityDimension
ANCHOR = "anchor-arch"


def _caps(**values: float) -> dict[CapabilityDimension, float]:
    caps = {dim: 0.5 for dim in CapabilityDimension}
    caps.update({Dim(name): value for name, value in values.items()})
    return caps


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def accumulator() -> DNAAccumulator:
    store = InMemoryAnchorStore()
    acc = DNAAccumulator(store, EventLedger(store))
    acc.initialize(ANCHOR)
    return acc


@pytest.fixture()
def classifier(accumulator: DNAAccumulator) -> ArchetypeClassifier:
    return ArchetypeClassifier(accumulator)


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


class TestCatalog:
    def test_five_archetypes(self) -> None:
        assert [a.name for a in ARCHETYPE_CATALOG] == [
            "sentinel",
            "artisan",
            "sage",
            "explorer",
            "diplomat",
        ]

    def test_every_archetype_covers_all_dimensions(self) -> None:
        for archetype in ARCHETYPE_CATALOG:
            assert set(archetype.capabilities) == set(CapabilityDimension)

    def test_get_archetype(self) -> None:
        assert get_archetype("sage").stability == pytest.approx(0.4)

    def test_get_unknown_archetype(self) -> None:
        with pytest.raises(KeyError):
            get_archetype("wizard")


# ---------------------------------------------------------------------------
# Capabilities and stability
# ---------------------------------------------------------------------------


class TestCapabilities:
    def test_empty_profile_defaults(self) -> None:
        caps = compute_capabilities(DNAProfile(anchor_id="a"))
        assert caps[Dim.REASONING] == pytest.approx(0.0)
        assert caps[Dim.ADAPTABILITY] == pytest.approx(0.5)
        assert caps[Dim.RESPONSE_SPEED] == pytest.approx(0.6)
        assert caps[Dim.COLLABORATION] == pytest.approx(0.5)

    def test_profile_driven_scores(self) -> None:
        profile = DNAProfile(
            anchor_id="a",
            total_interactions=100,
            success_rate=0.9,
            avg_response_ms=2000.0,
            competencies={
                "python": Competency("python", domain="backend"),
                "sql": Competency("sql", domain="data"),
                "review": Competency("review"),
                "docs": Competency("docs", domain="backend"),
            },
            patterns={"trace": PatternObservation("trace", category="analysis", count=3)},
        )
        caps = compute_capabilities(profile)
        assert caps[Dim.REASONING] == pytest.approx(0.5)
        assert caps[Dim.DIVERGENT_THINKING] == pytest.approx(0.4)
        assert caps[Dim.RESPONSE_SPEED] == pytest.approx(0.8)
        assert caps[Dim.RETENTION] == pytest.approx(0.5)
        assert caps[Dim.PRECISION] == pytest.approx(0.9)

    def test_anomalies_reduce_precision(self) -> None:
        profile = DNAProfile(anchor_id="a", success_rate=0.9, anomaly_count=5)
        assert compute_capabilities(profile)[Dim.PRECISION] == pytest.approx(0.8)

    def test_stability_of_empty_profile(self) -> None:
        caps = compute_capabilities(DNAProfile(anchor_id="a"))
        assert estimate_stability(caps, {}) == pytest.approx(0.575)

    def test_volatile_traits_lower_stability(self) -> None:
        caps = _caps()
        calm = estimate_stability(caps, {"volatile": 0.1})
        wild = estimate_stability(caps, {"volatile": 0.9})
        assert calm > wild


# ---------------------------------------------------------------------------
# Matching
# ---------------------------------------------------------------------------


class TestMatching:
    def test_exact_archetype_has_zero_distance(self) -> None:
        sentinel = get_archetype("sentinel")
        assert archetype_distance(dict(sentinel.capabilities), 0.9, sentinel) == pytest.approx(0.0)

    def test_stability_gap_counts_twice(self) -> None:
        sentinel = get_archetype("sentinel")
        assert archetype_distance(dict(sentinel.capabilities), 0.8, sentinel) == pytest.approx(0.2)

    def test_ranking_nearest_first(self) -> None:
        explorer = get_archetype("explorer")
        ranking = rank_archetypes(dict(explorer.capabilities), explorer.stability)
        assert ranking[0][0] == "explorer"
        distances = [d for _, d in ranking]
        assert distances == sorted(distances)
        assert len(ranking) == 5

    def test_tradeoff_assessments(self) -> None:
        low = analyze_tradeoff(compute_capabilities(DNAProfile(anchor_id="a")), 0.575)
        assert low.assessment.startswith("Stable but limited")
        high = analyze_tradeoff(
            _caps(reasoning=1.0, adaptability=1.0, divergent_thinking=1.0), 0.5
        )
        assert high.ratio == pytest.approx(2.0)
        assert high.assessment.startswith("High capability")

    def test_recommendations_end_with_archetype_match(self) -> None:
        sage = get_archetype("sage")
        recs = recommend(_caps(reasoning=0.8, adaptability=0.2), 0.3, sage)
        actions = [r.action for r in recs]
        assert actions == ["pair_with_sentinel", "specialize", "archetype_match"]
        assert recs[-1].best_for == sage.best_for

    def test_recommendations_for_stable_simple_profile(self) -> None:
        recs = recommend(_caps(reasoning=0.2, collaboration=0.9), 0.85, get_archetype("sentinel"))
        assert [r.action for r in recs] == [
            "routine_tasks",
            "assign_orchestration",
            "archetype_match",
        ]


# ---------------------------------------------------------------------------
# ArchetypeClassifier
# ---------------------------------------------------------------------------


class TestArchetypeClassifier:
    def test_classification_uses_nearest(self, classifier: ArchetypeClassifier) -> None:
        result = classifier.classify(ANCHOR)
        assert result.archetype.name == result.ranking[0][0]
        assert result.distance == pytest.approx(result.ranking[0][1])
        assert result.recommendations[-1].action == "archetype_match"

    def test_classification_follows_accumulated_dna(
        self, classifier: ArchetypeClassifier, accumulator: DNAAccumulator
    ) -> None:
        before = classifier.classify(ANCHOR)
        accumulator.accumulate(ANCHOR, SessionMetrics(interactions=200, successes=190))
        after = classifier.classify(ANCHOR)
        assert after.capabilities[Dim.RETENTION] == pytest.approx(1.0)
        assert after.capabilities[Dim.PRECISION] > before.capabilities[Dim.PRECISION]

    def test_to_dict(self, classifier: ArchetypeClassifier) -> None:
        data = classifier.classify(ANCHOR).to_dict()
        assert data["anchor_id"] == ANCHOR
        assert set(data["capabilities"]) == {d.value for d in CapabilityDimension}

    def test_unknown_anchor(self, classifier: ArchetypeClassifier) -> None:
        with pytest.raises(ProfileNotFoundError):
            classifier.classify("ghost")

    def test_empty_catalog_rejected(self, accumulator: DNAAccumulator) -> None:
        with pytest.raises(ValueError):
            ArchetypeClassifier(accumulator, catalog=())
