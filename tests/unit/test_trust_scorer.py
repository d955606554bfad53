"""Unit tests for context_anchor.trust.scorer — TrustScore dataclass and TrustScorer."""
from __future__ import annotations

import datetime
import math

import pytest

from context_anchor.dna.profile import DNAProfile
from context_anchor.trust.level import TrustLevel
from context_anchor.trust.policy import TrustFactor, TrustPolicy
from context_anchor.trust.scorer import TrustScore, TrustScorer

NOW = datetime.datetime(2026, 3, 1, 12, 0, tzinfo=datetime.timezone.utc)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def scorer() -> TrustScorer:
    return TrustScorer()


@pytest.fixture()
def twelve_interaction_profile() -> DNAProfile:
    return DNAProfile(
        anchor_id="anchor-1",
        total_interactions=12,
        success_rate=0.75,
        outcomes_successful=9,
        outcomes_failed=3,
        last_updated=NOW,
    )


# ---------------------------------------------------------------------------
# TrustScore dataclass
# ---------------------------------------------------------------------------


class TestTrustScore:
    def test_to_dict_level_is_int(self) -> None:
        score = TrustScore(
            anchor_id="a",
            factors={f: 50.0 for f in TrustFactor},
            composite=50.0,
            level=TrustLevel.STANDARD,
        )
        data = score.to_dict()
        assert data["level"] == 3
        assert data["level_name"] == "STANDARD"

    def test_factor_breakdown_follows_factor_order(self) -> None:
        score = TrustScore(
            anchor_id="a",
            factors={f: 10.0 for f in TrustFactor},
            composite=10.0,
            level=TrustLevel.LIMITED,
            weights={f: 0.2 for f in TrustFactor},
        )
        names = [item["name"] for item in score.factor_breakdown()]
        assert names == ["volume", "success", "anomaly", "quality", "recency"]
        assert score.factor_breakdown()[0]["contribution"] == pytest.approx(2.0)


# ---------------------------------------------------------------------------
# TrustScorer
# ---------------------------------------------------------------------------


class TestTrustScorer:
    def test_twelve_interactions_nine_successes(
        self, scorer: TrustScorer, twelve_interaction_profile: DNAProfile
    ) -> None:
        score = scorer.score(twelve_interaction_profile, NOW)
        assert score.composite == pytest.approx(76.96, abs=0.01)
        assert score.level == TrustLevel.ESTABLISHED

    def test_volume_formula(self) -> None:
        profile = DNAProfile(
            anchor_id="a",
            total_interactions=99,
            total_decisions=9,
            unique_entities=[f"e{i}" for i in range(9)],
        )
        expected = math.log10(100) * 20 + math.log10(10) * 15 + math.log10(10) * 10
        assert TrustScorer.volume_score(profile) == pytest.approx(expected)

    def test_volume_is_capped_at_100(self) -> None:
        profile = DNAProfile(
            anchor_id="a",
            total_interactions=10**9,
            total_decisions=10**9,
            unique_entities=[str(i) for i in range(1000)],
        )
        assert TrustScorer.volume_score(profile) == pytest.approx(100.0)

    def test_anomalies_reduce_anomaly_score(self, scorer: TrustScorer) -> None:
        profile = DNAProfile(anchor_id="a", anomaly_count=3, last_updated=NOW)
        score = scorer.score(profile, NOW)
        assert score.factors[TrustFactor.ANOMALY] == pytest.approx(70.0)

    def test_anomaly_score_floors_at_zero(self, scorer: TrustScorer) -> None:
        profile = DNAProfile(anchor_id="a", anomaly_count=50, last_updated=NOW)
        assert scorer.score(profile, NOW).factors[TrustFactor.ANOMALY] == pytest.approx(0.0)

    def test_quality_is_inverse_risk(self, scorer: TrustScorer) -> None:
        profile = DNAProfile(anchor_id="a", risk_score=35.0, last_updated=NOW)
        assert scorer.score(profile, NOW).factors[TrustFactor.QUALITY] == pytest.approx(65.0)

    def test_recency_without_updates_is_full(self, scorer: TrustScorer) -> None:
        profile = DNAProfile(anchor_id="a")
        assert scorer.score(profile, NOW).factors[TrustFactor.RECENCY] == pytest.approx(100.0)

    def test_recency_decays_per_day(self, scorer: TrustScorer) -> None:
        profile = DNAProfile(anchor_id="a", last_updated=NOW - datetime.timedelta(days=10))
        assert scorer.score(profile, NOW).factors[TrustFactor.RECENCY] == pytest.approx(80.0)

    def test_recency_floors_at_zero(self, scorer: TrustScorer) -> None:
        profile = DNAProfile(anchor_id="a", last_updated=NOW - datetime.timedelta(days=400))
        assert scorer.score(profile, NOW).factors[TrustFactor.RECENCY] == pytest.approx(0.0)

    def test_composite_is_rounded_to_two_decimals(
        self, scorer: TrustScorer, twelve_interaction_profile: DNAProfile
    ) -> None:
        composite = scorer.score(twelve_interaction_profile, NOW).composite
        assert composite == round(composite, 2)

    def test_invalid_policy_weights_rejected(self) -> None:
        with pytest.raises(ValueError):
            TrustScorer(TrustPolicy(factor_weights={f: 1.0 for f in TrustFactor}))

    def test_custom_policy_changes_composite(self, twelve_interaction_profile: DNAProfile) -> None:
        policy = TrustPolicy(
            factor_weights={
                TrustFactor.VOLUME: 0.0,
                TrustFactor.SUCCESS: 1.0,
                TrustFactor.ANOMALY: 0.0,
                TrustFactor.QUALITY: 0.0,
                TrustFactor.RECENCY: 0.0,
            }
        )
        score = TrustScorer(policy).score(twelve_interaction_profile, NOW)
        assert score.composite == pytest.approx(75.0)
