"""TrustScorer — composite trust scoring from an anchor's DNA profile.

Five sub-scores (volume, success, anomaly, quality, recency), each on a
0 – 100 scale, are weighted by the active :class:`TrustPolicy`. The
composite maps to a TrustLevel via the thresholds in trust.level.
"""
from __future__ import annotations

import datetime
import math
from dataclasses import dataclass, field

from context_anchor.dna.profile import DNAProfile
from context_anchor.timeutil import days_between, utcnow
from context_anchor.trust.level import TrustLevel, derive_level
from context_anchor.trust.policy import TrustFactor, TrustPolicy


@dataclass
class TrustScore:
    """Computed trust score for a single anchor at a point in time.

    Parameters
    ----------
    anchor_id:
        The anchor whose trust is being measured.
    factors:
        Per-factor sub-scores keyed by TrustFactor (0 – 100 each).
    composite:
        Weighted composite score, rounded to two decimals.
    level:
        TrustLevel derived from the composite score.
    weights:
        The weights that produced ``composite``.
    timestamp:
        UTC datetime when this score was computed.
    """

    anchor_id: str
    factors: dict[TrustFactor, float]
    composite: float
    level: TrustLevel
    weights: dict[TrustFactor, float] = field(default_factory=dict)
    timestamp: datetime.datetime = field(default_factory=utcnow)

    def factor_breakdown(self) -> list[dict[str, object]]:
        """Return the sub-scores in TrustFactor order with their contributions."""
        return [
            {
                "name": factor.value,
                "score": round(self.factors[factor], 4),
                "weight": self.weights.get(factor, 0.0),
                "contribution": round(self.factors[factor] * self.weights.get(factor, 0.0), 4),
            }
            for factor in TrustFactor
        ]

    def to_dict(self) -> dict[str, object]:
        """Serialize to a plain dictionary."""
        return {
            "anchor_id": self.anchor_id,
            "factors": {f.value: score for f, score in self.factors.items()},
            "composite": self.composite,
            "level": int(self.level),
            "level_name": self.level.name,
            "timestamp": self.timestamp.isoformat(),
        }


class TrustScorer:
    """Scores DNA profiles against a trust policy.

    Parameters
    ----------
    policy:
        Trust policy defining weights and decay rates.
        Defaults to the standard policy with no customization.
    """

    def __init__(self, policy: TrustPolicy | None = None) -> None:
        self._policy: TrustPolicy = policy if policy is not None else TrustPolicy()
        self._policy.validate_weights()

    @property
    def policy(self) -> TrustPolicy:
        return self._policy

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------

    def score(self, profile: DNAProfile, now: datetime.datetime | None = None) -> TrustScore:
        """Compute a TrustScore for *profile*.

        Parameters
        ----------
        profile:
            The anchor's accumulated DNA profile.
        now:
            Reference time for the recency sub-score. Defaults to now.

        Returns
        -------
        TrustScore
            Fully computed trust score with composite and level.
        """
        moment = now if now is not None else utcnow()
        factors = {
            TrustFactor.VOLUME: self.volume_score(profile),
            TrustFactor.SUCCESS: _clamp(profile.success_rate * 100),
            TrustFactor.ANOMALY: 100.0
            - min(100.0, profile.anomaly_count * self._policy.anomaly_penalty),
            TrustFactor.QUALITY: _clamp(100.0 - profile.risk_score),
            TrustFactor.RECENCY: self.recency_score(profile, moment),
        }
        weights = {factor: self._policy.weight(factor) for factor in TrustFactor}
        composite = sum(factors[f] * weights[f] for f in TrustFactor)
        composite = round(_clamp(composite), 2)
        return TrustScore(
            anchor_id=profile.anchor_id,
            factors=factors,
            composite=composite,
            level=derive_level(composite),
            weights=weights,
            timestamp=moment,
        )

    @staticmethod
    def volume_score(profile: DNAProfile) -> float:
        """Logarithmic credit for interactions, decisions and distinct entities."""
        raw = (
            math.log10(profile.total_interactions + 1) * 20
            + math.log10(profile.total_decisions + 1) * 15
            + math.log10(len(profile.unique_entities) + 1) * 10
        )
        return min(100.0, raw)

    def recency_score(self, profile: DNAProfile, now: datetime.datetime) -> float:
        if profile.last_updated is None:
            return 100.0
        days = days_between(profile.last_updated, now)
        return max(0.0, 100.0 - days * self._policy.recency_decay_per_day)


def _clamp(value: float) -> float:
    return max(0.0, min(100.0, value))


__all__ = ["TrustScore", "TrustScorer"]
