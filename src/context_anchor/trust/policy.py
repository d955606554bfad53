"""TrustPolicy — sub-score weights, recalculation gate, and decay rates.

Policies allow operators to tune trust dynamics for their deployment.
Sensible defaults are provided for all parameters.
"""
from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class TrustFactor(str, Enum):
    """The sub-scores that make up the composite trust score.

    Declaration order is the order factors appear in evolution records.
    """

    VOLUME = "volume"
    SUCCESS = "success"
    ANOMALY = "anomaly"
    QUALITY = "quality"
    RECENCY = "recency"


DEFAULT_WEIGHTS: dict[TrustFactor, float] = {
    TrustFactor.VOLUME: 0.20,
    TrustFactor.SUCCESS: 0.30,
    TrustFactor.ANOMALY: 0.20,
    TrustFactor.QUALITY: 0.15,
    TrustFactor.RECENCY: 0.15,
}


class TrustPolicy(BaseModel):
    """Configurable trust evolution policy.

    Parameters
    ----------
    factor_weights:
        Fractional weight for each sub-score in the composite score.
        Values must sum to 1.0.
    recalculation_interval:
        New interactions required since the last recalculation before
        trust is recomputed.
    min_score_delta:
        Score movement below which an unchanged level is not persisted.
    recency_decay_per_day:
        Recency sub-score points lost per day since the last DNA update.
    anomaly_penalty:
        Anomaly sub-score points lost per recorded anomaly.
    """

    factor_weights: dict[TrustFactor, float] = Field(
        default_factory=lambda: dict(DEFAULT_WEIGHTS)
    )
    recalculation_interval: int = Field(default=10, ge=1)
    min_score_delta: float = Field(default=1.0, ge=0.0)
    recency_decay_per_day: float = Field(default=2.0, ge=0.0)
    anomaly_penalty: float = Field(default=10.0, ge=0.0)

    def weight(self, factor: TrustFactor) -> float:
        return self.factor_weights.get(factor, DEFAULT_WEIGHTS[factor])

    def validate_weights(self) -> None:
        """Raise ValueError if factor weights do not sum to 1.0."""
        total = sum(self.weight(factor) for factor in TrustFactor)
        if abs(total - 1.0) > 1e-6:
            raise ValueError(
                f"Factor weights must sum to 1.0, got {total:.6f}"
            )


__all__ = ["DEFAULT_WEIGHTS", "TrustFactor", "TrustPolicy"]
