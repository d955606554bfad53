"""Trust levels, scoring policy, and experience-driven trust evolution."""
from __future__ import annotations

from context_anchor.trust.level import LEVEL_THRESHOLDS, TrustLevel, derive_level
from context_anchor.trust.policy import DEFAULT_WEIGHTS, TrustFactor, TrustPolicy
from context_anchor.trust.record import TrustEvolutionRecord
from context_anchor.trust.scorer import TrustScore, TrustScorer
from context_anchor.trust.evolution import (
    TrustEvaluation,
    TrustEvaluationStatus,
    TrustEvolutionEngine,
    evolution_severity,
)
from context_anchor.trust.history import TrustHistory

__all__ = [
    "DEFAULT_WEIGHTS",
    "LEVEL_THRESHOLDS",
    "TrustEvaluation",
    "TrustEvaluationStatus",
    "TrustEvolutionEngine",
    "TrustEvolutionRecord",
    "TrustFactor",
    "TrustHistory",
    "TrustLevel",
    "TrustPolicy",
    "TrustScore",
    "TrustScorer",
    "derive_level",
    "evolution_severity",
]
