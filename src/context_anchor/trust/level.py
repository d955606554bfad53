"""TrustLevel enumeration and level derivation from composite scores.

Six trust levels are defined. Level boundaries use half-open intervals
so that each score maps to exactly one level.
"""
from __future__ import annotations

from enum import IntEnum


class TrustLevel(IntEnum):
    """Enumerated trust tiers for an identity anchor.

    Values are ordered so that higher integers represent higher trust.

    RESTRICTED (0):
        Accumulated evidence is poor or absent. Supervise everything.
    LIMITED (1):
        Some history, mostly unfavourable. Low-risk work only.
    PROBATIONARY (2):
        Mixed record; trust is being rebuilt.
    STANDARD (3):
        The starting level of every new anchor.
    ESTABLISHED (4):
        Consistently successful over a meaningful volume of work.
    EXEMPLARY (5):
        Long, clean, high-volume track record.
    """

    RESTRICTED = 0
    LIMITED = 1
    PROBATIONARY = 2
    STANDARD = 3
    ESTABLISHED = 4
    EXEMPLARY = 5


# Minimum composite score required to reach each level.
# Scores below LEVEL_THRESHOLDS[LIMITED] map to RESTRICTED.
LEVEL_THRESHOLDS: dict[TrustLevel, float] = {
    TrustLevel.EXEMPLARY: 90.0,
    TrustLevel.ESTABLISHED: 75.0,
    TrustLevel.STANDARD: 50.0,
    TrustLevel.PROBATIONARY: 25.0,
    TrustLevel.LIMITED: 10.0,
}


def derive_level(composite_score: float) -> TrustLevel:
    """Map a composite trust score to a TrustLevel.

    Thresholds are checked from the highest level down; the first one
    that *composite_score* reaches wins.

    Parameters
    ----------
    composite_score:
        Composite trust score (0 – 100).

    Returns
    -------
    TrustLevel
        The corresponding trust level.
    """
    for level, threshold in LEVEL_THRESHOLDS.items():
        if composite_score >= threshold:
            return level
    return TrustLevel.RESTRICTED


__all__ = ["LEVEL_THRESHOLDS", "TrustLevel", "derive_level"]
