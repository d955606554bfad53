"""Per-anchor DNA profiles and their single writer."""
from __future__ import annotations

from context_anchor.dna.profile import (
    Competency,
    DNAProfile,
    InfluenceSource,
    PatternObservation,
)
from context_anchor.dna.metrics import CompetencyObservation, PatternReport, SessionMetrics
from context_anchor.dna.accumulator import AccumulationListener, DNAAccumulator, influence_impact

__all__ = [
    "AccumulationListener",
    "Competency",
    "CompetencyObservation",
    "DNAAccumulator",
    "DNAProfile",
    "InfluenceSource",
    "PatternObservation",
    "PatternReport",
    "SessionMetrics",
    "influence_impact",
]
