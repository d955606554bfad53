"""Behavioral assessment: exposures, traits, trends and red flags."""
from __future__ import annotations

from context_anchor.behavior.records import (
    BehavioralEvent,
    BehavioralEventType,
    ExposureRecord,
    InteractionType,
)
from context_anchor.behavior.traits import (
    TRAIT_DEFINITIONS,
    BehavioralTrait,
    SourceProfile,
    SourceProfiles,
    TraitDefinition,
)
from context_anchor.behavior.assessment import (
    BehavioralAssessment,
    BehavioralAssessmentEngine,
    RedFlag,
    TraitChange,
    TrendAnalysis,
    analyze_trend,
    detect_changes,
)

__all__ = [
    "BehavioralAssessment",
    "BehavioralAssessmentEngine",
    "BehavioralEvent",
    "BehavioralEventType",
    "BehavioralTrait",
    "ExposureRecord",
    "InteractionType",
    "RedFlag",
    "SourceProfile",
    "SourceProfiles",
    "TRAIT_DEFINITIONS",
    "TraitChange",
    "TraitDefinition",
    "TrendAnalysis",
    "analyze_trend",
    "detect_changes",
]
