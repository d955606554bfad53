"""Capability-space archetype classification."""
from __future__ import annotations

from context_anchor.archetype.catalog import (
    ARCHETYPE_CATALOG,
    Archetype,
    CapabilityDimension,
    get_archetype,
)
from context_anchor.archetype.classifier import (
    ArchetypeClassifier,
    Classification,
    Recommendation,
    Tradeoff,
    compute_capabilities,
    estimate_stability,
    rank_archetypes,
)

__all__ = [
    "ARCHETYPE_CATALOG",
    "Archetype",
    "ArchetypeClassifier",
    "CapabilityDimension",
    "Classification",
    "Recommendation",
    "Tradeoff",
    "compute_capabilities",
    "estimate_stability",
    "get_archetype",
    "rank_archetypes",
]
