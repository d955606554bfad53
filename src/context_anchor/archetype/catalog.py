"""Capability dimensions and the fixed archetype catalog.

Capabilities describe what an anchor can do, as opposed to behavioral
traits which describe how it acts. Each archetype is a reference point in
capability space paired with the stability that usually comes with it.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class CapabilityDimension(str, Enum):
    """The eight capability axes, each scored in [0, 1]."""

    REASONING = "reasoning"
    PATTERN_RECOGNITION = "pattern_recognition"
    ADAPTABILITY = "adaptability"
    PRECISION = "precision"
    DIVERGENT_THINKING = "divergent_thinking"
    RESPONSE_SPEED = "response_speed"
    RETENTION = "retention"
    COLLABORATION = "collaboration"


@dataclass(frozen=True)
class Archetype:
    """A named reference profile.

    Parameters
    ----------
    name:
        Archetype key, e.g. ``"sentinel"``.
    description:
        One-line summary.
    capabilities:
        Score per :class:`CapabilityDimension`.
    stability:
        Expected stability in [0, 1].
    best_for, avoid_for:
        Task categories the archetype suits or should not be given.
    """

    name: str
    description: str
    capabilities: dict[CapabilityDimension, float]
    stability: float
    best_for: tuple[str, ...] = ()
    avoid_for: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, object]:
        return {
            "name": self.name,
            "description": self.description,
            "capabilities": {d.value: v for d, v in self.capabilities.items()},
            "stability": self.stability,
            "best_for": list(self.best_for),
            "avoid_for": list(self.avoid_for),
        }


def _vector(*values: float) -> dict[CapabilityDimension, float]:
    return dict(zip(CapabilityDimension, values))


ARCHETYPE_CATALOG: tuple[Archetype, ...] = (
    Archetype(
        name="sentinel",
        description="Highly stable and predictable; suited to routine work.",
        capabilities=_vector(0.3, 0.7, 0.2, 0.9, 0.2, 0.8, 0.6, 0.4),
        stability=0.9,
        best_for=("monitoring", "validation", "routine_tasks", "compliance"),
        avoid_for=("novel_problems", "creative_tasks", "complex_debugging"),
    ),
    Archetype(
        name="artisan",
        description="Balanced capabilities; a good all-rounder.",
        capabilities=_vector(0.6, 0.7, 0.6, 0.7, 0.5, 0.6, 0.7, 0.6),
        stability=0.6,
        best_for=("general_development", "maintenance", "documentation"),
        avoid_for=("cutting_edge_research", "high_stakes_compliance"),
    ),
    Archetype(
        name="sage",
        description="High capability, less predictable; for complex problems.",
        capabilities=_vector(0.9, 0.8, 0.8, 0.5, 0.8, 0.4, 0.9, 0.7),
        stability=0.4,
        best_for=("architecture", "debugging", "research", "optimization"),
        avoid_for=("time_critical", "routine_automation", "simple_tasks"),
    ),
    Archetype(
        name="explorer",
        description="Experimental and creative; for innovation.",
        capabilities=_vector(0.7, 0.6, 0.9, 0.4, 0.95, 0.5, 0.6, 0.8),
        stability=0.3,
        best_for=("innovation", "prototyping", "brainstorming", "cross_domain"),
        avoid_for=("production_code", "compliance", "critical_systems"),
    ),
    Archetype(
        name="diplomat",
        description="Excels at coordination and handoffs.",
        capabilities=_vector(0.5, 0.6, 0.7, 0.6, 0.5, 0.7, 0.8, 0.95),
        stability=0.7,
        best_for=("orchestration", "multi_team", "integration", "handoffs"),
        avoid_for=("deep_technical", "isolated_tasks"),
    ),
)


def get_archetype(name: str) -> Archetype:
    """Return the catalog entry called *name*.

    Raises
    ------
    KeyError
        If no archetype has that name.
    """
    for archetype in ARCHETYPE_CATALOG:
        if archetype.name == name:
            return archetype
    raise KeyError(name)


__all__ = ["ARCHETYPE_CATALOG", "Archetype", "CapabilityDimension", "get_archetype"]
