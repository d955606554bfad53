"""Behavioral traits, red-flag thresholds, and the source-profile map.

Trait scores live in [0, 1]. For most traits higher is better; for
``volatile`` lower is better (``inverse``). A red flag is raised when a
trait crosses its threshold in the unfavorable direction.

Source profiles describe how stable and compliance-aligned an external
information source is. They are configuration, passed into the
assessment engine, so deployments and tests can supply their own map.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, Field


class BehavioralTrait(str, Enum):
    VOLATILE = "volatile"
    COMPLIANT = "compliant"
    CREATIVE = "creative"
    METHODICAL = "methodical"
    RESILIENT = "resilient"
    SELF_CORRECTING = "self_correcting"
    FOCUSED = "focused"
    TRUST_ALIGNED = "trust_aligned"


@dataclass(frozen=True)
class TraitDefinition:
    """How one trait is interpreted.

    Parameters
    ----------
    trait:
        The trait.
    inverse:
        ``True`` when lower scores are better.
    red_flag_threshold:
        Score past which a red flag is raised (above it for inverse traits,
        below it otherwise). ``None`` disables flags for the trait.
    """

    trait: BehavioralTrait
    inverse: bool = False
    red_flag_threshold: float | None = None

    def exceedance(self, score: float) -> float:
        """How far *score* lies past the red-flag threshold; 0 if it does not."""
        if self.red_flag_threshold is None:
            return 0.0
        if self.inverse:
            return max(0.0, score - self.red_flag_threshold)
        return max(0.0, self.red_flag_threshold - score)


TRAIT_DEFINITIONS: dict[BehavioralTrait, TraitDefinition] = {
    BehavioralTrait.VOLATILE: TraitDefinition(BehavioralTrait.VOLATILE, True, 0.7),
    BehavioralTrait.COMPLIANT: TraitDefinition(BehavioralTrait.COMPLIANT, False, 0.3),
    BehavioralTrait.CREATIVE: TraitDefinition(BehavioralTrait.CREATIVE),
    BehavioralTrait.METHODICAL: TraitDefinition(BehavioralTrait.METHODICAL),
    BehavioralTrait.RESILIENT: TraitDefinition(BehavioralTrait.RESILIENT, False, 0.3),
    BehavioralTrait.SELF_CORRECTING: TraitDefinition(
        BehavioralTrait.SELF_CORRECTING, False, 0.3
    ),
    BehavioralTrait.FOCUSED: TraitDefinition(BehavioralTrait.FOCUSED, False, 0.4),
    BehavioralTrait.TRUST_ALIGNED: TraitDefinition(BehavioralTrait.TRUST_ALIGNED, False, 0.4),
}


# ------------------------------------------------------------------
# Source profiles
# ------------------------------------------------------------------


class SourceProfile(BaseModel):
    """Stability and compliance characteristics of an external source."""

    stability: float = Field(ge=0.0, le=1.0)
    compliance: float = Field(ge=0.0, le=1.0)
    category: str = "unknown"


def _default_sources() -> dict[str, SourceProfile]:
    def p(stability: float, compliance: float, category: str) -> SourceProfile:
        return SourceProfile(stability=stability, compliance=compliance, category=category)

    return {
        "docs.github.com": p(0.9, 0.9, "documentation"),
        "developer.mozilla.org": p(0.9, 0.9, "documentation"),
        "stackoverflow.com": p(0.6, 0.7, "community"),
        "github.com": p(0.7, 0.8, "code"),
        "gitlab.com": p(0.7, 0.8, "code"),
        "x.com": p(0.3, 0.4, "social"),
        "twitter.com": p(0.3, 0.4, "social"),
        "reddit.com": p(0.4, 0.5, "social"),
        "openai.com": p(0.7, 0.8, "ai_model"),
        "anthropic.com": p(0.8, 0.9, "ai_model"),
    }


class SourceProfiles(BaseModel):
    """Lookup table from source host to :class:`SourceProfile`.

    Lookup tries the exact (lower-cased) host, then each parent domain, so
    ``api.github.com`` falls back to ``github.com``. Unknown sources get
    ``default``.
    """

    sources: dict[str, SourceProfile] = Field(default_factory=_default_sources)
    default: SourceProfile = Field(
        default_factory=lambda: SourceProfile(stability=0.5, compliance=0.5, category="unknown")
    )

    def lookup(self, source: str) -> SourceProfile:
        host = source.strip().lower()
        if "://" in host:
            host = host.split("://", 1)[1]
        host = host.split("/", 1)[0]
        labels = host.split(".")
        for start in range(len(labels) - 1):
            candidate = ".".join(labels[start:])
            if candidate in self.sources:
                return self.sources[candidate]
        return self.sources.get(host, self.default)


__all__ = [
    "BehavioralTrait",
    "SourceProfile",
    "SourceProfiles",
    "TRAIT_DEFINITIONS",
    "TraitDefinition",
]
