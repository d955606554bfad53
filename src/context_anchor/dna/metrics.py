"""SessionMetrics — the evidence a session commits back into its anchor's DNA."""
from __future__ import annotations

from typing import Union

from pydantic import BaseModel, Field, field_validator, model_validator


class CompetencyObservation(BaseModel):
    """One competency reported by a session."""

    name: str = Field(min_length=1)
    level: float = Field(default=1.0, ge=0.0)
    domain: str | None = None


class PatternReport(BaseModel):
    """One working pattern reported by a session."""

    name: str = Field(min_length=1)
    category: str = "general"
    domain: str | None = None


class SessionMetrics(BaseModel):
    """Metrics for one finished session.

    Parameters
    ----------
    interactions:
        Interactions performed during the session.
    decisions:
        Decisions taken during the session.
    successes:
        Successful interactions. Takes precedence over ``success_rate``.
    success_rate:
        Session success rate in [0, 1] when ``successes`` is not known.
    competencies:
        Competencies demonstrated. Plain strings are accepted as names.
    domains:
        Expertise domains touched.
    patterns:
        Working patterns observed. Plain strings are accepted as names.
    entities:
        Identifiers of entities the session worked with.
    anomalies:
        Anomalies detected during the session.
    corrections:
        Self-corrections made during the session.
    risk_score:
        Session risk in [0, 100], folded into the running risk average.
    avg_response_ms:
        Mean response time for the session, in milliseconds.
    """

    interactions: int = Field(default=0, ge=0)
    decisions: int = Field(default=0, ge=0)
    successes: int | None = Field(default=None, ge=0)
    success_rate: float | None = Field(default=None, ge=0.0, le=1.0)
    competencies: list[CompetencyObservation] = Field(default_factory=list)
    domains: list[str] = Field(default_factory=list)
    patterns: list[PatternReport] = Field(default_factory=list)
    entities: list[str] = Field(default_factory=list)
    anomalies: int = Field(default=0, ge=0)
    corrections: int = Field(default=0, ge=0)
    risk_score: float | None = Field(default=None, ge=0.0, le=100.0)
    avg_response_ms: float | None = Field(default=None, ge=0.0)

    @field_validator("competencies", mode="before")
    @classmethod
    def _coerce_competencies(
        cls, value: list[Union[str, dict, CompetencyObservation]]
    ) -> list[object]:
        return [{"name": v} if isinstance(v, str) else v for v in value or []]

    @field_validator("patterns", mode="before")
    @classmethod
    def _coerce_patterns(
        cls, value: list[Union[str, dict, PatternReport]]
    ) -> list[object]:
        return [{"name": v} if isinstance(v, str) else v for v in value or []]

    @model_validator(mode="after")
    def _check_successes(self) -> "SessionMetrics":
        if self.successes is not None and self.successes > self.interactions:
            raise ValueError(
                f"successes ({self.successes}) cannot exceed interactions "
                f"({self.interactions})"
            )
        return self

    def session_success_rate(self) -> float | None:
        """Return the session's success rate, or None when it reported none."""
        if self.successes is not None:
            if self.interactions == 0:
                return None
            return self.successes / self.interactions
        return self.success_rate

    def session_successes(self) -> int:
        """Return successful interactions, derived from the rate when needed."""
        if self.successes is not None:
            return self.successes
        if self.success_rate is not None:
            return round(self.success_rate * self.interactions)
        return 0


__all__ = ["CompetencyObservation", "PatternReport", "SessionMetrics"]
