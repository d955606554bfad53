"""DNAAccumulator — the single writer of every DNA profile.

Aggregates are updated incrementally from each session's metrics; nothing
is recomputed from history. All mutations go through one optimistic
read-modify-write loop (:meth:`DNAAccumulator._mutate`): load the profile,
apply a change to a copy, and compare-and-swap it back using the profile's
version. A lost race reloads and reapplies the change, so two sessions
committed concurrently for the same anchor never overwrite each other.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable

from context_anchor.dna.metrics import SessionMetrics
from context_anchor.dna.profile import (
    Competency,
    DNAProfile,
    InfluenceSource,
    PatternObservation,
)
from context_anchor.errors import (
    ConcurrentUpdateError,
    ContextAnchorError,
    ProfileNotFoundError,
    VersionConflictError,
)
from context_anchor.ledger.entry import LedgerEventType
from context_anchor.timeutil import utcnow

if TYPE_CHECKING:
    from context_anchor.ledger.chain import EventLedger
    from context_anchor.store.base import AnchorStore

logger = logging.getLogger(__name__)

# Called after every committed accumulation with (anchor_id, stored_profile).
AccumulationListener = Callable[[str, DNAProfile], object]

RISK_SMOOTHING = 0.3
CONCERNING_STABILITY = 0.4
CONCERNING_MIN_INTERACTIONS = 10
POSITIVE_STABILITY = 0.7


def influence_impact(stability: float, interactions: int) -> str:
    """Classify a source's qualitative impact from its stability and exposure."""
    if stability < CONCERNING_STABILITY and interactions > CONCERNING_MIN_INTERACTIONS:
        return "concerning"
    if stability > POSITIVE_STABILITY:
        return "positive"
    return "neutral"


class DNAAccumulator:
    """Maintains running aggregate profiles, one per anchor.

    Parameters
    ----------
    store:
        Durable store holding the profiles.
    ledger:
        Ledger that receives a ``dna_accumulated`` entry per session commit.
    max_retries:
        Compare-and-swap attempts before giving up with
        :class:`~context_anchor.errors.ConcurrentUpdateError`.
    """

    def __init__(self, store: AnchorStore, ledger: EventLedger, max_retries: int = 5) -> None:
        if max_retries < 1:
            raise ValueError(f"max_retries must be >= 1, got {max_retries}")
        self._store = store
        self._ledger = ledger
        self._max_retries = max_retries
        self._listeners: list[AccumulationListener] = []

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_listener(self, listener: AccumulationListener) -> None:
        """Register a callback run after every committed :meth:`accumulate`."""
        self._listeners.append(listener)

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get_profile(self, anchor_id: str) -> DNAProfile:
        """Return the stored profile for *anchor_id*.

        Raises
        ------
        ProfileNotFoundError
            If the anchor has no profile.
        """
        profile = self._store.get_dna(anchor_id)
        if profile is None:
            raise ProfileNotFoundError(anchor_id)
        return profile

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def initialize(self, anchor_id: str) -> DNAProfile:
        """Create an empty profile for a new anchor. Idempotent."""
        return self._store.insert_dna(DNAProfile(anchor_id=anchor_id))

    def accumulate(
        self,
        anchor_id: str,
        metrics: SessionMetrics,
        session_id: str | None = None,
    ) -> DNAProfile:
        """Fold one session's metrics into *anchor_id*'s profile.

        Parameters
        ----------
        anchor_id:
            The anchor the session belonged to.
        metrics:
            The session's metrics.
        session_id:
            Recorded on the ledger entry when given.

        Returns
        -------
        DNAProfile
            The stored profile after the update.

        Raises
        ------
        ProfileNotFoundError
            If the anchor has no profile.
        ConcurrentUpdateError
            If the compare-and-swap kept losing to concurrent writers.
        """
        profile = self._mutate(anchor_id, lambda p: _apply_session(p, metrics))
        self._ledger.append(
            anchor_id,
            session_id,
            LedgerEventType.DNA_ACCUMULATED,
            {
                "interactions": metrics.interactions,
                "decisions": metrics.decisions,
                "session_success_rate": metrics.session_success_rate(),
                "total_interactions": profile.total_interactions,
                "success_rate": round(profile.success_rate, 6),
                "competencies": sorted(c.name for c in metrics.competencies),
                "domains": sorted(set(metrics.domains)),
                "anomalies": metrics.anomalies,
            },
        )
        self._notify(anchor_id, profile)
        return profile

    def record_exposure(
        self,
        anchor_id: str,
        source: str,
        category: str,
        stability: float,
        compliance: float,
        interactions: int = 1,
    ) -> DNAProfile:
        """Add *interactions* exposures to *source* in the influence map."""

        def apply(profile: DNAProfile) -> None:
            now = utcnow()
            entry = profile.influence_sources.get(source)
            if entry is None:
                entry = InfluenceSource(source=source, first_seen=now)
                profile.influence_sources[source] = entry
            entry.category = category
            entry.stability = stability
            entry.compliance = compliance
            entry.interactions += interactions
            entry.impact = influence_impact(stability, entry.interactions)
            entry.last_seen = now

        return self._mutate(anchor_id, apply)

    def apply_assessment(
        self,
        anchor_id: str,
        traits: dict[str, float],
        trend: str,
        trend_confidence: float,
        red_flag_count: int,
    ) -> DNAProfile:
        """Store the outcome of a behavioral assessment."""

        def apply(profile: DNAProfile) -> None:
            profile.traits = dict(traits)
            profile.trend = trend
            profile.trend_confidence = trend_confidence
            profile.red_flag_count = red_flag_count
            profile.last_assessment = utcnow()

        return self._mutate(anchor_id, apply)

    def move_trust_watermark(self, anchor_id: str, expected: int, interactions: int) -> bool:
        """Move the trust-calculation watermark from *expected* to *interactions*.

        Returns False, without writing, when the stored watermark no longer
        equals *expected* because another evaluator moved it first.

        Raises
        ------
        ConcurrentUpdateError
            If every attempt lost to an unrelated concurrent profile update.
        """
        for attempt in range(1, self._max_retries + 1):
            current = self.get_profile(anchor_id)
            if current.interactions_at_last_trust_calc != expected:
                return False
            draft = current.copy()
            draft.interactions_at_last_trust_calc = interactions
            try:
                self._store.update_dna(draft, expected_version=current.version)
                return True
            except VersionConflictError:
                logger.debug(
                    "trust watermark conflict for anchor %s (attempt %d/%d)",
                    anchor_id,
                    attempt,
                    self._max_retries,
                )
        raise ConcurrentUpdateError("dna profile", anchor_id, self._max_retries)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _mutate(self, anchor_id: str, change: Callable[[DNAProfile], None]) -> DNAProfile:
        for attempt in range(1, self._max_retries + 1):
            current = self.get_profile(anchor_id)
            draft = current.copy()
            change(draft)
            try:
                return self._store.update_dna(draft, expected_version=current.version)
            except VersionConflictError:
                logger.debug(
                    "dna update conflict for anchor %s (attempt %d/%d)",
                    anchor_id,
                    attempt,
                    self._max_retries,
                )
        logger.warning(
            "dna update for anchor %s abandoned after %d conflicts",
            anchor_id,
            self._max_retries,
        )
        raise ConcurrentUpdateError("dna profile", anchor_id, self._max_retries)

    def _notify(self, anchor_id: str, profile: DNAProfile) -> None:
        for listener in self._listeners:
            try:
                listener(anchor_id, profile)
            except ContextAnchorError as exc:
                # The session commit already happened; report and carry on.
                logger.warning(
                    "post-accumulation listener failed for anchor %s: %s", anchor_id, exc
                )


def _apply_session(profile: DNAProfile, metrics: SessionMetrics) -> None:
    """Incremental update of *profile* with one session's *metrics*."""
    now = utcnow()
    old_total = profile.total_interactions
    new_total = old_total + metrics.interactions
    weight = metrics.interactions / max(new_total, 1)

    session_rate = metrics.session_success_rate()
    if session_rate is not None:
        profile.success_rate = profile.success_rate * (1 - weight) + session_rate * weight
        successes = metrics.session_successes()
        profile.outcomes_successful += successes
        profile.outcomes_failed += max(0, metrics.interactions - successes)

    if metrics.avg_response_ms is not None and metrics.interactions > 0:
        if profile.avg_response_ms is None or old_total == 0:
            profile.avg_response_ms = metrics.avg_response_ms
        else:
            profile.avg_response_ms = (
                profile.avg_response_ms * (1 - weight) + metrics.avg_response_ms * weight
            )

    profile.total_interactions = new_total
    profile.total_decisions += metrics.decisions
    profile.anomaly_count += metrics.anomalies
    profile.corrections += metrics.corrections

    if metrics.risk_score is not None:
        profile.risk_score = (
            profile.risk_score * (1 - RISK_SMOOTHING) + metrics.risk_score * RISK_SMOOTHING
        )

    for observed in metrics.competencies:
        existing = profile.competencies.get(observed.name)
        if existing is None:
            profile.competencies[observed.name] = Competency(
                name=observed.name, level=observed.level, observations=1, domain=observed.domain
            )
        else:
            existing.level = max(existing.level, observed.level)
            existing.observations += 1
            if existing.domain is None:
                existing.domain = observed.domain

    for domain in metrics.domains:
        if domain not in profile.expertise_domains:
            profile.expertise_domains.append(domain)

    for report in metrics.patterns:
        pattern = profile.patterns.get(report.name)
        if pattern is None:
            profile.patterns[report.name] = PatternObservation(
                name=report.name, category=report.category, domain=report.domain
            )
        else:
            pattern.count += 1

    seen = set(profile.unique_entities)
    for entity in metrics.entities:
        if entity not in seen:
            seen.add(entity)
            profile.unique_entities.append(entity)

    if profile.first_updated is None:
        profile.first_updated = now
    profile.last_updated = now


__all__ = ["AccumulationListener", "DNAAccumulator", "influence_impact"]
