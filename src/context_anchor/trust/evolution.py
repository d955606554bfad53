"""TrustEvolutionEngine — recalculates anchor trust from accumulated DNA.

Trust is recalculated only after enough new evidence has arrived (the
policy's ``recalculation_interval`` of interactions since the last
calculation). A recalculation that moves the score by less than
``min_score_delta`` without changing the level is not persisted, but it
still resets the evidence gate.

An evaluation claims the gate by compare-and-swap on the profile's
watermark, so concurrent evaluators persist at most one record. A claim
whose persist step fails is handed back.
"""
from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from context_anchor.dna.profile import DNAProfile
from context_anchor.errors import AnchorNotFoundError, ContextAnchorError
from context_anchor.identity.anchor import AnchorStatus, IdentityAnchor
from context_anchor.identity.resolver import update_anchor_with_retry
from context_anchor.ledger.entry import LedgerEventType
from context_anchor.trust.policy import TrustPolicy
from context_anchor.trust.record import TrustEvolutionRecord
from context_anchor.trust.scorer import TrustScore, TrustScorer

if TYPE_CHECKING:
    from context_anchor.dna.accumulator import DNAAccumulator
    from context_anchor.ledger.chain import EventLedger
    from context_anchor.store.base import AnchorStore

logger = logging.getLogger(__name__)

TRIGGER_EXPERIENCE = "experience_accumulated"


class TrustEvaluationStatus(str, Enum):
    EVOLVED = "evolved"
    INSUFFICIENT_DATA = "insufficient_data"
    UNCHANGED = "unchanged"


@dataclass(frozen=True)
class TrustEvaluation:
    """Outcome of one :meth:`TrustEvolutionEngine.evaluate` call.

    ``score`` is None when the evidence gate stopped the calculation;
    ``record`` is set only when the change was persisted.
    """

    anchor_id: str
    status: TrustEvaluationStatus
    record: TrustEvolutionRecord | None = None
    score: TrustScore | None = None
    new_interactions: int = 0

    def to_dict(self) -> dict[str, object]:
        return {
            "anchor_id": self.anchor_id,
            "status": self.status.value,
            "new_interactions": self.new_interactions,
            "score": self.score.to_dict() if self.score else None,
            "record": self.record.to_dict() if self.record else None,
        }


def evolution_severity(score_delta: float, level_delta: int) -> int:
    """Severity in [0, 10] of a trust change."""
    return min(10, 2 * abs(level_delta) + round(abs(score_delta) / 10))


class TrustEvolutionEngine:
    """Evolves anchor trust scores and levels from DNA evidence.

    Parameters
    ----------
    store:
        Durable store for anchors and trust evolution records.
    ledger:
        Ledger that receives a ``trust_evolved`` entry per persisted change.
    accumulator:
        DNA accumulator; source of profiles and keeper of the evidence gate.
    policy:
        Trust policy. Defaults to the standard policy.
    max_retries:
        Compare-and-swap attempts for the anchor update.
    """

    def __init__(
        self,
        store: AnchorStore,
        ledger: EventLedger,
        accumulator: DNAAccumulator,
        policy: TrustPolicy | None = None,
        max_retries: int = 5,
    ) -> None:
        self._store = store
        self._ledger = ledger
        self._accumulator = accumulator
        self._policy = policy if policy is not None else TrustPolicy()
        self._scorer = TrustScorer(self._policy)
        self._max_retries = max_retries

    @property
    def policy(self) -> TrustPolicy:
        return self._policy

    @property
    def scorer(self) -> TrustScorer:
        return self._scorer

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def evaluate(
        self, anchor_id: str, now: datetime.datetime | None = None
    ) -> TrustEvaluation:
        """Recalculate trust for *anchor_id* if enough evidence has arrived.

        Parameters
        ----------
        anchor_id:
            The anchor to evaluate.
        now:
            Reference time for the recency sub-score.

        Returns
        -------
        TrustEvaluation
            ``insufficient_data`` when the gate is closed, ``unchanged`` when
            the movement was too small to persist, otherwise ``evolved``.

        Raises
        ------
        AnchorNotFoundError
            If the anchor is missing or retired.
        ProfileNotFoundError
            If the anchor has no DNA profile.
        ConcurrentUpdateError
            If the anchor or profile update kept losing to concurrent writers.
        """
        anchor = self._store.get_anchor(anchor_id)
        if anchor is None or anchor.status is AnchorStatus.RETIRED:
            raise AnchorNotFoundError(anchor_id)
        profile = self._accumulator.get_profile(anchor_id)

        new_interactions = profile.total_interactions - profile.interactions_at_last_trust_calc
        if new_interactions < self._policy.recalculation_interval:
            return TrustEvaluation(
                anchor_id=anchor_id,
                status=TrustEvaluationStatus.INSUFFICIENT_DATA,
                new_interactions=new_interactions,
            )

        score = self._scorer.score(profile, now)
        watermark = profile.interactions_at_last_trust_calc
        if not self._accumulator.move_trust_watermark(
            anchor_id, watermark, profile.total_interactions
        ):
            logger.debug("trust evaluation for anchor %s already claimed", anchor_id)
            return TrustEvaluation(
                anchor_id=anchor_id,
                status=TrustEvaluationStatus.INSUFFICIENT_DATA,
                new_interactions=new_interactions,
            )

        delta = score.composite - anchor.trust_score
        if abs(delta) < self._policy.min_score_delta and int(score.level) == anchor.trust_level:
            return TrustEvaluation(
                anchor_id=anchor_id,
                status=TrustEvaluationStatus.UNCHANGED,
                score=score,
                new_interactions=new_interactions,
            )

        try:
            record = self._persist(anchor_id, score, profile)
        except ContextAnchorError:
            self._release_gate(anchor_id, profile.total_interactions, watermark)
            raise
        return TrustEvaluation(
            anchor_id=anchor_id,
            status=TrustEvaluationStatus.EVOLVED,
            record=record,
            score=score,
            new_interactions=new_interactions,
        )

    def maybe_evolve(self, anchor_id: str) -> TrustEvolutionRecord | None:
        """Return the persisted record of an evaluation, or None if nothing changed."""
        return self.evaluate(anchor_id).record

    def on_accumulated(self, anchor_id: str, profile: DNAProfile) -> None:
        """Accumulation listener: evaluate trust after each committed session."""
        if profile.total_interactions - profile.interactions_at_last_trust_calc < (
            self._policy.recalculation_interval
        ):
            return
        anchor = self._store.get_anchor(anchor_id)
        if anchor is None or anchor.status is AnchorStatus.RETIRED:
            logger.debug("skipping trust evaluation for inactive anchor %s", anchor_id)
            return
        self.evaluate(anchor_id)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _release_gate(self, anchor_id: str, claimed: int, previous: int) -> None:
        try:
            released = self._accumulator.move_trust_watermark(anchor_id, claimed, previous)
        except ContextAnchorError as exc:
            released = False
            logger.warning("could not reopen trust gate for anchor %s: %s", anchor_id, exc)
        if not released:
            logger.warning(
                "trust gate for anchor %s stays closed after a failed evaluation", anchor_id
            )

    def _persist(
        self, anchor_id: str, score: TrustScore, profile: DNAProfile
    ) -> TrustEvolutionRecord:
        previous: dict[str, float] = {}

        def apply(anchor: IdentityAnchor) -> None:
            previous["score"] = anchor.trust_score
            previous["level"] = anchor.trust_level
            anchor.trust_score = score.composite
            anchor.trust_level = int(score.level)

        update_anchor_with_retry(
            self._store, anchor_id, apply, self._max_retries, allow_retired=False
        )
        previous_score = previous["score"]
        previous_level = int(previous["level"])
        record = TrustEvolutionRecord(
            anchor_id=anchor_id,
            previous_score=previous_score,
            new_score=score.composite,
            previous_level=previous_level,
            new_level=int(score.level),
            factors=score.factor_breakdown(),
            trigger=TRIGGER_EXPERIENCE,
            severity=evolution_severity(
                score.composite - previous_score, int(score.level) - previous_level
            ),
            interactions=profile.total_interactions,
        )
        self._store.append_trust_record(record)
        self._ledger.append(
            anchor_id,
            None,
            LedgerEventType.TRUST_EVOLVED,
            {
                "record_id": record.record_id,
                "previous_score": record.previous_score,
                "new_score": record.new_score,
                "previous_level": record.previous_level,
                "new_level": record.new_level,
                "content_hash": record.content_hash,
            },
        )
        logger.info(
            "trust for anchor %s evolved %.2f -> %.2f (level %d -> %d)",
            anchor_id,
            record.previous_score,
            record.new_score,
            record.previous_level,
            record.new_level,
        )
        return record


__all__ = [
    "TrustEvaluation",
    "TrustEvaluationStatus",
    "TrustEvolutionEngine",
    "evolution_severity",
]
