"""ContextEngine — the caller-facing facade over every component.

The engine wires the ledger, DNA accumulator, resolver, behavioral
assessment, trust evolution and archetype classifier around one store,
and registers trust evolution as a post-accumulation listener so each
committed session can move an anchor's trust.

Every public method returns an :class:`~context_anchor.errors.EngineResult`.
Typed engine errors become failed results carrying their
:class:`~context_anchor.errors.ErrorKind`; the components underneath
raise, the facade never does.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, TypeVar

from pydantic import ValidationError

from context_anchor.archetype.classifier import ArchetypeClassifier, Classification
from context_anchor.behavior.assessment import BehavioralAssessment, BehavioralAssessmentEngine
from context_anchor.behavior.records import ExposureRecord, InteractionType
from context_anchor.config import EngineSettings
from context_anchor.dna.accumulator import DNAAccumulator
from context_anchor.dna.metrics import SessionMetrics
from context_anchor.dna.profile import DNAProfile
from context_anchor.errors import ContextAnchorError, EngineResult, ErrorKind
from context_anchor.identity.anchor import AnchorStatus, IdentityAnchor, SessionBinding
from context_anchor.identity.hints import AnchorHints
from context_anchor.identity.minting import HttpMintingAuthority, MintingAuthority
from context_anchor.identity.resolver import AnchorResolver, PendingAnchor, Resolution
from context_anchor.ledger.attestation import ChainAttestation, LedgerAttestor
from context_anchor.ledger.chain import ChainVerification, EventLedger
from context_anchor.store import AnchorStore, SQLiteAnchorStore
from context_anchor.trust.evolution import TrustEvaluationStatus, TrustEvolutionEngine
from context_anchor.trust.history import TrustHistory
from context_anchor.trust.record import TrustEvolutionRecord

logger = logging.getLogger(__name__)

T = TypeVar("T")

NOT_ENOUGH_EVIDENCE = "not enough new evidence"


class ContextEngine:
    """Identity resolution and trust evolution over a single store.

    Parameters
    ----------
    store:
        Durable store shared by every component.
    settings:
        Engine settings. Defaults to :class:`EngineSettings` defaults.
    authority:
        Minting authority. When omitted and ``settings.minting_url`` is set,
        an :class:`HttpMintingAuthority` is built from the settings.
    attestation_key:
        Raw Ed25519 private key for ledger attestations. A fresh key is
        generated when omitted.

    Example
    -------
    ::

        engine = ContextEngine(InMemoryAnchorStore())
        resolution = engine.resolve({"project_path": "/srv/app"}).value
        anchor = engine.create_anchor(resolution.pending_anchor).value
    """

    def __init__(
        self,
        store: AnchorStore,
        settings: EngineSettings | None = None,
        authority: MintingAuthority | None = None,
        attestation_key: bytes | None = None,
    ) -> None:
        self._settings = settings if settings is not None else EngineSettings()
        if authority is None and self._settings.minting_url:
            authority = HttpMintingAuthority(
                self._settings.minting_url,
                token=self._settings.minting_token,
                timeout=self._settings.minting_timeout,
            )
        retries = self._settings.max_update_retries

        self.store = store
        self.ledger = EventLedger(store)
        self.accumulator = DNAAccumulator(store, self.ledger, max_retries=retries)
        self.resolver = AnchorResolver(
            store, self.ledger, self.accumulator, authority=authority, max_retries=retries
        )
        self.behavior = BehavioralAssessmentEngine(
            store, self.accumulator, self._settings.source_profiles
        )
        self.trust = TrustEvolutionEngine(
            store,
            self.ledger,
            self.accumulator,
            policy=self._settings.trust_policy,
            max_retries=retries,
        )
        self.trust_history = TrustHistory(store)
        self.archetypes = ArchetypeClassifier(self.accumulator)
        self.attestor = LedgerAttestor(self.ledger, attestation_key)
        self.accumulator.add_listener(self.trust.on_accumulated)

    @classmethod
    def from_settings(
        cls,
        settings: EngineSettings | None = None,
        authority: MintingAuthority | None = None,
    ) -> "ContextEngine":
        """Build an engine over a SQLite store at ``settings.database_path``.

        Settings default to :meth:`EngineSettings.from_env`.
        """
        settings = settings if settings is not None else EngineSettings.from_env()
        return cls(SQLiteAnchorStore(settings.database_path), settings, authority)

    @property
    def settings(self) -> EngineSettings:
        return self._settings

    def close(self) -> None:
        self.store.close()

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    def resolve(self, hints: AnchorHints | dict[str, Any]) -> EngineResult[Resolution]:
        """Resolve session hints to an existing anchor or a pending one."""
        return self._run(lambda: self.resolver.resolve(_as_hints(hints)))

    def create_anchor(
        self,
        pending: PendingAnchor,
        metadata: dict[str, Any] | None = None,
    ) -> EngineResult[IdentityAnchor]:
        """Create the anchor for a confirmed pending resolution."""
        return self._run(lambda: self.resolver.create_anchor(pending, metadata))

    def get_anchor(self, anchor_id: str) -> EngineResult[IdentityAnchor]:
        return self._run(lambda: self.resolver.get_anchor(anchor_id))

    def bind_session(
        self, anchor_id: str, session_id: str, platform: str = "unknown"
    ) -> EngineResult[SessionBinding]:
        return self._run(lambda: self.resolver.bind_session(anchor_id, session_id, platform))

    def unbind_session(
        self,
        session_id: str,
        metrics: SessionMetrics | dict[str, Any] | None = None,
        reason: str = "session_complete",
    ) -> EngineResult[SessionBinding]:
        """Commit a session's metrics and close its binding."""
        return self._run(
            lambda: self.resolver.unbind_session(session_id, _as_metrics(metrics), reason)
        )

    def set_status(
        self, anchor_id: str, status: AnchorStatus | str, reason: str = ""
    ) -> EngineResult[IdentityAnchor]:
        return self._run(
            lambda: self.resolver.set_status(anchor_id, AnchorStatus(status), reason)
        )

    # ------------------------------------------------------------------
    # Experience
    # ------------------------------------------------------------------

    def accumulate(
        self,
        anchor_id: str,
        metrics: SessionMetrics | dict[str, Any],
        session_id: str | None = None,
    ) -> EngineResult[DNAProfile]:
        """Fold metrics into an anchor's DNA outside a session unbind."""

        def run() -> DNAProfile:
            self.resolver.get_anchor(anchor_id)
            return self.accumulator.accumulate(anchor_id, _as_metrics(metrics), session_id)

        return self._run(run)

    def dna_profile(self, anchor_id: str) -> EngineResult[DNAProfile]:
        return self._run(lambda: self.accumulator.get_profile(anchor_id))

    def log_exposure(
        self,
        anchor_id: str,
        source: str,
        interaction_type: InteractionType | str = InteractionType.READ,
        session_id: str | None = None,
        interactions: int = 1,
    ) -> EngineResult[ExposureRecord]:
        return self._run(
            lambda: self.behavior.log_exposure(
                anchor_id, source, interaction_type, session_id, interactions
            )
        )

    # ------------------------------------------------------------------
    # Assessment
    # ------------------------------------------------------------------

    def assess(self, anchor_id: str) -> EngineResult[BehavioralAssessment]:
        return self._run(lambda: self.behavior.assess(anchor_id))

    def behavior_summary(self, anchor_id: str) -> EngineResult[dict[str, Any]]:
        return self._run(lambda: self.behavior.behavior_summary(anchor_id))

    def anchors_with_concerns(self) -> EngineResult[list[dict[str, Any]]]:
        return self._run(self.behavior.anchors_with_concerns)

    def acknowledge_event(self, event_id: str) -> EngineResult[bool]:
        return self._run(lambda: self.behavior.acknowledge_event(event_id))

    def maybe_evolve(self, anchor_id: str) -> EngineResult[TrustEvolutionRecord]:
        """Recalculate trust if enough new evidence has arrived.

        The evidence gate is an ``ok`` result with kind
        ``INSUFFICIENT_DATA``; a recalculation too small to persist is
        ``ok`` with no value.
        """
        try:
            evaluation = self.trust.evaluate(anchor_id)
        except ContextAnchorError as exc:
            return EngineResult.failure(exc)
        if evaluation.status is TrustEvaluationStatus.INSUFFICIENT_DATA:
            return EngineResult.no_op(NOT_ENOUGH_EVIDENCE)
        if evaluation.status is TrustEvaluationStatus.UNCHANGED:
            return EngineResult(ok=True, message="trust unchanged")
        return EngineResult.success(evaluation.record)

    def trust_records(self, anchor_id: str) -> EngineResult[list[TrustEvolutionRecord]]:
        return self._run(lambda: self.trust_history.for_anchor(anchor_id))

    def classify(self, anchor_id: str) -> EngineResult[Classification]:
        return self._run(lambda: self.archetypes.classify(anchor_id))

    # ------------------------------------------------------------------
    # Ledger
    # ------------------------------------------------------------------

    def verify_ledger(self, anchor_id: str) -> EngineResult[ChainVerification]:
        """Replay an anchor's ledger; a broken chain is an invariant violation."""
        try:
            verification = self.ledger.verify(anchor_id)
        except ContextAnchorError as exc:
            return EngineResult.failure(exc)
        if not verification.valid:
            return EngineResult(
                ok=False,
                value=verification,
                kind=ErrorKind.INVARIANT_VIOLATION,
                message=verification.reason or "ledger chain is broken",
            )
        return EngineResult.success(verification)

    def attest_ledger(self, anchor_id: str) -> EngineResult[ChainAttestation]:
        return self._run(lambda: self.attestor.attest(anchor_id))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _run(operation: Callable[[], T]) -> EngineResult[T]:
        try:
            return EngineResult.success(operation())
        except ContextAnchorError as exc:
            return EngineResult.failure(exc)
        except ValidationError as exc:
            return EngineResult(
                ok=False,
                kind=ErrorKind.INSUFFICIENT_DATA,
                message=f"invalid input: {exc.error_count()} validation error(s)",
            )
        except ValueError as exc:
            # Unknown enum values and out-of-range arguments from callers.
            return EngineResult(
                ok=False, kind=ErrorKind.INSUFFICIENT_DATA, message=f"invalid input: {exc}"
            )


def _as_hints(hints: AnchorHints | dict[str, Any]) -> AnchorHints:
    return hints if isinstance(hints, AnchorHints) else AnchorHints.model_validate(hints)


def _as_metrics(metrics: SessionMetrics | dict[str, Any] | None) -> SessionMetrics | None:
    if metrics is None or isinstance(metrics, SessionMetrics):
        return metrics
    return SessionMetrics.model_validate(metrics)


__all__ = ["ContextEngine", "NOT_ENOUGH_EVIDENCE"]
