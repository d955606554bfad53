"""AnchorResolver — maps session hints to identity anchors and manages bindings.

Resolution never creates anything. A request whose hash matches no
anchor comes back as ``create_new`` with a :class:`PendingAnchor`; the
caller must confirm by passing it to :meth:`AnchorResolver.create_anchor`.

Anchor rows are updated with compare-and-swap on ``version``; every
read-modify-write here retries on conflict like the DNA accumulator does.
"""
from __future__ import annotations

import dataclasses
import datetime
import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable

from context_anchor.dna.metrics import SessionMetrics
from context_anchor.errors import (
    AnchorAlreadyExistsError,
    AnchorHashTakenError,
    AnchorNotFoundError,
    ConcurrentUpdateError,
    ContextAnchorError,
    InvalidStatusTransitionError,
    MintingUnavailableError,
    SessionNotFoundError,
    VersionConflictError,
)
from context_anchor.identity.anchor import (
    AnchorIssuer,
    AnchorStatus,
    IdentityAnchor,
    SessionBinding,
)
from context_anchor.identity.hints import AnchorHints, compute_anchor_hash
from context_anchor.identity.minting import (
    LocalIdentifierFactory,
    MintingAuthority,
    validate_global_id,
)
from context_anchor.ledger.entry import LedgerEventType
from context_anchor.timeutil import days_between, utcnow

if TYPE_CHECKING:
    from context_anchor.dna.accumulator import DNAAccumulator
    from context_anchor.ledger.chain import EventLedger
    from context_anchor.store.base import AnchorStore

logger = logging.getLogger(__name__)

RESOLVABLE_STATUSES = (AnchorStatus.ACTIVE, AnchorStatus.DORMANT)
LOCAL_ID_ATTEMPTS = 5

# Confidence for a hash match: base plus boosts, capped at 1.0.
BASE_CONFIDENCE = 0.5
PROJECT_PATH_BOOST = 0.2
WORKSPACE_BOOST = 0.1
HIGH_TRUST_BOOST = 0.1
HIGH_TRUST_LEVEL = 4
RECENT_ACTIVITY_BOOST = 0.1
RECENT_ACTIVITY_DAYS = 7


class ResolutionAction(str, Enum):
    BIND_EXISTING = "bind_existing"
    CREATE_NEW = "create_new"


@dataclass(frozen=True)
class PendingAnchor:
    """An anchor that would be created if the caller confirms."""

    anchor_hash: str
    project_path: str | None = None
    workspace: str | None = None
    support_type: str | None = None
    organization: str | None = None

    def to_dict(self) -> dict[str, object]:
        return dataclasses.asdict(self)


@dataclass(frozen=True)
class Resolution:
    """Outcome of :meth:`AnchorResolver.resolve`.

    Parameters
    ----------
    action:
        ``bind_existing`` or ``create_new``.
    anchor_hash:
        Hash of the stable hint fields (``None`` for explicit-id lookups).
    confidence:
        Match confidence in [0, 1]; 0 for ``create_new``.
    reason:
        Short human-readable explanation.
    anchor:
        The matched anchor for ``bind_existing``.
    pending_anchor:
        What would be created for ``create_new``.
    """

    action: ResolutionAction
    anchor_hash: str | None
    confidence: float
    reason: str
    anchor: IdentityAnchor | None = None
    pending_anchor: PendingAnchor | None = None

    @property
    def requires_confirmation(self) -> bool:
        return self.action is ResolutionAction.CREATE_NEW

    def to_dict(self) -> dict[str, object]:
        return {
            "action": self.action.value,
            "anchor_hash": self.anchor_hash,
            "confidence": self.confidence,
            "reason": self.reason,
            "requires_confirmation": self.requires_confirmation,
            "anchor": self.anchor.to_dict() if self.anchor else None,
            "pending_anchor": self.pending_anchor.to_dict() if self.pending_anchor else None,
        }


class AnchorResolver:
    """Resolves hints to anchors, creates confirmed anchors, binds sessions.

    Parameters
    ----------
    store:
        Durable store.
    ledger:
        Ledger receiving ``created``, ``session_start``, ``session_end`` and
        ``status_changed`` entries.
    accumulator:
        DNA accumulator; initializes profiles and receives session metrics.
    authority:
        Minting authority. When ``None`` every anchor gets a local id.
    local_ids:
        Factory for fallback identifiers.
    max_retries:
        Compare-and-swap attempts for anchor updates.
    """

    def __init__(
        self,
        store: AnchorStore,
        ledger: EventLedger,
        accumulator: DNAAccumulator,
        authority: MintingAuthority | None = None,
        local_ids: LocalIdentifierFactory | None = None,
        max_retries: int = 5,
    ) -> None:
        self._store = store
        self._ledger = ledger
        self._accumulator = accumulator
        self._authority = authority
        self._local_ids = local_ids or LocalIdentifierFactory()
        self._max_retries = max_retries

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve(self, hints: AnchorHints) -> Resolution:
        """Resolve *hints* to an existing anchor or a pending one.

        Raises
        ------
        AnchorNotFoundError
            If an explicit ``anchor_id`` is unknown or retired.
        InsufficientHintsError
            If neither an explicit id nor any stable field is given.
        """
        if hints.anchor_id is not None:
            anchor = self.get_anchor(hints.anchor_id)
            return Resolution(
                action=ResolutionAction.BIND_EXISTING,
                anchor_hash=anchor.anchor_hash,
                confidence=1.0,
                reason="explicit anchor id",
                anchor=anchor,
            )

        anchor_hash = compute_anchor_hash(hints)
        anchor = self._store.find_anchor_by_hash(anchor_hash, RESOLVABLE_STATUSES)
        if anchor is not None:
            return Resolution(
                action=ResolutionAction.BIND_EXISTING,
                anchor_hash=anchor_hash,
                confidence=self.match_confidence(anchor, hints),
                reason="anchor hash match",
                anchor=anchor,
            )

        return Resolution(
            action=ResolutionAction.CREATE_NEW,
            anchor_hash=anchor_hash,
            confidence=0.0,
            reason="no anchor matches these hints",
            pending_anchor=PendingAnchor(anchor_hash=anchor_hash, **hints.stable_fields()),
        )

    @staticmethod
    def match_confidence(
        anchor: IdentityAnchor,
        hints: AnchorHints,
        now: datetime.datetime | None = None,
    ) -> float:
        """Score how well *anchor* fits *hints*, in [0, 1]."""
        confidence = BASE_CONFIDENCE
        if hints.project_path is not None and anchor.project_path == hints.project_path:
            confidence += PROJECT_PATH_BOOST
        if hints.workspace is not None and anchor.workspace == hints.workspace:
            confidence += WORKSPACE_BOOST
        if anchor.trust_level >= HIGH_TRUST_LEVEL:
            confidence += HIGH_TRUST_BOOST
        if days_between(anchor.last_activity, now or utcnow()) < RECENT_ACTIVITY_DAYS:
            confidence += RECENT_ACTIVITY_BOOST
        return round(min(1.0, confidence), 4)

    def get_anchor(self, anchor_id: str) -> IdentityAnchor:
        """Return a non-retired anchor.

        Raises
        ------
        AnchorNotFoundError
            If the anchor does not exist or is retired.
        """
        anchor = self._store.get_anchor(anchor_id)
        if anchor is None or anchor.status is AnchorStatus.RETIRED:
            raise AnchorNotFoundError(anchor_id)
        return anchor

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_anchor(
        self,
        pending: PendingAnchor,
        metadata: dict[str, Any] | None = None,
    ) -> IdentityAnchor:
        """Create the anchor described by a confirmed :class:`PendingAnchor`.

        Tries the minting authority first and falls back to a local id,
        logging a warning, when it fails or is not configured.

        Confirming the same pending anchor again returns the anchor that
        already holds its hash; no second anchor is created.

        Raises
        ------
        AnchorAlreadyExistsError
            If every candidate identifier is already taken.
        """
        existing = self._store.find_anchor_by_hash(pending.anchor_hash, RESOLVABLE_STATUSES)
        if existing is not None:
            logger.info(
                "anchor hash %s already held by %s, not creating another",
                pending.anchor_hash[:12],
                existing.anchor_id,
            )
            return existing

        now = utcnow()
        issued = self._mint(pending, metadata or {})
        candidates: list[tuple[str, AnchorIssuer]] = []
        if issued is not None:
            candidates.append((issued, AnchorIssuer.AUTHORITY))
        candidates.extend(
            (self._local_ids.generate(pending.anchor_hash, now, salt=salt), AnchorIssuer.LOCAL)
            for salt in range(LOCAL_ID_ATTEMPTS)
        )

        anchor: IdentityAnchor | None = None
        for anchor_id, issuer in candidates:
            candidate = IdentityAnchor(
                anchor_id=anchor_id,
                anchor_hash=pending.anchor_hash,
                project_path=pending.project_path,
                workspace=pending.workspace,
                support_type=pending.support_type,
                organization=pending.organization,
                issuer=issuer,
                created_at=now,
                last_activity=now,
            )
            try:
                anchor = self._store.insert_anchor(candidate)
                break
            except AnchorHashTakenError as exc:
                # A concurrent confirmation won; its creator writes the ledger entry.
                logger.info(
                    "anchor hash %s taken concurrently by %s",
                    pending.anchor_hash[:12],
                    exc.existing_anchor_id,
                )
                return self.get_anchor(exc.existing_anchor_id)
            except AnchorAlreadyExistsError:
                logger.warning("anchor id %s already taken, trying next candidate", anchor_id)
        if anchor is None:
            raise AnchorAlreadyExistsError(candidates[-1][0])

        self._accumulator.initialize(anchor.anchor_id)
        self._ledger.append(
            anchor.anchor_id,
            None,
            LedgerEventType.CREATED,
            {
                "anchor_hash": anchor.anchor_hash,
                "issuer": anchor.issuer.value,
                "trust_score": anchor.trust_score,
                "trust_level": anchor.trust_level,
                "stable_fields": {
                    k: v for k, v in pending.to_dict().items() if k != "anchor_hash" and v
                },
            },
        )
        logger.info("created anchor %s (issuer=%s)", anchor.anchor_id, anchor.issuer.value)
        return anchor

    def _mint(self, pending: PendingAnchor, metadata: dict[str, Any]) -> str | None:
        if self._authority is None:
            logger.warning(
                "no minting authority configured; using a local identifier for %s",
                pending.anchor_hash[:12],
            )
            return None
        try:
            issued = self._authority.mint(
                "P",
                "Synthetic",
                {**metadata, "anchor_hash": pending.anchor_hash},
            )
        except MintingUnavailableError as exc:
            logger.warning("minting authority unavailable, using a local identifier: %s", exc)
            return None
        if not validate_global_id(issued):
            logger.warning(
                "minting authority returned malformed id %r, using a local identifier", issued
            )
            return None
        return issued

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def bind_session(
        self, anchor_id: str, session_id: str, platform: str = "unknown"
    ) -> SessionBinding:
        """Open a binding between *session_id* and *anchor_id*.

        Binding the same session to the same anchor again returns the open
        binding unchanged.

        Raises
        ------
        AnchorNotFoundError
            If the anchor does not exist or is retired.
        SessionConflictError
            If the session is bound to another anchor.
        """
        self.get_anchor(anchor_id)
        existing = self._store.get_open_binding(session_id)
        if existing is not None and existing.anchor_id == anchor_id:
            return existing

        binding = self._store.insert_binding(
            SessionBinding(session_id=session_id, anchor_id=anchor_id, platform=platform)
        )

        def apply(anchor: IdentityAnchor) -> None:
            if session_id not in anchor.current_sessions:
                anchor.current_sessions.append(session_id)
            anchor.total_sessions += 1
            anchor.last_activity = binding.bound_at
            if anchor.status is AnchorStatus.DORMANT:
                anchor.status = AnchorStatus.ACTIVE

        anchor = self._update_anchor(anchor_id, apply)
        self._ledger.append(
            anchor_id,
            session_id,
            LedgerEventType.SESSION_START,
            {"platform": platform, "total_sessions": anchor.total_sessions},
        )
        return binding

    def unbind_session(
        self,
        session_id: str,
        metrics: SessionMetrics | None = None,
        reason: str = "session_complete",
    ) -> SessionBinding:
        """Close the session's binding and commit *metrics* to the anchor's DNA.

        The binding is closed first, so of two concurrent unbinds of one
        session only the caller that closed it commits metrics. If the
        commit fails the binding is reopened and the error propagates.

        Raises
        ------
        SessionNotFoundError
            If the session has no open binding, or another caller closed it.
        """
        binding = self._store.get_open_binding(session_id)
        if binding is None:
            raise SessionNotFoundError(session_id)
        metrics = metrics or SessionMetrics()

        closing = dataclasses.replace(
            binding,
            unbound_at=utcnow(),
            interactions=metrics.interactions,
            decisions=metrics.decisions,
            unbind_reason=reason,
        )
        closed = self._store.close_binding(closing)
        try:
            self._accumulator.accumulate(binding.anchor_id, metrics, session_id=session_id)
        except ContextAnchorError:
            self._reopen(binding)
            raise

        def apply(anchor: IdentityAnchor) -> None:
            if session_id in anchor.current_sessions:
                anchor.current_sessions.remove(session_id)
            anchor.last_activity = closed.unbound_at or utcnow()

        self._update_anchor(binding.anchor_id, apply, allow_retired=True)
        duration = (closed.unbound_at - closed.bound_at).total_seconds() if closed.unbound_at else 0.0
        self._ledger.append(
            binding.anchor_id,
            session_id,
            LedgerEventType.SESSION_END,
            {
                "reason": reason,
                "interactions": metrics.interactions,
                "decisions": metrics.decisions,
                "duration_seconds": round(duration, 3),
            },
        )
        return closed

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def set_status(
        self, anchor_id: str, status: AnchorStatus, reason: str = ""
    ) -> IdentityAnchor:
        """Move an anchor to *status*.

        Raises
        ------
        AnchorNotFoundError
            If the anchor does not exist.
        InvalidStatusTransitionError
            If the transition is not allowed (retired is terminal).
        """
        previous: dict[str, AnchorStatus] = {}

        def apply(anchor: IdentityAnchor) -> None:
            if not anchor.status.can_transition_to(status):
                raise InvalidStatusTransitionError(anchor_id, anchor.status.value, status.value)
            previous["status"] = anchor.status
            anchor.status = status
            anchor.last_activity = utcnow()

        anchor = self._update_anchor(anchor_id, apply, allow_retired=True)
        self._ledger.append(
            anchor_id,
            None,
            LedgerEventType.STATUS_CHANGED,
            {"from": previous["status"].value, "to": status.value, "reason": reason},
        )
        return anchor

    def retire(self, anchor_id: str, reason: str = "") -> IdentityAnchor:
        return self.set_status(anchor_id, AnchorStatus.RETIRED, reason)

    def mark_dormant(self, anchor_id: str, reason: str = "") -> IdentityAnchor:
        return self.set_status(anchor_id, AnchorStatus.DORMANT, reason)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _reopen(self, binding: SessionBinding) -> None:
        try:
            self._store.reopen_binding(binding)
        except ContextAnchorError as exc:
            logger.warning(
                "could not reopen binding for session %s after a failed commit: %s",
                binding.session_id,
                exc,
            )

    def _update_anchor(
        self,
        anchor_id: str,
        change: Callable[[IdentityAnchor], None],
        allow_retired: bool = False,
    ) -> IdentityAnchor:
        return update_anchor_with_retry(
            self._store, anchor_id, change, self._max_retries, allow_retired=allow_retired
        )


def update_anchor_with_retry(
    store: AnchorStore,
    anchor_id: str,
    change: Callable[[IdentityAnchor], None],
    max_retries: int = 5,
    allow_retired: bool = True,
) -> IdentityAnchor:
    """Compare-and-swap *anchor_id* with *change*, retrying on version conflicts.

    Raises
    ------
    AnchorNotFoundError
        If the anchor is missing, or retired and *allow_retired* is False.
    ConcurrentUpdateError
        If every attempt lost to a concurrent writer.
    """
    for _ in range(max_retries):
        current = store.get_anchor(anchor_id)
        if current is None or (
            current.status is AnchorStatus.RETIRED and not allow_retired
        ):
            raise AnchorNotFoundError(anchor_id)
        draft = IdentityAnchor.from_dict(current.to_dict())
        change(draft)
        try:
            return store.update_anchor(draft, expected_version=current.version)
        except VersionConflictError:
            logger.debug("anchor %s update conflict, retrying", anchor_id)
    raise ConcurrentUpdateError("anchor", anchor_id, max_retries)


__all__ = [
    "AnchorResolver",
    "PendingAnchor",
    "Resolution",
    "ResolutionAction",
    "update_anchor_with_retry",
]
