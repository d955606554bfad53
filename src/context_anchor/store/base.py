"""AnchorStore — the durable-storage contract every engine component writes through.

Two concurrency rules are part of the contract:

* Anchors and DNA profiles carry a ``version``. ``update_anchor`` and
  ``update_dna`` are compare-and-swap writes: they fail with
  :class:`~context_anchor.errors.VersionConflictError` when the stored
  version differs from ``expected_version`` and otherwise store the record
  with ``version = expected_version + 1``.
* ``append_ledger_entry`` reads an anchor's chain head and writes the new
  entry as one atomic step, so appends for one anchor are linearized.

Records handed to and returned from a store are copies; mutating them
never changes stored state.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Callable, Iterable

if TYPE_CHECKING:
    from context_anchor.behavior.records import BehavioralEvent, ExposureRecord
    from context_anchor.dna.profile import DNAProfile
    from context_anchor.identity.anchor import AnchorStatus, IdentityAnchor, SessionBinding
    from context_anchor.ledger.entry import LedgerEntry
    from context_anchor.trust.record import TrustEvolutionRecord

# Builds the next entry from (sequence, previous_hash) inside the append transaction.
EntryBuilder = Callable[[int, str], "LedgerEntry"]


class AnchorStore(ABC):
    """Abstract base class for durable storage backends."""

    # ------------------------------------------------------------------
    # Identity anchors
    # ------------------------------------------------------------------

    @abstractmethod
    def insert_anchor(self, anchor: IdentityAnchor) -> IdentityAnchor:
        """Persist a new anchor.

        Raises
        ------
        AnchorAlreadyExistsError
            If an anchor with the same ``anchor_id`` is already stored.
        AnchorHashTakenError
            If a non-retired anchor already holds ``anchor_hash``. At most
            one non-retired anchor exists per hash.
        """

    @abstractmethod
    def get_anchor(self, anchor_id: str) -> IdentityAnchor | None:
        """Return the anchor with *anchor_id*, or ``None``."""

    @abstractmethod
    def find_anchor_by_hash(
        self, anchor_hash: str, statuses: Iterable[AnchorStatus]
    ) -> IdentityAnchor | None:
        """Return the most recently active anchor with *anchor_hash* in *statuses*."""

    @abstractmethod
    def update_anchor(self, anchor: IdentityAnchor, expected_version: int) -> IdentityAnchor:
        """Compare-and-swap an anchor.

        Returns
        -------
        IdentityAnchor
            The stored anchor with its bumped version.

        Raises
        ------
        VersionConflictError
            If the stored version is not *expected_version*.
        AnchorNotFoundError
            If the anchor does not exist.
        """

    @abstractmethod
    def list_anchors(self, status: AnchorStatus | None = None) -> list[IdentityAnchor]:
        """Return all anchors, optionally filtered by status, oldest first."""

    # ------------------------------------------------------------------
    # Session bindings
    # ------------------------------------------------------------------

    @abstractmethod
    def insert_binding(self, binding: SessionBinding) -> SessionBinding:
        """Persist a new open binding.

        Raises
        ------
        SessionConflictError
            If the session already has an open binding.
        """

    @abstractmethod
    def get_open_binding(self, session_id: str) -> SessionBinding | None:
        """Return the open binding for *session_id*, or ``None``."""

    @abstractmethod
    def close_binding(self, binding: SessionBinding) -> SessionBinding:
        """Persist the closing fields of an open binding.

        Raises
        ------
        SessionNotFoundError
            If the binding is not open in the store.
        """

    @abstractmethod
    def reopen_binding(self, binding: SessionBinding) -> SessionBinding:
        """Restore a closed binding to its open state, as stored in *binding*.

        Raises
        ------
        SessionNotFoundError
            If the binding is unknown or already open.
        SessionConflictError
            If the session has since been bound again.
        """

    @abstractmethod
    def list_bindings(self, anchor_id: str) -> list[SessionBinding]:
        """Return every binding ever made to *anchor_id*, oldest first."""

    # ------------------------------------------------------------------
    # Ledger
    # ------------------------------------------------------------------

    @abstractmethod
    def append_ledger_entry(self, anchor_id: str, build: EntryBuilder) -> LedgerEntry:
        """Atomically read the chain head for *anchor_id* and append a new entry.

        *build* is called with the next sequence number and the previous
        entry's hash (or ``"genesis"``) and must return the entry to store.
        If the write fails nothing is stored.

        Raises
        ------
        StoreUnavailableError
            If the backend rejects the write.
        """

    @abstractmethod
    def list_ledger_entries(self, anchor_id: str) -> list[LedgerEntry]:
        """Return the chain for *anchor_id* in insertion order."""

    @abstractmethod
    def latest_ledger_entry(self, anchor_id: str) -> LedgerEntry | None:
        """Return the chain head for *anchor_id*, or ``None``."""

    # ------------------------------------------------------------------
    # DNA profiles
    # ------------------------------------------------------------------

    @abstractmethod
    def insert_dna(self, profile: DNAProfile) -> DNAProfile:
        """Persist a new profile. Inserting twice for one anchor is a no-op
        that returns the stored profile."""

    @abstractmethod
    def get_dna(self, anchor_id: str) -> DNAProfile | None:
        """Return the profile for *anchor_id*, or ``None``."""

    @abstractmethod
    def update_dna(self, profile: DNAProfile, expected_version: int) -> DNAProfile:
        """Compare-and-swap a profile.

        Raises
        ------
        VersionConflictError
            If the stored version is not *expected_version*.
        ProfileNotFoundError
            If no profile exists for the anchor.
        """

    @abstractmethod
    def list_dna(self) -> list[DNAProfile]:
        """Return every stored profile."""

    # ------------------------------------------------------------------
    # Behavioral evidence
    # ------------------------------------------------------------------

    @abstractmethod
    def append_exposure(self, record: ExposureRecord) -> None:
        """Append an exposure record."""

    @abstractmethod
    def list_exposures(self, anchor_id: str) -> list[ExposureRecord]:
        """Return exposure records for *anchor_id*, oldest first."""

    @abstractmethod
    def append_behavioral_event(self, event: BehavioralEvent) -> None:
        """Append a behavioral event."""

    @abstractmethod
    def list_behavioral_events(
        self, anchor_id: str, limit: int | None = None
    ) -> list[BehavioralEvent]:
        """Return behavioral events for *anchor_id*, newest first."""

    @abstractmethod
    def acknowledge_behavioral_event(self, event_id: str) -> bool:
        """Set the acknowledged flag on an event. Returns False if unknown."""

    # ------------------------------------------------------------------
    # Trust evolution
    # ------------------------------------------------------------------

    @abstractmethod
    def append_trust_record(self, record: TrustEvolutionRecord) -> None:
        """Append a trust evolution record."""

    @abstractmethod
    def list_trust_records(self, anchor_id: str) -> list[TrustEvolutionRecord]:
        """Return trust evolution records for *anchor_id*, oldest first."""

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Release backend resources. The default does nothing."""


__all__ = ["AnchorStore", "EntryBuilder"]
