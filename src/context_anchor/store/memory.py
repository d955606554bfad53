"""InMemoryAnchorStore — thread-safe in-process store for tests and embedding.

All state lives in plain dicts guarded by one lock. Records are deep-copied
on the way in and out so callers cannot mutate stored rows behind the
store's back, which keeps version checks meaningful.
"""
from __future__ import annotations

import copy
import dataclasses
import threading
from collections import defaultdict
from typing import TYPE_CHECKING, Iterable, TypeVar

from context_anchor.errors import (
    AnchorAlreadyExistsError,
    AnchorHashTakenError,
    AnchorNotFoundError,
    ProfileNotFoundError,
    SessionConflictError,
    SessionNotFoundError,
    StoreUnavailableError,
    VersionConflictError,
)
from context_anchor.identity.anchor import AnchorStatus
from context_anchor.ledger.entry import GENESIS_HASH
from context_anchor.store.base import AnchorStore, EntryBuilder

if TYPE_CHECKING:
    from context_anchor.behavior.records import BehavioralEvent, ExposureRecord
    from context_anchor.dna.profile import DNAProfile
    from context_anchor.identity.anchor import IdentityAnchor, SessionBinding
    from context_anchor.ledger.entry import LedgerEntry
    from context_anchor.trust.record import TrustEvolutionRecord

_R = TypeVar("_R")


def _copy(record: _R) -> _R:
    return copy.deepcopy(record)


class InMemoryAnchorStore(AnchorStore):
    """Dict-backed :class:`AnchorStore`.

    Thread-safe. Every operation, including the read-head-then-append
    ledger step, runs under a single re-entrant lock.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._anchors: dict[str, IdentityAnchor] = {}
        self._bindings: dict[str, SessionBinding] = {}
        self._open_by_session: dict[str, str] = {}
        self._ledger: dict[str, list[LedgerEntry]] = defaultdict(list)
        self._dna: dict[str, DNAProfile] = {}
        self._exposures: dict[str, list[ExposureRecord]] = defaultdict(list)
        self._events: dict[str, list[BehavioralEvent]] = defaultdict(list)
        self._trust_records: dict[str, list[TrustEvolutionRecord]] = defaultdict(list)

    # ------------------------------------------------------------------
    # Identity anchors
    # ------------------------------------------------------------------

    def insert_anchor(self, anchor: IdentityAnchor) -> IdentityAnchor:
        with self._lock:
            if anchor.anchor_id in self._anchors:
                raise AnchorAlreadyExistsError(anchor.anchor_id)
            if anchor.status is not AnchorStatus.RETIRED:
                for existing in self._anchors.values():
                    if (
                        existing.anchor_hash == anchor.anchor_hash
                        and existing.status is not AnchorStatus.RETIRED
                    ):
                        raise AnchorHashTakenError(anchor.anchor_hash, existing.anchor_id)
            self._anchors[anchor.anchor_id] = _copy(anchor)
            return _copy(anchor)

    def get_anchor(self, anchor_id: str) -> IdentityAnchor | None:
        with self._lock:
            anchor = self._anchors.get(anchor_id)
            return _copy(anchor) if anchor is not None else None

    def find_anchor_by_hash(
        self, anchor_hash: str, statuses: Iterable[AnchorStatus]
    ) -> IdentityAnchor | None:
        wanted = set(statuses)
        with self._lock:
            matches = [
                a
                for a in self._anchors.values()
                if a.anchor_hash == anchor_hash and a.status in wanted
            ]
            if not matches:
                return None
            best = max(matches, key=lambda a: a.last_activity)
            return _copy(best)

    def update_anchor(self, anchor: IdentityAnchor, expected_version: int) -> IdentityAnchor:
        with self._lock:
            stored = self._anchors.get(anchor.anchor_id)
            if stored is None:
                raise AnchorNotFoundError(anchor.anchor_id)
            if stored.version != expected_version:
                raise VersionConflictError(anchor.anchor_id, expected_version, stored.version)
            updated = dataclasses.replace(_copy(anchor), version=expected_version + 1)
            self._anchors[anchor.anchor_id] = updated
            return _copy(updated)

    def list_anchors(self, status: AnchorStatus | None = None) -> list[IdentityAnchor]:
        with self._lock:
            anchors = [
                a for a in self._anchors.values() if status is None or a.status == status
            ]
            return [_copy(a) for a in sorted(anchors, key=lambda a: a.created_at)]

    # ------------------------------------------------------------------
    # Session bindings
    # ------------------------------------------------------------------

    def insert_binding(self, binding: SessionBinding) -> SessionBinding:
        with self._lock:
            open_id = self._open_by_session.get(binding.session_id)
            if open_id is not None:
                raise SessionConflictError(
                    binding.session_id, self._bindings[open_id].anchor_id
                )
            self._bindings[binding.binding_id] = _copy(binding)
            self._open_by_session[binding.session_id] = binding.binding_id
            return _copy(binding)

    def get_open_binding(self, session_id: str) -> SessionBinding | None:
        with self._lock:
            binding_id = self._open_by_session.get(session_id)
            if binding_id is None:
                return None
            return _copy(self._bindings[binding_id])

    def close_binding(self, binding: SessionBinding) -> SessionBinding:
        with self._lock:
            if self._open_by_session.get(binding.session_id) != binding.binding_id:
                raise SessionNotFoundError(binding.session_id)
            self._bindings[binding.binding_id] = _copy(binding)
            del self._open_by_session[binding.session_id]
            return _copy(binding)

    def reopen_binding(self, binding: SessionBinding) -> SessionBinding:
        with self._lock:
            stored = self._bindings.get(binding.binding_id)
            if stored is None or stored.unbound_at is None:
                raise SessionNotFoundError(binding.session_id)
            open_id = self._open_by_session.get(binding.session_id)
            if open_id is not None:
                raise SessionConflictError(binding.session_id, self._bindings[open_id].anchor_id)
            restored = dataclasses.replace(binding, unbound_at=None)
            self._bindings[binding.binding_id] = _copy(restored)
            self._open_by_session[binding.session_id] = binding.binding_id
            return _copy(restored)

    def list_bindings(self, anchor_id: str) -> list[SessionBinding]:
        with self._lock:
            bindings = [b for b in self._bindings.values() if b.anchor_id == anchor_id]
            return [_copy(b) for b in sorted(bindings, key=lambda b: b.bound_at)]

    # ------------------------------------------------------------------
    # Ledger
    # ------------------------------------------------------------------

    def append_ledger_entry(self, anchor_id: str, build: EntryBuilder) -> LedgerEntry:
        with self._lock:
            chain = self._ledger[anchor_id]
            previous_hash = chain[-1].content_hash if chain else GENESIS_HASH
            entry = build(len(chain), previous_hash)
            if entry.anchor_id != anchor_id or entry.previous_hash != previous_hash:
                raise StoreUnavailableError(
                    f"Rejected ledger entry for {anchor_id!r}: it does not extend "
                    "the current chain head."
                )
            chain.append(_copy(entry))
            return entry

    def list_ledger_entries(self, anchor_id: str) -> list[LedgerEntry]:
        with self._lock:
            return [_copy(e) for e in self._ledger.get(anchor_id, [])]

    def latest_ledger_entry(self, anchor_id: str) -> LedgerEntry | None:
        with self._lock:
            chain = self._ledger.get(anchor_id)
            return _copy(chain[-1]) if chain else None

    # ------------------------------------------------------------------
    # DNA profiles
    # ------------------------------------------------------------------

    def insert_dna(self, profile: DNAProfile) -> DNAProfile:
        with self._lock:
            existing = self._dna.get(profile.anchor_id)
            if existing is not None:
                return _copy(existing)
            self._dna[profile.anchor_id] = _copy(profile)
            return _copy(profile)

    def get_dna(self, anchor_id: str) -> DNAProfile | None:
        with self._lock:
            profile = self._dna.get(anchor_id)
            return _copy(profile) if profile is not None else None

    def update_dna(self, profile: DNAProfile, expected_version: int) -> DNAProfile:
        with self._lock:
            stored = self._dna.get(profile.anchor_id)
            if stored is None:
                raise ProfileNotFoundError(profile.anchor_id)
            if stored.version != expected_version:
                raise VersionConflictError(profile.anchor_id, expected_version, stored.version)
            updated = _copy(profile)
            updated.version = expected_version + 1
            self._dna[profile.anchor_id] = updated
            return _copy(updated)

    def list_dna(self) -> list[DNAProfile]:
        with self._lock:
            return [_copy(p) for p in self._dna.values()]

    # ------------------------------------------------------------------
    # Behavioral evidence
    # ------------------------------------------------------------------

    def append_exposure(self, record: ExposureRecord) -> None:
        with self._lock:
            self._exposures[record.anchor_id].append(record)

    def list_exposures(self, anchor_id: str) -> list[ExposureRecord]:
        with self._lock:
            return list(self._exposures.get(anchor_id, []))

    def append_behavioral_event(self, event: BehavioralEvent) -> None:
        with self._lock:
            self._events[event.anchor_id].append(event)

    def list_behavioral_events(
        self, anchor_id: str, limit: int | None = None
    ) -> list[BehavioralEvent]:
        with self._lock:
            events = list(reversed(self._events.get(anchor_id, [])))
        return events[:limit] if limit is not None else events

    def acknowledge_behavioral_event(self, event_id: str) -> bool:
        with self._lock:
            for events in self._events.values():
                for index, event in enumerate(events):
                    if event.event_id == event_id:
                        events[index] = dataclasses.replace(event, acknowledged=True)
                        return True
        return False

    # ------------------------------------------------------------------
    # Trust evolution
    # ------------------------------------------------------------------

    def append_trust_record(self, record: TrustEvolutionRecord) -> None:
        with self._lock:
            self._trust_records[record.anchor_id].append(record)

    def list_trust_records(self, anchor_id: str) -> list[TrustEvolutionRecord]:
        with self._lock:
            return list(self._trust_records.get(anchor_id, []))


__all__ = ["InMemoryAnchorStore"]
