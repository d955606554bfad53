"""SQLiteAnchorStore — durable store backed by a single SQLite database.

Suitable for multi-process access on one host. Every write runs in a
``BEGIN IMMEDIATE`` transaction, which takes SQLite's write lock up front;
that is what makes the ledger's read-head-then-insert step and the
compare-and-swap updates atomic across processes. The ledger table also
carries ``UNIQUE(anchor_id, sequence)`` and ``UNIQUE(anchor_id,
previous_hash)`` so a fork can never be stored even by a misbehaving writer.

Structured fields are stored as JSON text; lookup keys get their own columns.
"""
from __future__ import annotations

import contextlib
import json
import logging
import sqlite3
import threading
from pathlib import Path
from typing import Iterable, Iterator

from context_anchor.behavior.records import BehavioralEvent, ExposureRecord
from context_anchor.dna.profile import DNAProfile
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
from context_anchor.identity.anchor import AnchorStatus, IdentityAnchor, SessionBinding
from context_anchor.ledger.entry import GENESIS_HASH, LedgerEntry
from context_anchor.store.base import AnchorStore, EntryBuilder
from context_anchor.trust.record import TrustEvolutionRecord

logger = logging.getLogger(__name__)

_SQL_SCHEMA = """
CREATE TABLE IF NOT EXISTS anchors (
    anchor_id      TEXT PRIMARY KEY,
    anchor_hash    TEXT NOT NULL,
    status         TEXT NOT NULL,
    version        INTEGER NOT NULL,
    created_at     TEXT NOT NULL,
    last_activity  TEXT NOT NULL,
    data           TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_anchors_hash ON anchors(anchor_hash, status);
CREATE UNIQUE INDEX IF NOT EXISTS idx_anchors_live_hash
    ON anchors(anchor_hash) WHERE status != 'retired';

CREATE TABLE IF NOT EXISTS session_bindings (
    binding_id     TEXT PRIMARY KEY,
    session_id     TEXT NOT NULL,
    anchor_id      TEXT NOT NULL,
    bound_at       TEXT NOT NULL,
    unbound_at     TEXT,
    data           TEXT NOT NULL
);
CREATE UNIQUE INDEX IF NOT EXISTS idx_bindings_open
    ON session_bindings(session_id) WHERE unbound_at IS NULL;
CREATE INDEX IF NOT EXISTS idx_bindings_anchor ON session_bindings(anchor_id);

CREATE TABLE IF NOT EXISTS ledger_entries (
    entry_id       TEXT PRIMARY KEY,
    anchor_id      TEXT NOT NULL,
    sequence       INTEGER NOT NULL,
    session_id     TEXT,
    event_type     TEXT NOT NULL,
    payload        TEXT NOT NULL,
    timestamp      TEXT NOT NULL,
    previous_hash  TEXT NOT NULL,
    content_hash   TEXT NOT NULL,
    UNIQUE(anchor_id, sequence),
    UNIQUE(anchor_id, previous_hash)
);

CREATE TABLE IF NOT EXISTS dna_profiles (
    anchor_id      TEXT PRIMARY KEY,
    version        INTEGER NOT NULL,
    data           TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS exposures (
    exposure_id    TEXT PRIMARY KEY,
    anchor_id      TEXT NOT NULL,
    timestamp      TEXT NOT NULL,
    data           TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_exposures_anchor ON exposures(anchor_id, timestamp);

CREATE TABLE IF NOT EXISTS behavioral_events (
    event_id       TEXT PRIMARY KEY,
    anchor_id      TEXT NOT NULL,
    timestamp      TEXT NOT NULL,
    acknowledged   INTEGER NOT NULL DEFAULT 0,
    data           TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_events_anchor ON behavioral_events(anchor_id, timestamp);

CREATE TABLE IF NOT EXISTS trust_records (
    record_id      TEXT PRIMARY KEY,
    anchor_id      TEXT NOT NULL,
    timestamp      TEXT NOT NULL,
    data           TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_trust_anchor ON trust_records(anchor_id, timestamp);
"""


def _dumps(data: dict[str, object]) -> str:
    return json.dumps(data, sort_keys=True, separators=(",", ":"))


class SQLiteAnchorStore(AnchorStore):
    """SQLite-backed :class:`AnchorStore`.

    Parameters
    ----------
    path:
        Database file path, or ``":memory:"`` for a private in-memory database.
    timeout:
        Seconds to wait for SQLite's write lock before giving up.
    """

    def __init__(self, path: str | Path, timeout: float = 30.0) -> None:
        self._path = str(path)
        if self._path != ":memory:":
            Path(self._path).parent.mkdir(parents=True, exist_ok=True)
        self._lk = threading.RLock()
        try:
            self._conn = sqlite3.connect(
                self._path,
                timeout=timeout,
                isolation_level=None,
                check_same_thread=False,
            )
            self._conn.execute("PRAGMA journal_mode=WAL;")
            self._conn.execute("PRAGMA synchronous=NORMAL;")
            self._conn.executescript(_SQL_SCHEMA)
        except sqlite3.Error as exc:
            raise StoreUnavailableError(f"Cannot open SQLite store at {self._path!r}: {exc}") from exc

    # ------------------------------------------------------------------
    # Transaction helpers
    # ------------------------------------------------------------------

    @contextlib.contextmanager
    def _write(self) -> Iterator[sqlite3.Connection]:
        """Run a block inside ``BEGIN IMMEDIATE`` ... ``COMMIT``."""
        with self._lk:
            try:
                self._conn.execute("BEGIN IMMEDIATE")
            except sqlite3.Error as exc:
                raise StoreUnavailableError(f"SQLite write lock unavailable: {exc}") from exc
            try:
                yield self._conn
            except sqlite3.Error as exc:
                self._conn.execute("ROLLBACK")
                raise StoreUnavailableError(f"SQLite write failed: {exc}") from exc
            except BaseException:
                self._conn.execute("ROLLBACK")
                raise
            else:
                try:
                    self._conn.execute("COMMIT")
                except sqlite3.Error as exc:
                    self._conn.execute("ROLLBACK")
                    raise StoreUnavailableError(f"SQLite commit failed: {exc}") from exc

    def _query(self, sql: str, params: tuple[object, ...] = ()) -> list[tuple]:
        with self._lk:
            try:
                return self._conn.execute(sql, params).fetchall()
            except sqlite3.Error as exc:
                raise StoreUnavailableError(f"SQLite query failed: {exc}") from exc

    def close(self) -> None:
        with self._lk:
            self._conn.close()

    # ------------------------------------------------------------------
    # Identity anchors
    # ------------------------------------------------------------------

    def insert_anchor(self, anchor: IdentityAnchor) -> IdentityAnchor:
        with self._write() as conn:
            if anchor.status is not AnchorStatus.RETIRED:
                row = conn.execute(
                    "SELECT anchor_id FROM anchors WHERE anchor_hash=? AND status != ?",
                    (anchor.anchor_hash, AnchorStatus.RETIRED.value),
                ).fetchone()
                if row is not None:
                    raise AnchorHashTakenError(anchor.anchor_hash, row[0])
            try:
                conn.execute(
                    "INSERT INTO anchors (anchor_id, anchor_hash, status, version, "
                    "created_at, last_activity, data) VALUES (?, ?, ?, ?, ?, ?, ?)",
                    (
                        anchor.anchor_id,
                        anchor.anchor_hash,
                        anchor.status.value,
                        anchor.version,
                        anchor.created_at.isoformat(),
                        anchor.last_activity.isoformat(),
                        _dumps(anchor.to_dict()),
                    ),
                )
            except sqlite3.IntegrityError as exc:
                raise AnchorAlreadyExistsError(anchor.anchor_id) from exc
        return IdentityAnchor.from_dict(anchor.to_dict())

    def get_anchor(self, anchor_id: str) -> IdentityAnchor | None:
        rows = self._query("SELECT data FROM anchors WHERE anchor_id=?", (anchor_id,))
        return IdentityAnchor.from_dict(json.loads(rows[0][0])) if rows else None

    def find_anchor_by_hash(
        self, anchor_hash: str, statuses: Iterable[AnchorStatus]
    ) -> IdentityAnchor | None:
        wanted = [s.value for s in statuses]
        if not wanted:
            return None
        placeholders = ",".join("?" for _ in wanted)
        rows = self._query(
            f"SELECT data FROM anchors WHERE anchor_hash=? AND status IN ({placeholders}) "
            "ORDER BY last_activity DESC LIMIT 1",
            (anchor_hash, *wanted),
        )
        return IdentityAnchor.from_dict(json.loads(rows[0][0])) if rows else None

    def update_anchor(self, anchor: IdentityAnchor, expected_version: int) -> IdentityAnchor:
        updated = IdentityAnchor.from_dict(anchor.to_dict())
        updated.version = expected_version + 1
        with self._write() as conn:
            cur = conn.execute(
                "UPDATE anchors SET anchor_hash=?, status=?, version=?, last_activity=?, "
                "data=? WHERE anchor_id=? AND version=?",
                (
                    updated.anchor_hash,
                    updated.status.value,
                    updated.version,
                    updated.last_activity.isoformat(),
                    _dumps(updated.to_dict()),
                    anchor.anchor_id,
                    expected_version,
                ),
            )
            if cur.rowcount == 0:
                row = conn.execute(
                    "SELECT version FROM anchors WHERE anchor_id=?", (anchor.anchor_id,)
                ).fetchone()
                if row is None:
                    raise AnchorNotFoundError(anchor.anchor_id)
                raise VersionConflictError(anchor.anchor_id, expected_version, int(row[0]))
        return updated

    def list_anchors(self, status: AnchorStatus | None = None) -> list[IdentityAnchor]:
        if status is None:
            rows = self._query("SELECT data FROM anchors ORDER BY created_at")
        else:
            rows = self._query(
                "SELECT data FROM anchors WHERE status=? ORDER BY created_at", (status.value,)
            )
        return [IdentityAnchor.from_dict(json.loads(r[0])) for r in rows]

    # ------------------------------------------------------------------
    # Session bindings
    # ------------------------------------------------------------------

    def insert_binding(self, binding: SessionBinding) -> SessionBinding:
        with self._write() as conn:
            row = conn.execute(
                "SELECT anchor_id FROM session_bindings "
                "WHERE session_id=? AND unbound_at IS NULL",
                (binding.session_id,),
            ).fetchone()
            if row is not None:
                raise SessionConflictError(binding.session_id, str(row[0]))
            conn.execute(
                "INSERT INTO session_bindings (binding_id, session_id, anchor_id, "
                "bound_at, unbound_at, data) VALUES (?, ?, ?, ?, NULL, ?)",
                (
                    binding.binding_id,
                    binding.session_id,
                    binding.anchor_id,
                    binding.bound_at.isoformat(),
                    _dumps(binding.to_dict()),
                ),
            )
        return SessionBinding.from_dict(binding.to_dict())

    def get_open_binding(self, session_id: str) -> SessionBinding | None:
        rows = self._query(
            "SELECT data FROM session_bindings WHERE session_id=? AND unbound_at IS NULL",
            (session_id,),
        )
        return SessionBinding.from_dict(json.loads(rows[0][0])) if rows else None

    def close_binding(self, binding: SessionBinding) -> SessionBinding:
        if binding.unbound_at is None:
            raise ValueError("close_binding requires unbound_at to be set")
        with self._write() as conn:
            cur = conn.execute(
                "UPDATE session_bindings SET unbound_at=?, data=? "
                "WHERE binding_id=? AND unbound_at IS NULL",
                (
                    binding.unbound_at.isoformat(),
                    _dumps(binding.to_dict()),
                    binding.binding_id,
                ),
            )
            if cur.rowcount == 0:
                raise SessionNotFoundError(binding.session_id)
        return SessionBinding.from_dict(binding.to_dict())

    def reopen_binding(self, binding: SessionBinding) -> SessionBinding:
        restored = SessionBinding.from_dict(binding.to_dict())
        restored.unbound_at = None
        with self._write() as conn:
            row = conn.execute(
                "SELECT unbound_at FROM session_bindings WHERE binding_id=?",
                (binding.binding_id,),
            ).fetchone()
            if row is None or row[0] is None:
                raise SessionNotFoundError(binding.session_id)
            row = conn.execute(
                "SELECT anchor_id FROM session_bindings "
                "WHERE session_id=? AND unbound_at IS NULL",
                (binding.session_id,),
            ).fetchone()
            if row is not None:
                raise SessionConflictError(binding.session_id, str(row[0]))
            conn.execute(
                "UPDATE session_bindings SET unbound_at=NULL, data=? WHERE binding_id=?",
                (_dumps(restored.to_dict()), binding.binding_id),
            )
        return restored

    def list_bindings(self, anchor_id: str) -> list[SessionBinding]:
        rows = self._query(
            "SELECT data FROM session_bindings WHERE anchor_id=? ORDER BY bound_at",
            (anchor_id,),
        )
        return [SessionBinding.from_dict(json.loads(r[0])) for r in rows]

    # ------------------------------------------------------------------
    # Ledger
    # ------------------------------------------------------------------

    def append_ledger_entry(self, anchor_id: str, build: EntryBuilder) -> LedgerEntry:
        with self._write() as conn:
            row = conn.execute(
                "SELECT sequence, content_hash FROM ledger_entries WHERE anchor_id=? "
                "ORDER BY sequence DESC LIMIT 1",
                (anchor_id,),
            ).fetchone()
            sequence = int(row[0]) + 1 if row else 0
            previous_hash = str(row[1]) if row else GENESIS_HASH
            entry = build(sequence, previous_hash)
            try:
                conn.execute(
                    "INSERT INTO ledger_entries (entry_id, anchor_id, sequence, session_id, "
                    "event_type, payload, timestamp, previous_hash, content_hash) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        entry.entry_id,
                        entry.anchor_id,
                        entry.sequence,
                        entry.session_id,
                        entry.event_type,
                        _dumps(entry.payload),
                        entry.timestamp,
                        entry.previous_hash,
                        entry.content_hash,
                    ),
                )
            except sqlite3.Error as exc:
                logger.error("ledger append rejected for anchor %s: %s", anchor_id, exc)
                raise StoreUnavailableError(
                    f"Ledger append for {anchor_id!r} was rejected: {exc}"
                ) from exc
        return entry

    def _entry_from_row(self, row: tuple) -> LedgerEntry:
        (entry_id, anchor_id, sequence, session_id, event_type, payload,
         timestamp, previous_hash, content_hash) = row
        return LedgerEntry(
            entry_id=str(entry_id),
            anchor_id=str(anchor_id),
            sequence=int(sequence),
            session_id=session_id,
            event_type=str(event_type),
            payload=json.loads(payload),
            timestamp=str(timestamp),
            previous_hash=str(previous_hash),
            content_hash=str(content_hash),
        )

    _LEDGER_COLUMNS = (
        "entry_id, anchor_id, sequence, session_id, event_type, payload, "
        "timestamp, previous_hash, content_hash"
    )

    def list_ledger_entries(self, anchor_id: str) -> list[LedgerEntry]:
        rows = self._query(
            f"SELECT {self._LEDGER_COLUMNS} FROM ledger_entries WHERE anchor_id=? "
            "ORDER BY sequence",
            (anchor_id,),
        )
        return [self._entry_from_row(r) for r in rows]

    def latest_ledger_entry(self, anchor_id: str) -> LedgerEntry | None:
        rows = self._query(
            f"SELECT {self._LEDGER_COLUMNS} FROM ledger_entries WHERE anchor_id=? "
            "ORDER BY sequence DESC LIMIT 1",
            (anchor_id,),
        )
        return self._entry_from_row(rows[0]) if rows else None

    # ------------------------------------------------------------------
    # DNA profiles
    # ------------------------------------------------------------------

    def insert_dna(self, profile: DNAProfile) -> DNAProfile:
        with self._write() as conn:
            row = conn.execute(
                "SELECT data FROM dna_profiles WHERE anchor_id=?", (profile.anchor_id,)
            ).fetchone()
            if row is not None:
                return DNAProfile.from_dict(json.loads(row[0]))
            conn.execute(
                "INSERT INTO dna_profiles (anchor_id, version, data) VALUES (?, ?, ?)",
                (profile.anchor_id, profile.version, _dumps(profile.to_dict())),
            )
        return profile.copy()

    def get_dna(self, anchor_id: str) -> DNAProfile | None:
        rows = self._query("SELECT data FROM dna_profiles WHERE anchor_id=?", (anchor_id,))
        return DNAProfile.from_dict(json.loads(rows[0][0])) if rows else None

    def update_dna(self, profile: DNAProfile, expected_version: int) -> DNAProfile:
        updated = profile.copy()
        updated.version = expected_version + 1
        with self._write() as conn:
            cur = conn.execute(
                "UPDATE dna_profiles SET version=?, data=? WHERE anchor_id=? AND version=?",
                (updated.version, _dumps(updated.to_dict()), profile.anchor_id, expected_version),
            )
            if cur.rowcount == 0:
                row = conn.execute(
                    "SELECT version FROM dna_profiles WHERE anchor_id=?", (profile.anchor_id,)
                ).fetchone()
                if row is None:
                    raise ProfileNotFoundError(profile.anchor_id)
                raise VersionConflictError(profile.anchor_id, expected_version, int(row[0]))
        return updated

    def list_dna(self) -> list[DNAProfile]:
        rows = self._query("SELECT data FROM dna_profiles ORDER BY anchor_id")
        return [DNAProfile.from_dict(json.loads(r[0])) for r in rows]

    # ------------------------------------------------------------------
    # Behavioral evidence
    # ------------------------------------------------------------------

    def append_exposure(self, record: ExposureRecord) -> None:
        with self._write() as conn:
            conn.execute(
                "INSERT INTO exposures (exposure_id, anchor_id, timestamp, data) "
                "VALUES (?, ?, ?, ?)",
                (
                    record.exposure_id,
                    record.anchor_id,
                    record.timestamp.isoformat(),
                    _dumps(record.to_dict()),
                ),
            )

    def list_exposures(self, anchor_id: str) -> list[ExposureRecord]:
        rows = self._query(
            "SELECT data FROM exposures WHERE anchor_id=? ORDER BY timestamp, rowid",
            (anchor_id,),
        )
        return [ExposureRecord.from_dict(json.loads(r[0])) for r in rows]

    def append_behavioral_event(self, event: BehavioralEvent) -> None:
        with self._write() as conn:
            conn.execute(
                "INSERT INTO behavioral_events (event_id, anchor_id, timestamp, "
                "acknowledged, data) VALUES (?, ?, ?, ?, ?)",
                (
                    event.event_id,
                    event.anchor_id,
                    event.timestamp.isoformat(),
                    int(event.acknowledged),
                    _dumps(event.to_dict()),
                ),
            )

    def list_behavioral_events(
        self, anchor_id: str, limit: int | None = None
    ) -> list[BehavioralEvent]:
        sql = (
            "SELECT data, acknowledged FROM behavioral_events WHERE anchor_id=? "
            "ORDER BY timestamp DESC, rowid DESC"
        )
        params: tuple[object, ...] = (anchor_id,)
        if limit is not None:
            sql += " LIMIT ?"
            params = (anchor_id, int(limit))
        events = []
        for data, acknowledged in self._query(sql, params):
            payload = json.loads(data)
            payload["acknowledged"] = bool(acknowledged)
            events.append(BehavioralEvent.from_dict(payload))
        return events

    def acknowledge_behavioral_event(self, event_id: str) -> bool:
        with self._write() as conn:
            cur = conn.execute(
                "UPDATE behavioral_events SET acknowledged=1 WHERE event_id=?", (event_id,)
            )
            return cur.rowcount > 0

    # ------------------------------------------------------------------
    # Trust evolution
    # ------------------------------------------------------------------

    def append_trust_record(self, record: TrustEvolutionRecord) -> None:
        with self._write() as conn:
            conn.execute(
                "INSERT INTO trust_records (record_id, anchor_id, timestamp, data) "
                "VALUES (?, ?, ?, ?)",
                (
                    record.record_id,
                    record.anchor_id,
                    record.timestamp.isoformat(),
                    _dumps(record.to_dict()),
                ),
            )

    def list_trust_records(self, anchor_id: str) -> list[TrustEvolutionRecord]:
        rows = self._query(
            "SELECT data FROM trust_records WHERE anchor_id=? ORDER BY timestamp, rowid",
            (anchor_id,),
        )
        return [TrustEvolutionRecord.from_dict(json.loads(r[0])) for r in rows]


__all__ = ["SQLiteAnchorStore"]
