"""EventLedger — append-only, hash-chained event log per anchor.

Each anchor has its own chain. The first entry links to the ``"genesis"``
sentinel; every later entry stores the content hash of its predecessor.
Verification replays the chain from the store and never repairs anything:
a mismatch is reported and, via :meth:`EventLedger.assert_intact`, raised
as :class:`~context_anchor.errors.ChainIntegrityError`.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

from context_anchor.errors import ChainIntegrityError
from context_anchor.ledger.entry import GENESIS_HASH, LedgerEntry, LedgerEventType

if TYPE_CHECKING:
    from context_anchor.store.base import AnchorStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChainVerification:
    """Result of replaying one anchor's chain.

    Parameters
    ----------
    anchor_id:
        The anchor whose chain was checked.
    valid:
        ``True`` when every hash and link checked out.
    entries_checked:
        Number of entries replayed before stopping.
    head_hash:
        Content hash of the last entry, or ``"genesis"`` for an empty chain.
    broken_at:
        Sequence number of the first bad entry, when invalid.
    reason:
        Description of the first failure, when invalid.
    """

    anchor_id: str
    valid: bool
    entries_checked: int
    head_hash: str
    broken_at: int | None = None
    reason: str = ""

    def to_dict(self) -> dict[str, object]:
        return {
            "anchor_id": self.anchor_id,
            "valid": self.valid,
            "entries_checked": self.entries_checked,
            "head_hash": self.head_hash,
            "broken_at": self.broken_at,
            "reason": self.reason,
        }


def verify_entries(anchor_id: str, entries: list[LedgerEntry]) -> ChainVerification:
    """Check hashes, links and ordering for an already-loaded chain.

    Parameters
    ----------
    anchor_id:
        The anchor the entries are expected to belong to.
    entries:
        Entries in insertion order.

    Returns
    -------
    ChainVerification
    """
    expected_previous = GENESIS_HASH
    for index, entry in enumerate(entries):
        reason = ""
        if entry.anchor_id != anchor_id:
            reason = f"entry belongs to anchor {entry.anchor_id!r}"
        elif entry.sequence != index:
            reason = f"expected sequence {index}, found {entry.sequence}"
        elif entry.previous_hash != expected_previous:
            reason = "previous_hash does not match the prior entry's hash"
        elif entry.recompute_hash() != entry.content_hash:
            reason = "content hash does not match the entry's contents"
        if reason:
            return ChainVerification(
                anchor_id=anchor_id,
                valid=False,
                entries_checked=index,
                head_hash=expected_previous,
                broken_at=entry.sequence,
                reason=reason,
            )
        expected_previous = entry.content_hash

    return ChainVerification(
        anchor_id=anchor_id,
        valid=True,
        entries_checked=len(entries),
        head_hash=expected_previous,
    )


class EventLedger:
    """Hash-chained ledger writer and verifier.

    Parameters
    ----------
    store:
        Durable store. Its ``append_ledger_entry`` performs the
        read-head-then-insert step atomically.

    Example
    -------
    ::

        ledger = EventLedger(InMemoryAnchorStore())
        ledger.append("03-1-USA-0001-P-2601-0-42", None, "created", {"k": 1})
        assert ledger.verify("03-1-USA-0001-P-2601-0-42").valid
    """

    def __init__(self, store: AnchorStore) -> None:
        self._store = store

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def append(
        self,
        anchor_id: str,
        session_id: str | None,
        event_type: LedgerEventType | str,
        payload: dict[str, Any] | None = None,
    ) -> LedgerEntry:
        """Append one entry to *anchor_id*'s chain.

        Parameters
        ----------
        anchor_id:
            The anchor the event happened to.
        session_id:
            The session responsible, or ``None``.
        event_type:
            A :class:`LedgerEventType` or custom string.
        payload:
            JSON-compatible structured data.

        Returns
        -------
        LedgerEntry
            The stored entry.

        Raises
        ------
        StoreUnavailableError
            If the store rejects the write. Nothing is stored in that case.
        """
        kind = event_type.value if isinstance(event_type, LedgerEventType) else str(event_type)

        def build(sequence: int, previous_hash: str) -> LedgerEntry:
            return LedgerEntry.build(
                anchor_id=anchor_id,
                sequence=sequence,
                previous_hash=previous_hash,
                event_type=kind,
                payload=payload,
                session_id=session_id,
            )

        entry = self._store.append_ledger_entry(anchor_id, build)
        logger.debug(
            "ledger append anchor=%s seq=%d type=%s", anchor_id, entry.sequence, kind
        )
        return entry

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def entries(self, anchor_id: str) -> list[LedgerEntry]:
        """Return *anchor_id*'s entries in insertion order."""
        return self._store.list_ledger_entries(anchor_id)

    def head(self, anchor_id: str) -> LedgerEntry | None:
        """Return the latest entry for *anchor_id*, or ``None``."""
        return self._store.latest_ledger_entry(anchor_id)

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    def verify(self, anchor_id: str) -> ChainVerification:
        """Replay *anchor_id*'s chain and report the first inconsistency."""
        result = verify_entries(anchor_id, self.entries(anchor_id))
        if not result.valid:
            logger.warning(
                "ledger chain broken for anchor %s at seq %s: %s",
                anchor_id,
                result.broken_at,
                result.reason,
            )
        return result

    def assert_intact(self, anchor_id: str) -> ChainVerification:
        """Like :meth:`verify` but raise when the chain is broken.

        Raises
        ------
        ChainIntegrityError
            If any entry fails verification.
        """
        result = self.verify(anchor_id)
        if not result.valid:
            raise ChainIntegrityError(anchor_id, result.broken_at, result.reason)
        return result

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def export_jsonl(self, anchor_id: str, path: str | Path) -> int:
        """Write *anchor_id*'s chain to *path* as JSON lines.

        Returns
        -------
        int
            Number of entries written.
        """
        entries = self.entries(anchor_id)
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        with target.open("w", encoding="utf-8") as fh:
            for entry in entries:
                fh.write(json.dumps(entry.to_dict(), sort_keys=True) + "\n")
        return len(entries)


__all__ = ["ChainVerification", "EventLedger", "verify_entries"]
