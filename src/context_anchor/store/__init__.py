"""Durable storage backends for anchors, ledgers, DNA and audit records."""
from __future__ import annotations

from context_anchor.store.base import AnchorStore, EntryBuilder
from context_anchor.store.memory import InMemoryAnchorStore
from context_anchor.store.sqlite import SQLiteAnchorStore

__all__ = ["AnchorStore", "EntryBuilder", "InMemoryAnchorStore", "SQLiteAnchorStore"]
