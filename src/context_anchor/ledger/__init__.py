"""Hash-chained, append-only event ledger."""
from __future__ import annotations

from context_anchor.ledger.entry import (
    GENESIS_HASH,
    LedgerEntry,
    LedgerEventType,
    canonical_json,
    compute_entry_hash,
)
from context_anchor.ledger.chain import ChainVerification, EventLedger, verify_entries
from context_anchor.ledger.attestation import ChainAttestation, LedgerAttestor, generate_keypair

__all__ = [
    "ChainAttestation",
    "ChainVerification",
    "EventLedger",
    "GENESIS_HASH",
    "LedgerAttestor",
    "LedgerEntry",
    "LedgerEventType",
    "canonical_json",
    "compute_entry_hash",
    "generate_keypair",
    "verify_entries",
]
