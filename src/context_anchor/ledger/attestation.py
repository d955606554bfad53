"""LedgerAttestor — Ed25519 signatures over an anchor's chain head.

A hash chain proves internal consistency but not *which* head was current
at a given time: a writer with store access could truncate the chain and
it would still verify. Signing ``(anchor_id, sequence, head_hash)`` lets a
holder of the public key later prove the chain reached at least that head.

Keys are handled as 32-byte raw values so callers can store them anywhere.
"""
from __future__ import annotations

import base64
import datetime
from dataclasses import dataclass, field

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
    PublicFormat,
)

from context_anchor.ledger.chain import EventLedger
from context_anchor.ledger.entry import GENESIS_HASH, canonical_json
from context_anchor.timeutil import utcnow


@dataclass(frozen=True)
class ChainAttestation:
    """A signed statement that *anchor_id*'s chain had head *head_hash*.

    Parameters
    ----------
    anchor_id:
        The attested anchor.
    sequence:
        Sequence number of the head entry, ``-1`` for an empty chain.
    head_hash:
        Content hash of the head entry.
    signature:
        Base64 Ed25519 signature over the canonical statement.
    public_key:
        Base64 raw public key that verifies ``signature``.
    signed_at:
        UTC signing time (part of the signed statement).
    """

    anchor_id: str
    sequence: int
    head_hash: str
    signature: str
    public_key: str
    signed_at: datetime.datetime = field(default_factory=utcnow)

    def statement(self) -> bytes:
        return _statement(self.anchor_id, self.sequence, self.head_hash, self.signed_at)

    def to_dict(self) -> dict[str, object]:
        return {
            "anchor_id": self.anchor_id,
            "sequence": self.sequence,
            "head_hash": self.head_hash,
            "signature": self.signature,
            "public_key": self.public_key,
            "signed_at": self.signed_at.isoformat(),
        }


def _statement(
    anchor_id: str, sequence: int, head_hash: str, signed_at: datetime.datetime
) -> bytes:
    return canonical_json(
        {
            "anchor_id": anchor_id,
            "sequence": sequence,
            "head_hash": head_hash,
            "signed_at": signed_at.isoformat(),
        }
    ).encode("utf-8")


def generate_keypair() -> tuple[bytes, bytes]:
    """Generate a new Ed25519 keypair.

    Returns
    -------
    tuple[bytes, bytes]
        A ``(private_key_bytes, public_key_bytes)`` pair, 32 raw bytes each.
    """
    private_key = Ed25519PrivateKey.generate()
    private_bytes = private_key.private_bytes(Encoding.Raw, PrivateFormat.Raw, NoEncryption())
    public_bytes = private_key.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)
    return private_bytes, public_bytes


class LedgerAttestor:
    """Signs and checks chain-head attestations.

    Parameters
    ----------
    ledger:
        Ledger whose heads are attested.
    private_key_bytes:
        32-byte raw Ed25519 private key. A fresh key is generated when omitted.
    """

    def __init__(self, ledger: EventLedger, private_key_bytes: bytes | None = None) -> None:
        self._ledger = ledger
        if private_key_bytes is None:
            private_key_bytes, _ = generate_keypair()
        self._private_key = Ed25519PrivateKey.from_private_bytes(private_key_bytes)
        self._public_bytes = self._private_key.public_key().public_bytes(
            Encoding.Raw, PublicFormat.Raw
        )

    @property
    def public_key_bytes(self) -> bytes:
        return self._public_bytes

    def attest(self, anchor_id: str) -> ChainAttestation:
        """Verify *anchor_id*'s chain and sign its current head.

        Raises
        ------
        ChainIntegrityError
            If the chain does not verify; a broken chain is never attested.
        """
        verification = self._ledger.assert_intact(anchor_id)
        sequence = verification.entries_checked - 1
        head_hash = verification.head_hash
        signed_at = utcnow()
        signature = self._private_key.sign(
            _statement(anchor_id, sequence, head_hash, signed_at)
        )
        return ChainAttestation(
            anchor_id=anchor_id,
            sequence=sequence,
            head_hash=head_hash,
            signature=base64.b64encode(signature).decode("ascii"),
            public_key=base64.b64encode(self._public_bytes).decode("ascii"),
            signed_at=signed_at,
        )

    def verify(self, attestation: ChainAttestation) -> bool:
        """Return True when *attestation* is validly signed and still on the chain.

        The attested entry must exist at the attested sequence with the
        attested hash, and the chain up to the current head must verify.
        """
        public_key = Ed25519PublicKey.from_public_bytes(
            base64.b64decode(attestation.public_key)
        )
        try:
            public_key.verify(base64.b64decode(attestation.signature), attestation.statement())
        except InvalidSignature:
            return False

        if not self._ledger.verify(attestation.anchor_id).valid:
            return False
        if attestation.sequence < 0:
            return attestation.head_hash == GENESIS_HASH
        entries = self._ledger.entries(attestation.anchor_id)
        if attestation.sequence >= len(entries):
            return False
        return entries[attestation.sequence].content_hash == attestation.head_hash


__all__ = ["ChainAttestation", "LedgerAttestor", "generate_keypair"]
