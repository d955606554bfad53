"""Identity anchors: hints, hashing, minting, resolution and session binding."""
from __future__ import annotations

from context_anchor.identity.anchor import (
    AnchorIssuer,
    AnchorStatus,
    IdentityAnchor,
    SessionBinding,
)
from context_anchor.identity.hints import (
    STABLE_FIELDS,
    AnchorHints,
    canonical_anchor_fields,
    compute_anchor_hash,
)
from context_anchor.identity.minting import (
    GlobalIdParts,
    HttpMintingAuthority,
    LocalIdentifierFactory,
    MintingAuthority,
    parse_global_id,
    validate_global_id,
)
from context_anchor.identity.resolver import (
    AnchorResolver,
    PendingAnchor,
    Resolution,
    ResolutionAction,
    update_anchor_with_retry,
)

__all__ = [
    "AnchorHints",
    "AnchorIssuer",
    "AnchorResolver",
    "AnchorStatus",
    "GlobalIdParts",
    "HttpMintingAuthority",
    "IdentityAnchor",
    "LocalIdentifierFactory",
    "MintingAuthority",
    "PendingAnchor",
    "Resolution",
    "ResolutionAction",
    "STABLE_FIELDS",
    "SessionBinding",
    "canonical_anchor_fields",
    "compute_anchor_hash",
    "parse_global_id",
    "update_anchor_with_retry",
    "validate_global_id",
]
