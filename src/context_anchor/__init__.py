"""context-anchor — identity resolution and trust evolution for AI sessions.

Ephemeral sessions are mapped onto persistent identity anchors. Each
session's metrics accumulate into the anchor's DNA profile, behavioral
assessment derives traits and red flags from that profile, and trust
evolves from the accumulated evidence. Every state change is recorded in
a per-anchor hash-chained event ledger.

Public API
----------
The stable public surface is everything exported from this module.
Anything inside submodules not re-exported here is considered private
and may change without notice.

Example
-------
>>> import context_anchor
>>> context_anchor.__version__
'0.1.0'

Quick start
-----------
::

    from context_anchor import ContextEngine, InMemoryAnchorStore

    engine = ContextEngine(InMemoryAnchorStore())
    resolution = engine.resolve({"project_path": "/srv/app", "workspace": "main"}).value
    anchor = engine.create_anchor(resolution.pending_anchor).value
    engine.bind_session(anchor.anchor_id, "session-1")
    engine.unbind_session("session-1", {"interactions": 12, "successes": 9})
"""
from __future__ import annotations

__version__: str = "0.1.0"

from context_anchor.errors import (
    AnchorAlreadyExistsError,
    AnchorHashTakenError,
    AnchorNotFoundError,
    ChainIntegrityError,
    ConcurrentUpdateError,
    ContextAnchorError,
    EngineResult,
    ErrorKind,
    InsufficientHintsError,
    InvalidStatusTransitionError,
    MintingUnavailableError,
    ProfileNotFoundError,
    SessionConflictError,
    SessionNotFoundError,
    StoreUnavailableError,
    VersionConflictError,
)

# ------------------------------------------------------------------
# Ledger
# ------------------------------------------------------------------
from context_anchor.ledger import (
    ChainAttestation,
    ChainVerification,
    EventLedger,
    LedgerAttestor,
    LedgerEntry,
    LedgerEventType,
)

# ------------------------------------------------------------------
# Identity
# ------------------------------------------------------------------
from context_anchor.identity import (
    AnchorHints,
    AnchorIssuer,
    AnchorResolver,
    AnchorStatus,
    HttpMintingAuthority,
    IdentityAnchor,
    LocalIdentifierFactory,
    MintingAuthority,
    PendingAnchor,
    Resolution,
    ResolutionAction,
    SessionBinding,
    compute_anchor_hash,
    validate_global_id,
)

# ------------------------------------------------------------------
# DNA
# ------------------------------------------------------------------
from context_anchor.dna import DNAAccumulator, DNAProfile, SessionMetrics

# ------------------------------------------------------------------
# Behavior
# ------------------------------------------------------------------
from context_anchor.behavior import (
    BehavioralAssessment,
    BehavioralAssessmentEngine,
    BehavioralEvent,
    BehavioralTrait,
    ExposureRecord,
    InteractionType,
    SourceProfile,
    SourceProfiles,
)

# ------------------------------------------------------------------
# Trust
# ------------------------------------------------------------------
from context_anchor.trust import (
    TrustEvaluation,
    TrustEvaluationStatus,
    TrustEvolutionEngine,
    TrustEvolutionRecord,
    TrustFactor,
    TrustHistory,
    TrustLevel,
    TrustPolicy,
    TrustScore,
    TrustScorer,
    derive_level,
)

# ------------------------------------------------------------------
# Archetypes
# ------------------------------------------------------------------
from context_anchor.archetype import (
    ARCHETYPE_CATALOG,
    Archetype,
    ArchetypeClassifier,
    CapabilityDimension,
    Classification,
)

# ------------------------------------------------------------------
# Storage, configuration, facade
# ------------------------------------------------------------------
from context_anchor.store import AnchorStore, InMemoryAnchorStore, SQLiteAnchorStore
from context_anchor.config import EngineSettings
from context_anchor.engine import ContextEngine

__all__ = [
    "__version__",
    # Errors
    "AnchorAlreadyExistsError",
    "AnchorHashTakenError",
    "AnchorNotFoundError",
    "ChainIntegrityError",
    "ConcurrentUpdateError",
    "ContextAnchorError",
    "EngineResult",
    "ErrorKind",
    "InsufficientHintsError",
    "InvalidStatusTransitionError",
    "MintingUnavailableError",
    "ProfileNotFoundError",
    "SessionConflictError",
    "SessionNotFoundError",
    "StoreUnavailableError",
    "VersionConflictError",
    # Ledger
    "ChainAttestation",
    "ChainVerification",
    "EventLedger",
    "LedgerAttestor",
    "LedgerEntry",
    "LedgerEventType",
    # Identity
    "AnchorHints",
    "AnchorIssuer",
    "AnchorResolver",
    "AnchorStatus",
    "HttpMintingAuthority",
    "IdentityAnchor",
    "LocalIdentifierFactory",
    "MintingAuthority",
    "PendingAnchor",
    "Resolution",
    "ResolutionAction",
    "SessionBinding",
    "compute_anchor_hash",
    "validate_global_id",
    # DNA
    "DNAAccumulator",
    "DNAProfile",
    "SessionMetrics",
    # Behavior
    "BehavioralAssessment",
    "BehavioralAssessmentEngine",
    "BehavioralEvent",
    "BehavioralTrait",
    "ExposureRecord",
    "InteractionType",
    "SourceProfile",
    "SourceProfiles",
    # Trust
    "TrustEvaluation",
    "TrustEvaluationStatus",
    "TrustEvolutionEngine",
    "TrustEvolutionRecord",
    "TrustFactor",
    "TrustHistory",
    "TrustLevel",
    "TrustPolicy",
    "TrustScore",
    "TrustScorer",
    "derive_level",
    # Archetypes
    "ARCHETYPE_CATALOG",
    "Archetype",
    "ArchetypeClassifier",
    "CapabilityDimension",
    "Classification",
    # Storage, configuration, facade
    "AnchorStore",
    "ContextEngine",
    "EngineSettings",
    "InMemoryAnchorStore",
    "SQLiteAnchorStore",
]
