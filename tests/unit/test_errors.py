"""Unit tests for context_anchor.errors — error kinds and EngineResult."""
from __future__ import annotations

import pytest

from context_anchor.errors import (
    AnchorAlreadyExistsError,
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


class TestErrorKinds:
    @pytest.mark.parametrize(
        ("error", "kind"),
        [
            (AnchorNotFoundError("a"), ErrorKind.NOT_FOUND),
            (SessionNotFoundError("s"), ErrorKind.NOT_FOUND),
            (ProfileNotFoundError("a"), ErrorKind.NOT_FOUND),
            (MintingUnavailableError("down"), ErrorKind.UPSTREAM_UNAVAILABLE),
            (StoreUnavailableError("down"), ErrorKind.UPSTREAM_UNAVAILABLE),
            (ConcurrentUpdateError("anchor", "a", 5), ErrorKind.UPSTREAM_UNAVAILABLE),
            (VersionConflictError("a", 1, 2), ErrorKind.UPSTREAM_UNAVAILABLE),
            (ChainIntegrityError("a", 2, "bad hash"), ErrorKind.INVARIANT_VIOLATION),
            (SessionConflictError("s", "a"), ErrorKind.INVARIANT_VIOLATION),
            (InvalidStatusTransitionError("a", "retired", "active"), ErrorKind.INVARIANT_VIOLATION),
            (AnchorAlreadyExistsError("a"), ErrorKind.INVARIANT_VIOLATION),
            (InsufficientHintsError(), ErrorKind.INSUFFICIENT_DATA),
        ],
    )
    def test_kind(self, error: ContextAnchorError, kind: ErrorKind) -> None:
        assert error.kind is kind

    def test_not_found_is_key_error(self) -> None:
        with pytest.raises(KeyError):
            raise AnchorNotFoundError("missing")

    def test_key_error_message_is_not_quoted(self) -> None:
        assert str(AnchorNotFoundError("x")) == "Anchor 'x' was not found."

    def test_insufficient_hints_is_value_error(self) -> None:
        assert isinstance(InsufficientHintsError(), ValueError)

    def test_chain_error_mentions_sequence(self) -> None:
        assert "entry #3" in str(ChainIntegrityError("a", 3, "bad"))

    def test_chain_error_without_sequence(self) -> None:
        assert "entry #" not in str(ChainIntegrityError("a", None, "bad"))

    def test_concurrent_update_keeps_attempts(self) -> None:
        error = ConcurrentUpdateError("dna profile", "a", 7)
        assert error.attempts == 7
        assert "7" in str(error)


class TestEngineResult:
    def test_success_has_no_kind(self) -> None:
        result = EngineResult.success(42)
        assert result.ok
        assert result.value == 42
        assert result.kind is None

    def test_failure_carries_kind_and_message(self) -> None:
        result: EngineResult[int] = EngineResult.failure(SessionNotFoundError("s-1"))
        assert not result.ok
        assert result.kind is ErrorKind.NOT_FOUND
        assert "s-1" in result.message
        assert result.value is None

    def test_no_op_is_ok_with_insufficient_data(self) -> None:
        result: EngineResult[int] = EngineResult.no_op("wait")
        assert result.ok
        assert result.kind is ErrorKind.INSUFFICIENT_DATA
        assert result.message == "wait"

    def test_to_dict_serializes_value(self) -> None:
        class Thing:
            def to_dict(self) -> dict[str, object]:
                return {"x": 1}

        data = EngineResult.success(Thing()).to_dict()
        assert data == {"ok": True, "value": {"x": 1}, "kind": None, "message": ""}

    def test_to_dict_kind_is_string(self) -> None:
        data = EngineResult.failure(InsufficientHintsError()).to_dict()
        assert data["kind"] == "insufficient_data"
