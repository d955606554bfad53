"""Error taxonomy and the typed result returned by the engine facade.

Every failure raised inside the package is a :class:`ContextAnchorError`
subclass tagged with one of four :class:`ErrorKind` values. Components
raise; :class:`~context_anchor.engine.ContextEngine` converts the raised
error into an :class:`EngineResult` so callers never see an unstructured
exception.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")


class ErrorKind(str, Enum):
    """The four failure classes callers are expected to distinguish.

    NOT_FOUND:
        An explicit anchor, session, or profile does not exist.
    UPSTREAM_UNAVAILABLE:
        The minting authority or durable store could not be reached, or a
        write lost its optimistic-concurrency race too many times. Retryable.
    INVARIANT_VIOLATION:
        A structural invariant was broken (hash chain mismatch, double-bound
        session, illegal status transition). Never auto-repaired.
    INSUFFICIENT_DATA:
        Not enough evidence to proceed. Reported, not treated as a failure.
    """

    NOT_FOUND = "not_found"
    UPSTREAM_UNAVAILABLE = "upstream_unavailable"
    INVARIANT_VIOLATION = "invariant_violation"
    INSUFFICIENT_DATA = "insufficient_data"


class ContextAnchorError(Exception):
    """Base class for every error raised by context_anchor."""

    kind: ErrorKind = ErrorKind.INVARIANT_VIOLATION

    def __str__(self) -> str:
        # KeyError subclasses quote their message; keep output readable.
        if self.args:
            return str(self.args[0])
        return super().__str__()


# ------------------------------------------------------------------
# Not found
# ------------------------------------------------------------------


class AnchorNotFoundError(ContextAnchorError, KeyError):
    """Raised when an anchor id does not exist or has been retired."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, anchor_id: str) -> None:
        self.anchor_id = anchor_id
        super().__init__(f"Anchor {anchor_id!r} was not found.")


class SessionNotFoundError(ContextAnchorError, KeyError):
    """Raised when a session id has no open binding."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Session {session_id!r} has no open binding.")


class ProfileNotFoundError(ContextAnchorError, KeyError):
    """Raised when no DNA profile exists for an anchor."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, anchor_id: str) -> None:
        self.anchor_id = anchor_id
        super().__init__(f"No DNA profile exists for anchor {anchor_id!r}.")


# ------------------------------------------------------------------
# Upstream unavailable
# ------------------------------------------------------------------


class MintingUnavailableError(ContextAnchorError):
    """Raised when the minting authority fails, times out, or answers badly."""

    kind = ErrorKind.UPSTREAM_UNAVAILABLE


class StoreUnavailableError(ContextAnchorError):
    """Raised when the durable store rejects a read or write."""

    kind = ErrorKind.UPSTREAM_UNAVAILABLE


class ConcurrentUpdateError(ContextAnchorError):
    """Raised when an optimistic update keeps losing to concurrent writers."""

    kind = ErrorKind.UPSTREAM_UNAVAILABLE

    def __init__(self, record: str, key: str, attempts: int) -> None:
        self.record = record
        self.key = key
        self.attempts = attempts
        super().__init__(
            f"Gave up updating {record} {key!r} after {attempts} conflicting "
            "attempts. Retry the operation."
        )


class VersionConflictError(ContextAnchorError):
    """Raised by a store when a compare-and-swap sees a newer version.

    Callers retry on this error; it only escapes as
    :class:`ConcurrentUpdateError` once retries are exhausted.
    """

    kind = ErrorKind.UPSTREAM_UNAVAILABLE

    def __init__(self, key: str, expected: int, actual: int | None) -> None:
        self.key = key
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Version conflict on {key!r}: expected {expected}, found {actual}."
        )


# ------------------------------------------------------------------
# Invariant violations
# ------------------------------------------------------------------


class ChainIntegrityError(ContextAnchorError):
    """Raised when an anchor's ledger chain fails verification."""

    kind = ErrorKind.INVARIANT_VIOLATION

    def __init__(self, anchor_id: str, sequence: int | None, reason: str) -> None:
        self.anchor_id = anchor_id
        self.sequence = sequence
        self.reason = reason
        where = f" at entry #{sequence}" if sequence is not None else ""
        super().__init__(f"Ledger chain for {anchor_id!r} is broken{where}: {reason}")


class SessionConflictError(ContextAnchorError):
    """Raised when a session already holds an open binding to another anchor."""

    kind = ErrorKind.INVARIANT_VIOLATION

    def __init__(self, session_id: str, bound_anchor_id: str) -> None:
        self.session_id = session_id
        self.bound_anchor_id = bound_anchor_id
        super().__init__(
            f"Session {session_id!r} is already bound to anchor "
            f"{bound_anchor_id!r}. Unbind it first."
        )


class InvalidStatusTransitionError(ContextAnchorError, ValueError):
    """Raised when an anchor status change is not permitted."""

    kind = ErrorKind.INVARIANT_VIOLATION

    def __init__(self, anchor_id: str, current: str, requested: str) -> None:
        super().__init__(
            f"Anchor {anchor_id!r} cannot move from {current!r} to {requested!r}."
        )


class AnchorAlreadyExistsError(ContextAnchorError, ValueError):
    """Raised when inserting an anchor whose id is already taken."""

    kind = ErrorKind.INVARIANT_VIOLATION

    def __init__(self, anchor_id: str) -> None:
        self.anchor_id = anchor_id
        super().__init__(f"Anchor {anchor_id!r} already exists.")


class AnchorHashTakenError(AnchorAlreadyExistsError):
    """Raised when a non-retired anchor already holds the inserted anchor hash."""

    def __init__(self, anchor_hash: str, existing_anchor_id: str) -> None:
        self.anchor_hash = anchor_hash
        self.existing_anchor_id = existing_anchor_id
        ContextAnchorError.__init__(
            self,
            f"Anchor hash {anchor_hash[:12]!r} is already held by anchor "
            f"{existing_anchor_id!r}.",
        )
        self.anchor_id = existing_anchor_id


# ------------------------------------------------------------------
# Insufficient data
# ------------------------------------------------------------------


class InsufficientHintsError(ContextAnchorError, ValueError):
    """Raised when resolution hints contain no stable identifying field."""

    kind = ErrorKind.INSUFFICIENT_DATA

    def __init__(self) -> None:
        super().__init__(
            "Resolution hints must include at least one of project_path, "
            "workspace, support_type, or organization, or an explicit anchor_id."
        )


# ------------------------------------------------------------------
# Typed result
# ------------------------------------------------------------------


@dataclass(frozen=True)
class EngineResult(Generic[T]):
    """Outcome of a :class:`~context_anchor.engine.ContextEngine` call.

    Parameters
    ----------
    ok:
        ``True`` when the operation completed. An insufficient-data no-op
        is still ``ok``.
    value:
        The operation's return value, when there is one.
    kind:
        The error kind for failures and insufficient-data outcomes.
    message:
        Human-readable description of a failure or no-op.
    """

    ok: bool
    value: T | None = None
    kind: ErrorKind | None = None
    message: str = ""

    @classmethod
    def success(cls, value: T | None = None) -> "EngineResult[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: ContextAnchorError) -> "EngineResult[T]":
        return cls(ok=False, kind=error.kind, message=str(error))

    @classmethod
    def no_op(cls, message: str, value: T | None = None) -> "EngineResult[T]":
        return cls(ok=True, value=value, kind=ErrorKind.INSUFFICIENT_DATA, message=message)

    def to_dict(self) -> dict[str, object]:
        """Serialize to a plain dictionary."""
        value = self.value
        to_dict = getattr(value, "to_dict", None)
        return {
            "ok": self.ok,
            "value": to_dict() if callable(to_dict) else value,
            "kind": self.kind.value if self.kind is not None else None,
            "message": self.message,
        }
