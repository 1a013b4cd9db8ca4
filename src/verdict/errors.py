"""Exception hierarchy for Verdict.

``ClientError`` is the error value carried by every result. It is a tagged
union: the ``kind`` field names one value from a closed enumeration and the
``tier`` field says whether the backend was reached. Consumers should branch
on those fields rather than on the concrete class.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Literal, get_args

if TYPE_CHECKING:
    from collections.abc import Iterator

Backend = Literal["http", "sql", "queue", "document", "keyvalue"]
Tier = Literal["transport", "protocol"]

TransportKind = Literal["connection", "timeout", "abort"]

HttpErrorKind = Literal[
    "bad-request",
    "unauthorized",
    "forbidden",
    "not-found",
    "conflict",
    "too-many-requests",
    "internal-server-error",
    "http-status",
    "unknown",
]
SqlErrorKind = Literal[
    "constraint-violation",
    "deadlock",
    "syntax-error",
    "access-denied",
    "connection-refused",
    "unknown",
]
QueueErrorKind = Literal[
    "queue-not-found",
    "message-not-found",
    "message-too-large",
    "command-error",
    "unknown",
]
DocumentErrorKind = Literal[
    "duplicate-key",
    "validation",
    "not-found",
    "write-conflict",
    "access-denied",
    "command-error",
    "unknown",
]
KeyValueErrorKind = Literal[
    "wrong-type",
    "auth",
    "script-error",
    "read-only",
    "command-error",
    "unknown",
]

TRANSPORT_KINDS: frozenset[str] = frozenset(get_args(TransportKind))

#: Closed protocol-tier kind sets, one per backend.
PROTOCOL_KINDS: dict[str, frozenset[str]] = {
    "http": frozenset(get_args(HttpErrorKind)),
    "sql": frozenset(get_args(SqlErrorKind)),
    "queue": frozenset(get_args(QueueErrorKind)),
    "document": frozenset(get_args(DocumentErrorKind)),
    "keyvalue": frozenset(get_args(KeyValueErrorKind)),
}

#: Transport kinds that are raised even when ``throw_on_error`` is off.
INTERRUPTION_KINDS: frozenset[str] = frozenset({"timeout", "abort"})


class VerdictError(Exception):
    """Base exception for all Verdict errors."""

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint = hint


class ConfigurationError(VerdictError):
    """Configuration or option validation failed."""


class InternalError(VerdictError):
    """A Verdict internal error (bug) or invariant violation."""


class ClientClosedError(VerdictError):
    """An operation was issued on a client that has already been closed."""


class ClientError(VerdictError):
    """Error value attached to a failed result.

    Never instantiated directly; use ``TransportFailure`` or ``OperationError``.
    """

    tier: Tier

    def __init__(
        self,
        message: str,
        *,
        kind: str,
        backend: str | None = None,
        hint: str | None = None,
        cause: BaseException | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, hint=hint)
        self.kind = kind
        self.backend = backend
        self.details: dict[str, Any] = dict(details or {})
        if cause is not None:
            self.__cause__ = cause

    @property
    def cause(self) -> BaseException | None:
        """The native failure this error was classified from, if any."""
        return self.__cause__

    def __getattr__(self, name: str) -> Any:
        # Backend detail fields (status, errno, queue_url, ...) read as attributes.
        details = self.__dict__.get("details")
        if details is not None and name in details:
            return details[name]
        raise AttributeError(name)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(kind={self.kind!r}, backend={self.backend!r}, "
            f"message={str(self)!r})"
        )


class TransportFailure(ClientError):
    """The backend was never reached, or the wait for it was abandoned."""

    tier: Tier = "transport"

    def __init__(
        self,
        message: str,
        *,
        kind: str,
        backend: str | None = None,
        timeout_ms: float | None = None,
        hint: str | None = None,
        cause: BaseException | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        if kind not in TRANSPORT_KINDS:
            raise InternalError(f"Unknown transport error kind: {kind!r}")
        if kind == "timeout" and timeout_ms is None:
            raise InternalError("timeout failures must carry timeout_ms")
        if kind != "timeout" and timeout_ms is not None:
            raise InternalError(f"{kind} failures do not carry timeout_ms")
        super().__init__(
            message,
            kind=kind,
            backend=backend,
            hint=hint,
            cause=cause,
            details=details,
        )
        self.timeout_ms = timeout_ms


class OperationError(ClientError):
    """The backend was reached and explicitly reported a failure."""

    tier: Tier = "protocol"

    def __init__(
        self,
        message: str,
        *,
        kind: str,
        backend: str,
        hint: str | None = None,
        cause: BaseException | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        allowed = PROTOCOL_KINDS.get(backend)
        if allowed is None:
            raise InternalError(f"Unknown backend: {backend!r}")
        if kind not in allowed:
            raise InternalError(
                f"Error kind {kind!r} is not part of the {backend} taxonomy",
                hint=f"Expected one of: {', '.join(sorted(allowed))}",
            )
        super().__init__(
            message,
            kind=kind,
            backend=backend,
            hint=hint,
            cause=cause,
            details=details,
        )


def connection_error(
    message: str,
    *,
    backend: str | None = None,
    cause: BaseException | None = None,
) -> TransportFailure:
    """Build a connection-tier failure."""
    return TransportFailure(message, kind="connection", backend=backend, cause=cause)


def timeout_error(operation: str, timeout_ms: float) -> TransportFailure:
    """Build the failure reported when an attempt outlives its deadline."""
    return TransportFailure(
        f"Operation timed out: {operation}",
        kind="timeout",
        timeout_ms=timeout_ms,
    )


def abort_error(operation: str, reason: object | None = None) -> TransportFailure:
    """Build the failure reported when an attempt is aborted by its signal."""
    message = f"Operation aborted: {operation}"
    if reason is not None:
        message = f"{message} ({reason})"
    return TransportFailure(message, kind="abort")


def is_interruption(error: BaseException | None) -> bool:
    """Return True for timeout/abort failures imposed on the caller."""
    return (
        isinstance(error, ClientError)
        and error.tier == "transport"
        and error.kind in INTERRUPTION_KINDS
    )


def _walk_exception_chain(exc: BaseException) -> Iterator[BaseException]:
    """Yield *exc* and its ``__cause__``/``__context__`` chain, once per exception."""
    seen: set[int] = set()
    stack: list[BaseException] = [exc]
    while stack:
        cur = stack.pop()
        if id(cur) in seen:
            continue
        seen.add(id(cur))
        yield cur

        cause = cur.__cause__
        if isinstance(cause, BaseException):
            stack.append(cause)
        context = cur.__context__
        if isinstance(context, BaseException):
            stack.append(context)
