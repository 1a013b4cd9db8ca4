"""Shared classification helpers.

Every backend taxonomy runs the same preamble before looking at
backend-specific signals: cancellation is re-raised, interruption failures
and already-classified errors pass through, and transport-level signals are
recognised first so they always classify as a connection failure.
"""

from __future__ import annotations

import asyncio
import errno
import socket
from typing import Any

import httpx

from verdict.errors import (
    ClientError,
    TransportFailure,
    _walk_exception_chain,
)

_CONNECTION_ERRNOS: frozenset[int] = frozenset(
    {
        errno.ECONNREFUSED,
        errno.ECONNRESET,
        errno.ECONNABORTED,
        errno.EHOSTUNREACH,
        errno.ENETUNREACH,
        errno.ENETDOWN,
        errno.EPIPE,
    }
)

_CONNECTION_CODES: frozenset[str] = frozenset(
    {
        "ECONNREFUSED",
        "ECONNRESET",
        "ENOTFOUND",
        "EAI_AGAIN",
        "EHOSTUNREACH",
        "ENETUNREACH",
    }
)

#: Driver exceptions that mean the server was never reached, as
#: ``(top-level package, class name)``. Matched along each class's MRO so
#: subclasses such as ``ServerSelectionTimeoutError`` are covered.
_DRIVER_CONNECTION_CLASSES: frozenset[tuple[str, str]] = frozenset(
    {
        ("pymongo", "ConnectionFailure"),
        ("redis", "ConnectionError"),
        ("botocore", "EndpointConnectionError"),
    }
)


def _is_transport_signal(exc: BaseException) -> bool:
    if isinstance(exc, (socket.gaierror, ConnectionError)):
        return True
    if isinstance(exc, (httpx.ConnectError, httpx.NetworkError)):
        return True
    if isinstance(exc, OSError) and exc.errno in _CONNECTION_ERRNOS:
        return True
    code = getattr(exc, "code", None)
    if isinstance(code, str) and code in _CONNECTION_CODES:
        return True
    return _is_driver_connection_error(exc)


def _is_driver_connection_error(exc: BaseException) -> bool:
    return any(
        (cls.__module__.partition(".")[0], cls.__name__) in _DRIVER_CONNECTION_CLASSES
        for cls in type(exc).__mro__
    )


def find_transport_signal(exc: BaseException) -> BaseException | None:
    """Walk the exception chain for a connection-level failure."""
    for e in _walk_exception_chain(exc):
        if _is_transport_signal(e):
            return e
    return None


def preclassify(exc: BaseException, *, backend: str) -> ClientError | None:
    """Run the backend-agnostic part of classification.

    Returns the final error when the signal is settled without backend
    knowledge, or None when the backend mapping should continue.
    """
    if isinstance(exc, asyncio.CancelledError):
        raise exc

    if isinstance(exc, ClientError):
        if exc.tier == "transport":
            return exc
        if exc.backend == backend:
            return exc

    signal = find_transport_signal(exc)
    if signal is not None:
        return TransportFailure(
            f"Connection failed: {exc}" if str(exc) else "Connection failed",
            kind="connection",
            backend=backend,
            cause=exc,
        )
    return None


def message_of(exc: BaseException) -> str:
    """Return a non-empty message for *exc*."""
    text = str(exc)
    return text if text else type(exc).__name__


def first_attr(exc: BaseException, *names: str) -> Any:
    """Return the first non-None attribute found along the exception chain."""
    for e in _walk_exception_chain(exc):
        for name in names:
            value = getattr(e, name, None)
            if value is not None:
                return value
    return None
