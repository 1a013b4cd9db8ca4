"""HTTP error taxonomy.

Status codes map to a closed set of kinds; transport errors raised by httpx
before a response exists map to the transport tier.
"""

from __future__ import annotations

import json
from typing import Any

import httpx

from verdict.errors import (
    ClientError,
    OperationError,
    TransportFailure,
    _walk_exception_chain,
)
from verdict.taxonomy._common import message_of, preclassify

BACKEND = "http"

_STATUS_KINDS: dict[int, str] = {
    400: "bad-request",
    401: "unauthorized",
    403: "forbidden",
    404: "not-found",
    409: "conflict",
    429: "too-many-requests",
    500: "internal-server-error",
}


def kind_for_status(status: int) -> str:
    """Return the error kind for a non-2xx status code."""
    return _STATUS_KINDS.get(status, "http-status")


def format_body_detail(body_text: str | None) -> str:
    """Render a response body as an indented block for error messages."""
    if not body_text:
        return ""
    detail = body_text
    try:
        parsed = json.loads(body_text)
    except ValueError:
        pass
    else:
        detail = json.dumps(parsed, indent=2, sort_keys=True, ensure_ascii=False)
    indented = "\n".join(f"  {line}" for line in detail.split("\n"))
    return f"\n\n{indented}"


def status_error(
    status: int,
    status_text: str,
    body_text: str | None = None,
) -> OperationError:
    """Build the error for a response the server answered with a failure status."""
    message = f"{status}: {status_text}{format_body_detail(body_text)}"
    return OperationError(
        message,
        kind=kind_for_status(status),
        backend=BACKEND,
        details={"status": status, "status_text": status_text},
    )


def _timeout_ms(exc: httpx.TimeoutException) -> float:
    """Recover the configured httpx timeout (ms) for the phase that expired."""
    try:
        request = exc.request
    except RuntimeError:
        return 0.0
    timeouts: Any = request.extensions.get("timeout")
    if not isinstance(timeouts, dict):
        return 0.0
    phase = {
        httpx.ConnectTimeout: "connect",
        httpx.ReadTimeout: "read",
        httpx.WriteTimeout: "write",
        httpx.PoolTimeout: "pool",
    }.get(type(exc))
    value = timeouts.get(phase) if phase else None
    if isinstance(value, (int, float)):
        return float(value) * 1000
    return 0.0


def classify(exc: BaseException) -> ClientError:
    """Map an exception raised while issuing an HTTP request."""
    settled = preclassify(exc, backend=BACKEND)
    if settled is not None:
        return settled

    for e in _walk_exception_chain(exc):
        if isinstance(e, httpx.TimeoutException):
            return TransportFailure(
                f"Request timed out: {message_of(e)}",
                kind="timeout",
                backend=BACKEND,
                timeout_ms=_timeout_ms(e),
                cause=exc,
            )
        if isinstance(e, httpx.HTTPStatusError):
            response = e.response
            return status_error(
                response.status_code,
                response.reason_phrase,
                response.text or None,
            )
        if isinstance(e, httpx.TransportError):
            return TransportFailure(
                f"Network error: {message_of(e)}",
                kind="connection",
                backend=BACKEND,
                cause=exc,
            )

    return OperationError(
        message_of(exc),
        kind="unknown",
        backend=BACKEND,
        cause=exc,
    )
