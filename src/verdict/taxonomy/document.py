"""Document store error taxonomy (MongoDB server error codes)."""

from __future__ import annotations

from verdict.errors import ClientError, OperationError
from verdict.taxonomy._common import first_attr, message_of, preclassify

BACKEND = "document"

_CODE_KINDS: dict[int, str] = {
    11000: "duplicate-key",
    11001: "duplicate-key",
    121: "validation",
    112: "write-conflict",
    13: "access-denied",
    18: "access-denied",
    26: "not-found",
}


def not_found(message: str) -> OperationError:
    """Build the error raised when an expected document is missing."""
    return OperationError(message, kind="not-found", backend=BACKEND)


def classify(exc: BaseException) -> ClientError:
    """Map a document store driver exception."""
    settled = preclassify(exc, backend=BACKEND)
    if settled is not None:
        return settled

    code = first_attr(exc, "code")
    code_name = first_attr(exc, "code_name", "codeName")
    details: dict[str, object] = {"code": code, "code_name": code_name}

    if isinstance(code, int):
        kind = _CODE_KINDS.get(code, "command-error")
    else:
        kind = "unknown"

    return OperationError(
        message_of(exc),
        kind=kind,
        backend=BACKEND,
        cause=exc,
        details=details,
    )
