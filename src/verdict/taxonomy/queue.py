"""Message queue error taxonomy (SQS-shaped service errors)."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from verdict.errors import ClientError, OperationError
from verdict.taxonomy._common import message_of, preclassify

if TYPE_CHECKING:
    from collections.abc import Sequence

BACKEND = "queue"

#: Maximum message body size accepted by the service, in bytes.
MAX_MESSAGE_SIZE = 256 * 1024

#: Maximum number of entries in one batch request.
MAX_BATCH_ENTRIES = 10

_QUEUE_NOT_FOUND_CODES: frozenset[str] = frozenset(
    {
        "QueueDoesNotExist",
        "AWS.SimpleQueueService.NonExistentQueue",
        "NonExistentQueue",
    }
)
_MESSAGE_NOT_FOUND_CODES: frozenset[str] = frozenset(
    {"ReceiptHandleIsInvalid", "InvalidReceiptHandle"}
)


def extract_error_code(exc: BaseException) -> str:
    """Return the service error code, falling back to the exception class name.

    Service SDKs attach the code as ``response["Error"]["Code"]`` or as a
    ``code`` attribute.
    """
    response: Any = getattr(exc, "response", None)
    if isinstance(response, dict):
        error = response.get("Error")
        if isinstance(error, dict):
            code = error.get("Code")
            if isinstance(code, str) and code:
                return code
    code = getattr(exc, "code", None)
    if isinstance(code, str) and code:
        return code
    return type(exc).__name__


def message_too_large(size: int, limit: int = MAX_MESSAGE_SIZE) -> OperationError:
    """Build the error for a message body over the service limit."""
    return OperationError(
        f"Message size {size} exceeds maximum allowed size {limit}",
        kind="message-too-large",
        backend=BACKEND,
        details={"size": size, "limit": limit},
    )


def batch_request_error(code: str, message: str, *, operation: str) -> OperationError:
    """Build the error the service reports for a batch it refuses outright."""
    return OperationError(
        message,
        kind="command-error",
        backend=BACKEND,
        details={"operation": operation, "code": code},
    )


def check_batch(
    ids: Sequence[str], *, operation: str, limit: int = MAX_BATCH_ENTRIES
) -> None:
    """Raise the service's own error for a batch it would reject as a whole."""
    if not ids:
        raise batch_request_error(
            "EmptyBatchRequest",
            "The batch request doesn't contain any entries",
            operation=operation,
        )
    if len(ids) > limit:
        raise batch_request_error(
            "TooManyEntriesInBatchRequest",
            f"Maximum number of entries per request are {limit}, got {len(ids)}",
            operation=operation,
        )
    seen: set[str] = set()
    for entry_id in ids:
        if not entry_id:
            raise batch_request_error(
                "InvalidBatchEntryId",
                "Batch entry ids must be non-empty",
                operation=operation,
            )
        if entry_id in seen:
            raise batch_request_error(
                "BatchEntryIdsNotDistinct",
                f"Id {entry_id} repeated",
                operation=operation,
            )
        seen.add(entry_id)


def classify(
    exc: BaseException,
    *,
    operation: str = "",
    queue_url: str | None = None,
) -> ClientError:
    """Map a queue service exception raised during *operation*."""
    settled = preclassify(exc, backend=BACKEND)
    if settled is not None:
        return settled

    code = extract_error_code(exc)
    message = message_of(exc)

    if (
        code in _QUEUE_NOT_FOUND_CODES
        or "does not exist" in message
        or "NonExistentQueue" in message
    ):
        return OperationError(
            message,
            kind="queue-not-found",
            backend=BACKEND,
            cause=exc,
            details={"queue_url": queue_url or "unknown", "code": code},
        )

    if (
        code in _MESSAGE_NOT_FOUND_CODES
        or "ReceiptHandleIsInvalid" in message
        or "receipt handle" in message.lower()
    ):
        return OperationError(
            message,
            kind="message-not-found",
            backend=BACKEND,
            cause=exc,
            details={"code": code},
        )

    kind = "command-error" if code != type(exc).__name__ else "unknown"
    return OperationError(
        message,
        kind=kind,
        backend=BACKEND,
        cause=exc,
        details={"operation": operation, "code": code},
    )
