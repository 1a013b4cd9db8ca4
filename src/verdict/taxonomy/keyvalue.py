"""Key-value cache error taxonomy (Redis error replies).

Error replies are classified by their leading token (``WRONGTYPE ...``).
Drivers that strip the token and raise a dedicated class instead are
classified by class name.
"""

from __future__ import annotations

from verdict.errors import ClientError, OperationError, _walk_exception_chain
from verdict.taxonomy._common import message_of, preclassify

BACKEND = "keyvalue"

_PREFIX_KINDS: dict[str, str] = {
    "WRONGTYPE": "wrong-type",
    "NOAUTH": "auth",
    "WRONGPASS": "auth",
    "NOPERM": "auth",
    "NOSCRIPT": "script-error",
    "BUSY": "script-error",
    "READONLY": "read-only",
    "ERR": "command-error",
}

_CLASS_KINDS: dict[str, str] = {
    "AuthenticationError": "auth",
    "AuthenticationWrongNumberOfArgsError": "auth",
    "NoPermissionError": "auth",
    "NoScriptError": "script-error",
    "ReadOnlyError": "read-only",
    "ResponseError": "command-error",
}


def reply_prefix(message: str) -> str | None:
    """Return the leading upper-case token of a server error reply."""
    head = message.split(" ", 1)[0]
    if head and head.isupper() and head.isalpha():
        return head
    return None


def classify(exc: BaseException, *, command: str | None = None) -> ClientError:
    """Map a cache driver exception raised while running *command*."""
    settled = preclassify(exc, backend=BACKEND)
    if settled is not None:
        return settled

    message = message_of(exc)
    prefix = reply_prefix(message)
    kind = _PREFIX_KINDS.get(prefix) if prefix else None
    if kind is None:
        for e in _walk_exception_chain(exc):
            kind = _CLASS_KINDS.get(type(e).__name__)
            if kind is not None:
                break
    return OperationError(
        message,
        kind=kind or "unknown",
        backend=BACKEND,
        cause=exc,
        details={"command": command, "prefix": prefix},
    )
