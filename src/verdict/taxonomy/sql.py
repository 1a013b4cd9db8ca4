"""Relational database error taxonomy.

MySQL server error numbers are matched first, then the SQLSTATE class for
drivers that only report the standard code.
See https://dev.mysql.com/doc/mysql-errors/8.0/en/server-error-reference.html
"""

from __future__ import annotations

import re

from verdict.errors import ClientError, OperationError, connection_error
from verdict.taxonomy._common import first_attr, message_of, preclassify

BACKEND = "sql"

ER_CON_COUNT_ERROR = 1040
ER_ACCESS_DENIED_ERROR = 1045
ER_DUP_ENTRY = 1062
ER_PARSE_ERROR = 1064
ER_HOST_IS_BLOCKED = 1129
ER_HOST_NOT_PRIVILEGED = 1130
ER_LOCK_DEADLOCK = 1213
ER_ROW_IS_REFERENCED_2 = 1451
ER_NO_REFERENCED_ROW_2 = 1452
ER_CHECK_CONSTRAINT_VIOLATED = 3819

# Client-side errors: the driver never reached the server.
CR_CONNECTION_ERROR = 2002
CR_CONN_HOST_ERROR = 2003
CR_UNKNOWN_HOST = 2005

_CLIENT_CONNECTION_ERRNOS: frozenset[int] = frozenset(
    {CR_CONNECTION_ERROR, CR_CONN_HOST_ERROR, CR_UNKNOWN_HOST}
)

_ERRNO_KINDS: dict[int, str] = {
    ER_ACCESS_DENIED_ERROR: "access-denied",
    ER_PARSE_ERROR: "syntax-error",
    ER_DUP_ENTRY: "constraint-violation",
    ER_ROW_IS_REFERENCED_2: "constraint-violation",
    ER_NO_REFERENCED_ROW_2: "constraint-violation",
    ER_CHECK_CONSTRAINT_VIOLATED: "constraint-violation",
    ER_LOCK_DEADLOCK: "deadlock",
    # The server was reached but refused the session.
    ER_CON_COUNT_ERROR: "connection-refused",
    ER_HOST_IS_BLOCKED: "connection-refused",
    ER_HOST_NOT_PRIVILEGED: "connection-refused",
}

_CONSTRAINT_RE = re.compile(r"for key '([^']+)'|CONSTRAINT `([^`]+)`")


def extract_errno(exc: BaseException) -> int | None:
    """Find a server error number on the exception chain.

    DB-API drivers commonly put it in ``errno`` or as the first positional
    argument (``OperationalError(1045, "Access denied ...")``).
    """
    value = first_attr(exc, "errno", "sql_errno")
    if isinstance(value, int):
        return value
    if exc.args and isinstance(exc.args[0], int):
        return exc.args[0]
    return None


def extract_sqlstate(exc: BaseException) -> str | None:
    """Find a five-character SQLSTATE on the exception chain."""
    value = first_attr(exc, "sqlstate", "sql_state", "pgcode")
    if isinstance(value, str) and len(value) == 5:
        return value
    return None


def _kind_for_sqlstate(sqlstate: str) -> str | None:
    if sqlstate.startswith("23"):
        return "constraint-violation"
    if sqlstate in {"40001", "40P01"}:
        return "deadlock"
    if sqlstate in {"42601", "42000"}:
        return "syntax-error"
    if sqlstate.startswith("28"):
        return "access-denied"
    return None


def _constraint_name(message: str) -> str:
    match = _CONSTRAINT_RE.search(message)
    if match is None:
        return "unknown"
    return match.group(1) or match.group(2) or "unknown"


def _driver_message(exc: BaseException) -> str:
    # DB-API drivers often pass (errno, message) as args.
    if len(exc.args) >= 2 and isinstance(exc.args[1], str):
        return exc.args[1]
    return message_of(exc)


def classify(exc: BaseException) -> ClientError:
    """Map a database driver exception."""
    settled = preclassify(exc, backend=BACKEND)
    if settled is not None:
        return settled

    message = _driver_message(exc)
    errno_value = extract_errno(exc)
    sqlstate = extract_sqlstate(exc)
    if errno_value in _CLIENT_CONNECTION_ERRNOS:
        return connection_error(message, backend=BACKEND, cause=exc)

    kind: str | None = None
    if errno_value is not None:
        kind = _ERRNO_KINDS.get(errno_value)
    if kind is None and sqlstate is not None:
        kind = _kind_for_sqlstate(sqlstate)

    details: dict[str, object] = {"errno": errno_value, "sqlstate": sqlstate}
    if kind == "constraint-violation":
        details["constraint"] = _constraint_name(message)

    return OperationError(
        message,
        kind=kind or "unknown",
        backend=BACKEND,
        cause=exc,
        details=details,
    )
