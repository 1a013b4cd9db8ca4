"""Relational database client over a pooled driver.

The driver is any object satisfying ``SqlPool``; wire work and parameter
binding stay in the driver. This module owns settlement, transaction
boundaries and handle release.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
import logging
from typing import TYPE_CHECKING, Any, Literal, Protocol, TypeVar

from verdict.attempt import Operation, Outcome, run_attempt
from verdict.clients.base import BaseClient
from verdict.errors import ClientClosedError
from verdict.options import DEFAULT_OPTIONS, CallOptions
from verdict.result import Result, ValueResult
from verdict.sequence import Rows
from verdict.taxonomy import sql as taxonomy

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

    from verdict.config import SqlClientConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")

IsolationLevel = Literal[
    "READ UNCOMMITTED", "READ COMMITTED", "REPEATABLE READ", "SERIALIZABLE"
]


@dataclass(frozen=True)
class StatementReply:
    """What a driver reports for one executed statement.

    ``rows`` is None for statements that return no result set.
    """

    rows: Sequence[dict[str, Any]] | None = None
    affected_rows: int = 0
    last_insert_id: int | None = None
    warning_count: int = 0


class SqlHandle(Protocol):
    """One pooled connection."""

    async def execute(
        self, sql: str, params: Sequence[Any] | None = None
    ) -> StatementReply: ...

    async def begin(self, isolation_level: IsolationLevel | None = None) -> None: ...

    async def commit(self) -> None: ...

    async def rollback(self) -> None: ...


class SqlPool(Protocol):
    """Connection pool supplied by the driver."""

    async def acquire(self) -> SqlHandle: ...

    async def release(self, handle: SqlHandle) -> None: ...

    async def close(self) -> None: ...


@dataclass(frozen=True)
class SqlQueryResult(Result):
    """Result of one SQL statement."""

    rows: Rows[dict[str, Any]] | None = None
    #: Rows returned, or rows affected for statements without a result set.
    row_count: int | None = None
    last_insert_id: int | None = None
    warnings: tuple[str, ...] | None = None


def _interpret_statement(reply: StatementReply) -> Outcome:
    if reply.rows is not None:
        rows = Rows(reply.rows, noun="rows")
        row_count = len(rows)
    else:
        rows = Rows((), noun="rows")
        row_count = reply.affected_rows
    warnings = (
        (f"{reply.warning_count} warning(s)",) if reply.warning_count > 0 else None
    )
    return Outcome(
        payload={
            "rows": rows,
            "row_count": row_count,
            "last_insert_id": reply.last_insert_id or None,
            "warnings": warnings,
        }
    )


def _interpret_first(reply: StatementReply) -> Outcome:
    rows = reply.rows or ()
    return Outcome(payload={"value": rows[0] if rows else None})


class SqlTransaction:
    """Statements issued on the handle a transaction holds.

    Failed statements raise by default so that ``fn`` unwinds and the
    transaction rolls back; pass ``CallOptions(throw_on_error=False)`` to
    inspect them instead.
    """

    def __init__(self, handle: SqlHandle, defaults: CallOptions) -> None:
        self._handle = handle
        self._defaults = defaults
        self._finished = False

    def _operation(self, options: CallOptions | None) -> Operation:
        if self._finished:
            raise ClientClosedError(
                "Transaction has already finished",
                hint="Issue statements only inside the transaction callback.",
            )
        resolved = (options or DEFAULT_OPTIONS).merged(self._defaults)
        return Operation.from_options("sql:query", resolved, throw_default=True)

    async def query(
        self,
        sql: str,
        params: Sequence[Any] | None = None,
        *,
        options: CallOptions | None = None,
    ) -> SqlQueryResult:
        """Execute one statement inside the transaction."""
        handle = self._handle
        return await run_attempt(
            self._operation(options),
            lambda: handle.execute(sql, params),
            result_type=SqlQueryResult,
            classify=taxonomy.classify,
            interpret=_interpret_statement,
        )

    async def query_one(
        self,
        sql: str,
        params: Sequence[Any] | None = None,
        *,
        options: CallOptions | None = None,
    ) -> ValueResult:
        """Execute one statement; ``value`` is the first row or None."""
        handle = self._handle
        return await run_attempt(
            self._operation(options),
            lambda: handle.execute(sql, params),
            result_type=ValueResult,
            classify=taxonomy.classify,
            interpret=_interpret_first,
        )


class SqlClient(BaseClient):
    """Tri-state relational database client.

    Example:
        async with SqlClient(pool) as db:
            res = await db.query("SELECT * FROM users WHERE id = ?", [1])
            user = res.rows.first() if res.ok else None
    """

    backend = "sql"

    def __init__(self, pool: SqlPool, config: SqlClientConfig | None = None) -> None:
        super().__init__(config.defaults() if config is not None else None)
        self.config = config
        self._pool = pool
        logger.debug("SqlClient created config=%r", config)

    async def _run(
        self,
        sql: str,
        params: Sequence[Any] | None,
        options: CallOptions | None,
        *,
        result_type: type[Any],
        interpret: Callable[[StatementReply], Outcome],
    ) -> Any:
        operation = self._operation("sql:query", options)
        pool = self._pool

        async def call() -> StatementReply:
            handle = await pool.acquire()
            try:
                return await handle.execute(sql, params)
            finally:
                await pool.release(handle)

        logger.debug("SQL query starting: %s", sql)
        result = await run_attempt(
            operation,
            call,
            result_type=result_type,
            classify=taxonomy.classify,
            interpret=interpret,
        )
        logger.debug(
            "SQL query finished state=%s duration=%.1fms",
            result.state,
            result.duration,
        )
        return result

    async def query(
        self,
        sql: str,
        params: Sequence[Any] | None = None,
        *,
        options: CallOptions | None = None,
    ) -> SqlQueryResult:
        """Execute one statement on a pooled connection."""
        return await self._run(
            sql,
            params,
            options,
            result_type=SqlQueryResult,
            interpret=_interpret_statement,
        )

    async def query_one(
        self,
        sql: str,
        params: Sequence[Any] | None = None,
        *,
        options: CallOptions | None = None,
    ) -> ValueResult:
        """Execute one statement; ``value`` is the first row or None."""
        return await self._run(
            sql,
            params,
            options,
            result_type=ValueResult,
            interpret=_interpret_first,
        )

    async def transaction(
        self,
        fn: Callable[[SqlTransaction], Awaitable[T]],
        *,
        isolation_level: IsolationLevel | None = None,
        options: CallOptions | None = None,
    ) -> T:
        """Run *fn* inside a transaction and return what it returns.

        Commits when *fn* returns and rolls back when it raises, including
        when the calling task is cancelled. The pooled handle is released
        exactly once on every path. Failures to acquire, begin or commit
        are raised as classified ``ClientError`` values.
        """
        self._ensure_open()
        resolved = (options or DEFAULT_OPTIONS).merged(self._defaults)
        if options is None or options.throw_on_error is None:
            resolved = replace(resolved, throw_on_error=True)

        try:
            handle = await self._pool.acquire()
        except Exception as exc:
            raise taxonomy.classify(exc)

        try:
            try:
                await handle.begin(isolation_level)
            except Exception as exc:
                raise taxonomy.classify(exc)
            logger.debug("SQL transaction started isolation=%s", isolation_level)

            tx = SqlTransaction(handle, resolved)
            try:
                value = await fn(tx)
            except BaseException:
                tx._finished = True
                await _rollback(handle)
                raise
            tx._finished = True

            try:
                await handle.commit()
            except Exception as exc:
                await _rollback(handle)
                raise taxonomy.classify(exc)
            except BaseException:
                await _rollback(handle)
                raise
            logger.debug("SQL transaction committed")
            return value
        finally:
            await self._pool.release(handle)

    async def _release(self) -> None:
        await self._pool.close()


async def _rollback(handle: SqlHandle) -> None:
    try:
        await handle.rollback()
    except Exception as exc:
        # The error that triggered the rollback is the one callers see.
        logger.warning("SQL transaction rollback failed: %s", exc)
    else:
        logger.debug("SQL transaction rolled back")
