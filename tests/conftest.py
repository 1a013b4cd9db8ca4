"""Pytest configuration and fixtures.

Provides driver test doubles, environment isolation, logging configuration
and automatic API test skipping. Fixtures here are autouse unless noted.
"""

from __future__ import annotations

from contextlib import suppress
from dataclasses import dataclass, field
import logging
import os
from typing import Any

import pytest

from verdict.clients.sql import StatementReply

# =============================================================================
# Test Doubles
# =============================================================================


def _next(script: list[Any], default: Any) -> Any:
    """Pop the next scripted item; raise it if it is an exception."""
    item = script.pop(0) if script else default
    if isinstance(item, BaseException):
        raise item
    return item


@dataclass
class FakeSqlHandle:
    """Pooled connection double that records statements and transaction calls."""

    script: list[StatementReply | BaseException] = field(default_factory=list)
    statements: list[tuple[str, Any]] = field(default_factory=list)
    begin_error: BaseException | None = None
    commit_error: BaseException | None = None
    rollback_error: BaseException | None = None
    began: int = 0
    commits: int = 0
    rollbacks: int = 0
    isolation_level: str | None = None

    async def execute(self, sql: str, params: Any = None) -> StatementReply:
        self.statements.append((sql, params))
        return _next(self.script, StatementReply(rows=None, affected_rows=1))

    async def begin(self, isolation_level: str | None = None) -> None:
        self.began += 1
        self.isolation_level = isolation_level
        if self.begin_error is not None:
            raise self.begin_error

    async def commit(self) -> None:
        self.commits += 1
        if self.commit_error is not None:
            raise self.commit_error

    async def rollback(self) -> None:
        self.rollbacks += 1
        if self.rollback_error is not None:
            raise self.rollback_error


@dataclass
class FakeSqlPool:
    """Pool double handing out a single ``FakeSqlHandle``."""

    handle: FakeSqlHandle = field(default_factory=FakeSqlHandle)
    acquire_error: BaseException | None = None
    acquired: int = 0
    released: int = 0
    closed: int = 0

    async def acquire(self) -> FakeSqlHandle:
        if self.acquire_error is not None:
            raise self.acquire_error
        self.acquired += 1
        return self.handle

    async def release(self, handle: FakeSqlHandle) -> None:
        assert handle is self.handle
        self.released += 1

    async def close(self) -> None:
        self.closed += 1


@dataclass
class FakeQueueDriver:
    """SQS-shaped driver double; replies are scripted per method name."""

    replies: dict[str, list[Any]] = field(default_factory=dict)
    calls: list[tuple[str, dict[str, Any]]] = field(default_factory=list)
    closed: int = 0

    async def _call(self, method: str, kwargs: dict[str, Any]) -> dict[str, Any]:
        self.calls.append((method, kwargs))
        return _next(self.replies.setdefault(method, []), {})

    async def send_message(self, **kwargs: Any) -> dict[str, Any]:
        return await self._call("send_message", kwargs)

    async def send_message_batch(self, **kwargs: Any) -> dict[str, Any]:
        return await self._call("send_message_batch", kwargs)

    async def receive_message(self, **kwargs: Any) -> dict[str, Any]:
        return await self._call("receive_message", kwargs)

    async def delete_message(self, **kwargs: Any) -> dict[str, Any]:
        return await self._call("delete_message", kwargs)

    async def delete_message_batch(self, **kwargs: Any) -> dict[str, Any]:
        return await self._call("delete_message_batch", kwargs)

    async def purge_queue(self, **kwargs: Any) -> dict[str, Any]:
        return await self._call("purge_queue", kwargs)

    async def close(self) -> None:
        self.closed += 1


@dataclass
class FakeCursor:
    docs: list[dict[str, Any]]

    async def to_list(self, length: int | None = None) -> list[dict[str, Any]]:
        del length
        return list(self.docs)


@dataclass
class FakeCollection:
    """Collection double; every method pops from ``script`` (or returns a default)."""

    script: list[Any] = field(default_factory=list)
    calls: list[tuple[str, tuple[Any, ...], dict[str, Any]]] = field(
        default_factory=list
    )

    def _record(self, name: str, *args: Any, **kwargs: Any) -> None:
        self.calls.append((name, args, kwargs))

    def find(self, query: Any, **kwargs: Any) -> FakeCursor:
        self._record("find", query, **kwargs)
        return FakeCursor(_next(self.script, []))

    async def find_one(self, query: Any, **kwargs: Any) -> Any:
        self._record("find_one", query, **kwargs)
        return _next(self.script, None)

    async def insert_one(self, document: Any) -> Any:
        self._record("insert_one", document)
        return _next(self.script, None)

    async def insert_many(self, documents: Any) -> Any:
        self._record("insert_many", documents)
        return _next(self.script, None)

    async def update_one(self, query: Any, update: Any, **kwargs: Any) -> Any:
        self._record("update_one", query, update, **kwargs)
        return _next(self.script, None)

    async def update_many(self, query: Any, update: Any, **kwargs: Any) -> Any:
        self._record("update_many", query, update, **kwargs)
        return _next(self.script, None)

    async def delete_one(self, query: Any) -> Any:
        self._record("delete_one", query)
        return _next(self.script, None)

    async def delete_many(self, query: Any) -> Any:
        self._record("delete_many", query)
        return _next(self.script, None)

    async def aggregate(self, pipeline: Any) -> FakeCursor:
        self._record("aggregate", pipeline)
        return FakeCursor(_next(self.script, []))

    async def count_documents(self, query: Any) -> int:
        self._record("count_documents", query)
        return _next(self.script, 0)


@dataclass
class FakeDocumentDriver:
    collections: dict[tuple[str, str], FakeCollection] = field(default_factory=dict)
    closed: int = 0

    def collection(self, database: str, name: str) -> FakeCollection:
        return self.collections.setdefault((database, name), FakeCollection())

    async def close(self) -> None:
        self.closed += 1


@dataclass
class FakeKeyValueDriver:
    """Redis-shaped driver double; replies are scripted in call order."""

    script: list[Any] = field(default_factory=list)
    commands: list[tuple[Any, ...]] = field(default_factory=list)
    closed: int = 0

    async def execute_command(self, *args: Any, **options: Any) -> Any:
        del options
        self.commands.append(args)
        return _next(self.script, None)

    async def aclose(self) -> None:
        self.closed += 1


@pytest.fixture
def sql_pool() -> FakeSqlPool:
    return FakeSqlPool()


@pytest.fixture
def queue_driver() -> FakeQueueDriver:
    return FakeQueueDriver()


@pytest.fixture
def document_driver() -> FakeDocumentDriver:
    return FakeDocumentDriver()


@pytest.fixture
def keyvalue_driver() -> FakeKeyValueDriver:
    return FakeKeyValueDriver()


# =============================================================================
# Environment Isolation (Autouse)
# =============================================================================


@pytest.fixture(autouse=True)
def block_dotenv(request, monkeypatch):
    """Prevent python-dotenv from loading project .env files during tests.

    Opt-out: @pytest.mark.allow_dotenv
    """
    if request.node.get_closest_marker("allow_dotenv"):
        return
    with suppress(Exception):
        monkeypatch.setattr(
            "dotenv.load_dotenv", lambda *_args, **_kwargs: False, raising=False
        )


@pytest.fixture(autouse=True)
def isolate_verdict_env(monkeypatch):
    """Ensure a clean connection environment for each test.

    Clears VERDICT_* env vars to prevent test pollution.
    """
    for key in list(os.environ.keys()):
        if key.startswith("VERDICT_"):
            monkeypatch.delenv(key, raising=False)


# =============================================================================
# Logging
# =============================================================================


@pytest.fixture(scope="session", autouse=True)
def quiet_noisy_libraries():
    """Suppress noisy third-party loggers."""
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

