"""Test helpers (small, reusable doubles).

Keep this file tiny and purpose-built: native driver exceptions and a few
awaitables with controlled settlement.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
import errno
from typing import Any

import httpx

from verdict.clients.http import HttpClient
from verdict.config import HttpClientConfig

BASE_URL = "http://api.test"


# =============================================================================
# Native driver exceptions
# =============================================================================


class MySqlDriverError(Exception):
    """Shaped like a MySQL driver error: ``args == (errno, message)``."""

    def __init__(self, code: int, message: str, sqlstate: str | None = None) -> None:
        super().__init__(code, message)
        self.errno = code
        self.sqlstate = sqlstate


class PgDriverError(Exception):
    """Shaped like a PostgreSQL driver error carrying only a SQLSTATE."""

    def __init__(self, message: str, sqlstate: str) -> None:
        super().__init__(message)
        self.sqlstate = sqlstate


class QueueServiceError(Exception):
    """Shaped like a botocore ``ClientError``."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(f"An error occurred ({code}): {message}")
        self.response = {"Error": {"Code": code, "Message": message}}


class DuplicateKeyError(Exception):
    """Shaped like a PyMongo ``OperationFailure``."""

    def __init__(self, message: str, code: int = 11000) -> None:
        super().__init__(message)
        self.code = code
        self.code_name = "DuplicateKey"


class OperationFailure(Exception):
    def __init__(self, message: str, code: int | None = None) -> None:
        super().__init__(message)
        self.code = code


class ResponseError(Exception):
    """Shaped like ``redis.exceptions.ResponseError``."""


class ErrnoConnectionRefused(OSError):
    def __init__(self) -> None:
        super().__init__(errno.ECONNREFUSED, "Connection refused")


class ConnectionFailure(Exception):
    """Shaped like ``pymongo.errors.ConnectionFailure``."""

    __module__ = "pymongo.errors"


class ServerSelectionTimeoutError(ConnectionFailure):
    __module__ = "pymongo.errors"


#: Shaped like ``redis.exceptions.ConnectionError``, which is not the builtin.
RedisConnectionError = type(
    "ConnectionError", (Exception,), {"__module__": "redis.exceptions"}
)


class EndpointConnectionError(Exception):
    """Shaped like ``botocore.exceptions.EndpointConnectionError``."""

    __module__ = "botocore.exceptions"


# =============================================================================
# Controlled awaitables
# =============================================================================


async def never_settles() -> Any:
    """Await forever; only cancellation ends it."""
    await asyncio.Event().wait()


@dataclass
class Tracked:
    """Records whether a factory was called and whether its task was cancelled."""

    started: int = 0
    cancelled: int = 0
    value: Any = "done"
    delay: float | None = None
    cleanup: float = 0
    cleaning: asyncio.Event = field(default_factory=asyncio.Event)

    async def run(self) -> Any:
        self.started += 1
        try:
            if self.delay is None:
                await asyncio.Event().wait()
            else:
                await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled += 1
            self.cleaning.set()
            if self.cleanup:
                await asyncio.sleep(self.cleanup)
            raise
        return self.value


# =============================================================================
# HTTP
# =============================================================================


@dataclass
class Recorder:
    """``httpx.MockTransport`` handler that records requests and replays responses."""

    responses: list[httpx.Response | Exception | Callable[[httpx.Request], Any]] = (
        field(default_factory=list)
    )
    requests: list[httpx.Request] = field(default_factory=list)

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        item = self.responses.pop(0) if self.responses else httpx.Response(200)
        if isinstance(item, Exception):
            raise item
        if callable(item) and not isinstance(item, httpx.Response):
            return await item(request)
        return item


def http_client(recorder: Recorder, **config: Any) -> HttpClient:
    """Build an ``HttpClient`` served by *recorder*."""
    return HttpClient(
        HttpClientConfig(url=BASE_URL, **config),
        transport=httpx.MockTransport(recorder),
    )
