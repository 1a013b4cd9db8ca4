"""Deadline and abort racing for a single attempt.

Cancellation here is cooperative for the *waiting caller only*: when the
timer or the abort signal wins, the caller stops waiting and the in-flight
task is cancelled locally, but a request that was already dispatched may
still be processed by the remote backend. Callers that need remote
cancellation must arrange it with the backend itself.
"""

from __future__ import annotations

import asyncio
import contextlib
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeVar

from verdict.errors import (
    ConfigurationError,
    InternalError,
    abort_error,
    timeout_error,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

T = TypeVar("T")


class AbortSignal:
    """Externally triggerable abort flag, read by in-flight attempts.

    Obtain one from ``AbortController``; the signal itself is read-only.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: object | None = None

    @property
    def aborted(self) -> bool:
        """Whether the owning controller has fired."""
        return self._event.is_set()

    @property
    def reason(self) -> object | None:
        """The reason passed to ``AbortController.abort``, if any."""
        return self._reason

    async def wait(self) -> None:
        """Block until the signal fires."""
        await self._event.wait()

    def _fire(self, reason: object | None) -> None:
        if self._event.is_set():
            return
        self._reason = reason
        self._event.set()


class AbortController:
    """Owner of an ``AbortSignal``."""

    def __init__(self) -> None:
        self.signal = AbortSignal()

    def abort(self, reason: object | None = None) -> None:
        """Fire the signal. Later calls are ignored."""
        self.signal._fire(reason)


@dataclass(frozen=True)
class CancellationToken:
    """Deadline plus abort flag for one attempt. Never reused."""

    timeout_ms: float | None = None
    signal: AbortSignal | None = None

    def __post_init__(self) -> None:
        """Reject deadlines that cannot be honoured."""
        if self.timeout_ms is not None and self.timeout_ms < 0:
            raise ConfigurationError(
                f"timeout_ms must be >= 0, got {self.timeout_ms}",
                hint="Pass timeout_ms=None to wait without a deadline.",
            )

    @property
    def inert(self) -> bool:
        """True when neither a deadline nor a signal is present."""
        return self.timeout_ms is None and self.signal is None


async def _release(tasks: list[asyncio.Task[Any]]) -> None:
    """Cancel every pending task and wait for its cleanup to finish.

    A cancellation delivered to the caller while it waits here is re-raised
    once every task has been awaited.
    """
    current = asyncio.current_task()
    pending = current.cancelling() if current is not None else 0
    for task in tasks:
        if not task.done():
            task.cancel()
    interrupted = False
    for task in tasks:
        try:
            with contextlib.suppress(Exception):
                await task
        except asyncio.CancelledError:
            if current is not None and current.cancelling() > pending:
                interrupted = True
    if interrupted:
        raise asyncio.CancelledError


async def gate(
    factory: Callable[[], Awaitable[T]],
    *,
    token: CancellationToken | None = None,
    operation: str = "operation",
) -> T:
    """Await ``factory()`` unless the token's deadline or signal settles first.

    Exactly one outcome is produced: the operation's own result or exception,
    a timeout ``TransportFailure``, or an abort ``TransportFailure``. Timer
    and abort waiters are cancelled and awaited before this returns, on every
    exit path including the winning one.

    If the signal is already aborted at entry the abort failure is raised
    immediately and ``factory`` is never called.
    """
    if token is None or token.inert:
        return await factory()

    signal = token.signal
    if signal is not None and signal.aborted:
        raise abort_error(operation, signal.reason)

    work: asyncio.Task[T] = asyncio.ensure_future(factory())
    waiters: list[asyncio.Task[Any]] = []
    timer: asyncio.Task[None] | None = None
    listener: asyncio.Task[None] | None = None
    try:
        if token.timeout_ms is not None:
            timer = asyncio.ensure_future(asyncio.sleep(token.timeout_ms / 1000))
            waiters.append(timer)
        if signal is not None:
            listener = asyncio.ensure_future(signal.wait())
            waiters.append(listener)

        done, _ = await asyncio.wait(
            [work, *waiters], return_when=asyncio.FIRST_COMPLETED
        )

        # The operation wins ties: a settled result is never discarded.
        if work in done:
            return work.result()
        if listener is not None and listener in done:
            raise abort_error(operation, signal.reason if signal else None)
        if timer is not None and timer in done:
            raise timeout_error(operation, token.timeout_ms or 0.0)
        raise InternalError("gate settled without a winner")  # pragma: no cover
    finally:
        await _release([work, *waiters])
