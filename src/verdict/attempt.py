"""One attempt, end to end.

``run_attempt`` is the only place the core pieces meet: the call is raced
through the cancellation gate, a raised signal is classified by the backend
taxonomy, the settled outcome is turned into a result, and the throw/return
policy is applied. Nothing here logs; clients log around it.
"""

from __future__ import annotations

from dataclasses import dataclass
import time
from typing import TYPE_CHECKING, Any, NamedTuple, TypeVar

from verdict.cancellation import AbortSignal, CancellationToken, gate
from verdict.result import Result, build_result, settle

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Mapping

    from verdict.errors import ClientError
    from verdict.options import CallOptions

R = TypeVar("R", bound=Result)


@dataclass(frozen=True)
class Operation:
    """A named attempt with its optional deadline and abort trigger."""

    kind: str
    timeout_ms: float | None = None
    signal: AbortSignal | None = None
    throw_on_error: bool = False

    @classmethod
    def from_options(
        cls, kind: str, options: CallOptions, *, throw_default: bool = False
    ) -> Operation:
        """Build an operation from resolved call options."""
        return cls(
            kind=kind,
            timeout_ms=options.timeout_ms,
            signal=options.signal,
            throw_on_error=options.resolve_throw(throw_default),
        )

    def token(self) -> CancellationToken:
        """Create a fresh cancellation token for one attempt."""
        return CancellationToken(timeout_ms=self.timeout_ms, signal=self.signal)


class Outcome(NamedTuple):
    """What a settled backend call means for the result.

    A call that returned normally can still describe a backend-reported
    failure (an HTTP 404, for example) by carrying an ``error``.
    """

    payload: Mapping[str, Any] | None = None
    error: ClientError | None = None


def elapsed_ms(start: float) -> float:
    """Milliseconds since *start* (a ``time.perf_counter()`` reading)."""
    return (time.perf_counter() - start) * 1000


async def run_attempt(
    operation: Operation,
    call: Callable[[], Awaitable[Any]],
    *,
    result_type: type[R],
    classify: Callable[[BaseException], ClientError],
    interpret: Callable[[Any], Outcome],
    context: Mapping[str, Any] | None = None,
) -> R:
    """Run *call* once and settle it into a ``result_type`` instance.

    Args:
        operation: Kind, deadline, signal and throw policy for this attempt.
        call: Factory for the backend call; not invoked if already aborted.
        result_type: Result dataclass to build.
        classify: Backend taxonomy applied to anything *call* raises.
        interpret: Turns the call's return value into an ``Outcome``.
        context: Payload known before the call (a request URL, say), kept in
            failure states when the result type retains those fields.

    Returns:
        The result, unless the policy says to raise its error.
    """
    start = time.perf_counter()
    try:
        raw = await gate(call, token=operation.token(), operation=operation.kind)
        outcome = interpret(raw)
    except Exception as exc:
        outcome = Outcome(error=classify(exc))

    payload: dict[str, Any] = dict(context or {})
    if outcome.payload:
        payload.update(outcome.payload)
    result = build_result(
        result_type,
        kind=operation.kind,
        duration=elapsed_ms(start),
        payload=payload,
        error=outcome.error,
    )
    return settle(result, throw_on_error=operation.throw_on_error)
