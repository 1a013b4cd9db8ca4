"""Per-call options shared by every client."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

from verdict.cancellation import AbortSignal
from verdict.errors import ConfigurationError

if TYPE_CHECKING:
    from verdict.retry import RetryPolicy


@dataclass(frozen=True)
class CallOptions:
    """Options for a single client call."""

    #: Deadline for one attempt, in milliseconds.
    timeout_ms: float | None = None
    #: External cancellation trigger, see ``AbortController``.
    signal: AbortSignal | None = None
    #: Raise failed results instead of returning them. ``None`` defers to the
    #: client configuration. Timeouts and aborts are raised regardless.
    throw_on_error: bool | None = None
    #: Not interpreted by Verdict; read by retry wrappers above the clients.
    retry: RetryPolicy | None = None

    def __post_init__(self) -> None:
        """Validate option shapes early for clear errors."""
        if self.timeout_ms is not None and (
            isinstance(self.timeout_ms, bool)
            or not isinstance(self.timeout_ms, (int, float))
            or self.timeout_ms < 0
        ):
            raise ConfigurationError(
                f"timeout_ms must be a non-negative number, got {self.timeout_ms!r}",
                hint="Pass timeout_ms=5000 for a five second deadline.",
            )
        if self.signal is not None and not isinstance(self.signal, AbortSignal):
            raise ConfigurationError(
                "signal must be an AbortSignal",
                hint="Create one with AbortController() and pass controller.signal.",
            )

    def resolve_throw(self, default: bool) -> bool:
        """Resolve ``throw_on_error``: call option, then client default."""
        return default if self.throw_on_error is None else self.throw_on_error

    def merged(self, defaults: CallOptions | None) -> CallOptions:
        """Fill unset fields from client-level *defaults*."""
        if defaults is None:
            return self
        return replace(
            self,
            timeout_ms=self.timeout_ms
            if self.timeout_ms is not None
            else defaults.timeout_ms,
            signal=self.signal if self.signal is not None else defaults.signal,
            throw_on_error=self.throw_on_error
            if self.throw_on_error is not None
            else defaults.throw_on_error,
            retry=self.retry if self.retry is not None else defaults.retry,
        )


DEFAULT_OPTIONS = CallOptions()
