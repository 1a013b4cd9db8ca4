"""Retry policy carried on call options.

Verdict never retries on its own. The policy travels with the call so that
wrappers layered above the clients can read one consistent shape.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

from verdict.errors import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Callable

Backoff = Literal["linear", "exponential"]


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry policy description."""

    #: 1 means a single attempt with no retry.
    max_attempts: int = 1
    backoff: Backoff = "exponential"
    initial_delay_ms: float = 1000.0
    max_delay_ms: float = 30000.0
    #: Predicate deciding whether an error should trigger another attempt.
    retry_on: Callable[[BaseException], bool] | None = None

    def __post_init__(self) -> None:
        """Validate invariants to keep retry behavior predictable."""
        if self.max_attempts < 1:
            raise ConfigurationError("RetryPolicy.max_attempts must be >= 1")
        if self.backoff not in ("linear", "exponential"):
            raise ConfigurationError(
                f"Unknown backoff strategy: {self.backoff!r}",
                hint="Use 'linear' or 'exponential'.",
            )
        if self.initial_delay_ms < 0:
            raise ConfigurationError("RetryPolicy.initial_delay_ms must be >= 0")
        if self.max_delay_ms < self.initial_delay_ms:
            raise ConfigurationError(
                "RetryPolicy.max_delay_ms must be >= initial_delay_ms"
            )

    def delay_ms(self, retry_index: int) -> float:
        """Delay before retry number *retry_index* (1-based), capped at max_delay_ms."""
        if retry_index < 1:
            raise ConfigurationError("retry_index starts at 1")
        if self.backoff == "linear":
            base = self.initial_delay_ms * retry_index
        else:
            base = self.initial_delay_ms * (2 ** (retry_index - 1))
        return min(self.max_delay_ms, base)
