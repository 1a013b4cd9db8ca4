"""Shared client lifecycle: call defaults, closing, context management."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from verdict.attempt import Operation
from verdict.errors import ClientClosedError
from verdict.options import DEFAULT_OPTIONS, CallOptions

if TYPE_CHECKING:
    from types import TracebackType
    from typing import Self

logger = logging.getLogger(__name__)


class BaseClient:
    """Lifecycle shared by every client.

    Subclasses set ``backend`` and implement ``_release()`` to free whatever
    driver resources they own. ``aclose()`` calls it at most once.
    """

    backend: str = ""

    def __init__(self, defaults: CallOptions | None = None) -> None:
        self._defaults = defaults or DEFAULT_OPTIONS
        self._closed = False

    @property
    def closed(self) -> bool:
        """Whether ``aclose()`` has been called."""
        return self._closed

    def _ensure_open(self) -> None:
        if self._closed:
            raise ClientClosedError(
                f"{type(self).__name__} is closed",
                hint="Create a new client; closed clients cannot be reopened.",
            )

    def _operation(self, kind: str, options: CallOptions | None) -> Operation:
        self._ensure_open()
        resolved = (options or DEFAULT_OPTIONS).merged(self._defaults)
        return Operation.from_options(kind, resolved)

    async def _release(self) -> None:
        """Free driver resources; called once by ``aclose()``."""

    async def aclose(self) -> None:
        """Release the client's resources. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        await self._release()
        logger.debug("%s closed", type(self).__name__)

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"<{type(self).__name__} {state}>"

