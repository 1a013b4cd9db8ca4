"""HTTP response envelope: a tri-state result with a pre-read, cached body.

The body is read in full when the response arrives. Text and JSON views are
decoded on first access and cached, so repeated reads return the same
objects and never decode twice. Status, headers and URL are available
without touching the body, including for error responses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import json
from typing import TYPE_CHECKING, Any, ClassVar, TypeVar

from pydantic import BaseModel

from verdict.result import Result
from verdict.session import parse_set_cookies, split_combined

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

_TEXT = "text"
_JSON = "json"

M = TypeVar("M", bound=BaseModel)


def charset_of(content_type: str | None) -> str:
    """Return the charset named in a ``Content-Type`` value, default utf-8."""
    if content_type:
        for param in content_type.split(";")[1:]:
            key, _, value = param.strip().partition("=")
            if key.lower() == "charset" and value:
                return value.strip().strip('"')
    return "utf-8"


@dataclass(frozen=True)
class HttpResponse(Result):
    """Result of one HTTP request."""

    url: str | None = None
    status: int | None = None
    status_text: str | None = None
    headers: Mapping[str, str] | None = None
    #: Raw body bytes; None when the response had no body.
    body: bytes | None = None
    #: Text decoder used on first ``text()`` access.
    decoder: Callable[[bytes], str] | None = field(
        default=None, repr=False, compare=False, metadata={"payload": False}
    )
    _cache: dict[str, Any] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )

    retained_on_error: ClassVar[frozenset[str]] = frozenset(
        {"url", "status", "status_text", "headers", "body"}
    )
    retained_on_failure: ClassVar[frozenset[str]] = frozenset({"url"})

    def _decode(self, body: bytes) -> str:
        if self.decoder is not None:
            return self.decoder(body)
        content_type = self.headers.get("content-type") if self.headers else None
        return body.decode(charset_of(content_type), errors="replace")

    def text(self) -> str | None:
        """Body decoded as text, or None when there is no body."""
        if self.body is None:
            return None
        if _TEXT not in self._cache:
            self._cache[_TEXT] = self._decode(self.body)
        return self._cache[_TEXT]

    def json(self) -> Any:
        """Body parsed as JSON, or None when there is no body.

        Raises ``ValueError`` when the body is not valid JSON.
        """
        if self.body is None:
            return None
        if _JSON not in self._cache:
            text = self.text()
            self._cache[_JSON] = json.loads(text) if text is not None else None
        return self._cache[_JSON]

    def data(self, model: type[M]) -> M | None:
        """Body parsed as JSON and validated into *model*.

        Returns None when there is no body. Raises ``pydantic.ValidationError``
        when the payload does not fit the model.
        """
        payload = self.json()
        if payload is None:
            return None
        return model.model_validate(payload)

    @property
    def content_type(self) -> str | None:
        """The ``Content-Type`` header, if present."""
        if self.headers is None:
            return None
        return self.headers.get("content-type")

    def set_cookies(self) -> dict[str, str]:
        """Cookies this response asked the client to store (later names win)."""
        if self.headers is None:
            return {}
        return parse_set_cookies(set_cookie_values(self.headers))


def set_cookie_values(headers: Mapping[str, str]) -> list[str]:
    """Return every ``Set-Cookie`` value from *headers*, in arrival order."""
    get_list = getattr(headers, "get_list", None)
    if callable(get_list):
        return list(get_list("set-cookie"))
    combined = headers.get("set-cookie")
    return split_combined(combined) if combined else []
