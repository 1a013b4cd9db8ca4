"""Per-client session state captured from ``Set-Cookie`` headers."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

_SET_COOKIE_RE = re.compile(r"^([^=;]+)=([^;]*)")
# A comma starts a new cookie only when followed by ``name=``.
_COMBINED_SPLIT_RE = re.compile(r",(?=\s*[\w!#$%&'*+.^`|~-]+=)")


def parse_set_cookie(value: str) -> tuple[str, str] | None:
    """Extract the ``name=value`` pair from one ``Set-Cookie`` value.

    Attributes (Path, Expires, HttpOnly, ...) are ignored.
    """
    match = _SET_COOKIE_RE.match(value.strip())
    if match is None:
        return None
    name = match.group(1).strip()
    if not name:
        return None
    return name, match.group(2).strip()


def split_combined(header: str) -> list[str]:
    """Split a comma-joined ``Set-Cookie`` header into individual values.

    Commas inside ``Expires=Wed, 21 Oct 2015 ...`` are not separators.
    """
    return [part.strip() for part in _COMBINED_SPLIT_RE.split(header) if part.strip()]


def parse_set_cookies(values: Iterable[str]) -> dict[str, str]:
    """Parse ``Set-Cookie`` values from one response into a name→value map.

    When a name repeats, the later value wins.
    """
    cookies: dict[str, str] = {}
    for raw in values:
        parsed = parse_set_cookie(raw)
        if parsed is not None:
            name, value = parsed
            cookies[name] = value
    return cookies


class SessionStore:
    """Cookie jar owned by one client instance."""

    def __init__(self, initial: Mapping[str, str] | None = None) -> None:
        self._cookies: dict[str, str] = dict(initial or {})

    def get(self, name: str) -> str | None:
        """Return the stored value for *name*, if any."""
        return self._cookies.get(name)

    def set(self, name: str, value: str) -> None:
        """Store *value* under *name*, replacing any previous value."""
        self._cookies[name] = value

    def clear(self) -> None:
        """Forget every stored cookie."""
        self._cookies.clear()

    def merge(self, cookies: Mapping[str, str]) -> None:
        """Merge cookies received in one response."""
        self._cookies.update(cookies)

    def snapshot(self) -> dict[str, str]:
        """Copy of the current name→value mapping."""
        return dict(self._cookies)

    def header_value(self) -> str | None:
        """Render the ``Cookie`` request header, or None when empty."""
        if not self._cookies:
            return None
        return "; ".join(f"{name}={value}" for name, value in self._cookies.items())

    def __len__(self) -> int:
        return len(self._cookies)

    def __contains__(self, name: object) -> bool:
        return name in self._cookies
