"""Immutable ordered sequence with first/last accessors."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, TypeVar, overload

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

T = TypeVar("T")


class EmptySequenceError(LookupError):
    """Raised by ``first_or_raise``/``last_or_raise`` on an empty sequence."""


class Rows(Sequence[T]):
    """Rows, documents or messages returned by one call, in backend order."""

    __slots__ = ("_items", "_noun")

    def __init__(self, items: Iterable[T] = (), *, noun: str = "rows") -> None:
        self._items: tuple[T, ...] = tuple(items)
        self._noun = noun

    @overload
    def __getitem__(self, index: int) -> T: ...

    @overload
    def __getitem__(self, index: slice) -> Rows[T]: ...

    def __getitem__(self, index: int | slice) -> T | Rows[T]:
        if isinstance(index, slice):
            return Rows(self._items[index], noun=self._noun)
        return self._items[index]

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(self._items)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Rows):
            return self._items == other._items
        if isinstance(other, (list, tuple)):
            return self._items == tuple(other)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._items)

    def __repr__(self) -> str:
        return f"Rows({list(self._items)!r})"

    def first(self) -> T | None:
        """First item, or None when empty."""
        return self._items[0] if self._items else None

    def last(self) -> T | None:
        """Last item, or None when empty."""
        return self._items[-1] if self._items else None

    def first_or_raise(self) -> T:
        """First item; raises ``EmptySequenceError`` when empty."""
        if not self._items:
            raise EmptySequenceError(f"No {self._noun} found")
        return self._items[0]

    def last_or_raise(self) -> T:
        """Last item; raises ``EmptySequenceError`` when empty."""
        if not self._items:
            raise EmptySequenceError(f"No {self._noun} found")
        return self._items[-1]
