"""Per-item outcome reconciliation for batch calls.

A batch call that was accepted settles as a successful result even when some
items failed: acceptance is decided per item, and ``failed`` carries the
rejected ones. Only a batch call that could not be attempted at all settles
as an error or failure, in which case both partitions are ``None``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Generic, NamedTuple, TypeVar

from verdict.errors import ConfigurationError, InternalError
from verdict.result import Result

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

P = TypeVar("P")

#: Code recorded for an entry the backend reported neither way.
MISSING_CODE = "missing"


@dataclass(frozen=True)
class BatchEntry(Generic[P]):
    """One input item of a batch call."""

    id: str
    payload: P


@dataclass(frozen=True)
class BatchItemOutcome:
    """Outcome of one batch item, in input order."""

    id: str
    ok: bool
    payload: Any = None
    code: str | None = None
    message: str | None = None

    def __post_init__(self) -> None:
        """Keep success and failure shapes disjoint."""
        if self.ok and (self.code is not None or self.message is not None):
            raise InternalError(f"Successful batch item {self.id!r} carries an error")
        if not self.ok and (self.code is None or self.payload is not None):
            raise InternalError(
                f"Failed batch item {self.id!r} needs a code and no payload"
            )

    @classmethod
    def success(cls, id: str, payload: Any = None) -> BatchItemOutcome:
        """Build an accepted item."""
        return cls(id=id, ok=True, payload=payload)

    @classmethod
    def failure(cls, id: str, code: str, message: str = "") -> BatchItemOutcome:
        """Build a rejected item."""
        return cls(id=id, ok=False, code=code, message=message)


class Partition(NamedTuple):
    """Accepted and rejected items, each in input order."""

    successful: tuple[BatchItemOutcome, ...]
    failed: tuple[BatchItemOutcome, ...]


def reconcile(outcomes: Iterable[BatchItemOutcome]) -> Partition:
    """Split *outcomes* into accepted and rejected items, keeping relative order."""
    successful: list[BatchItemOutcome] = []
    failed: list[BatchItemOutcome] = []
    for outcome in outcomes:
        (successful if outcome.ok else failed).append(outcome)
    return Partition(tuple(successful), tuple(failed))


def check_entry_ids(entries: Sequence[BatchEntry[Any]]) -> None:
    """Reject batches with empty or repeated entry ids."""
    seen: set[str] = set()
    for entry in entries:
        if not entry.id:
            raise ConfigurationError(
                "Batch entry ids must be non-empty",
                hint="Give every BatchEntry a unique id.",
            )
        if entry.id in seen:
            raise ConfigurationError(
                f"Duplicate batch entry id: {entry.id!r}",
                hint="Give every BatchEntry a unique id.",
            )
        seen.add(entry.id)


def align(
    entries: Sequence[BatchEntry[Any]],
    successes: Mapping[str, Any],
    failures: Mapping[str, tuple[str, str]],
) -> list[BatchItemOutcome]:
    """Rebuild input order from backend responses keyed by entry id.

    *successes* maps id to payload; *failures* maps id to ``(code, message)``.
    An entry reported in neither is recorded as failed with ``MISSING_CODE``.
    """
    check_entry_ids(entries)
    outcomes: list[BatchItemOutcome] = []
    for entry in entries:
        if entry.id in failures:
            code, message = failures[entry.id]
            outcomes.append(BatchItemOutcome.failure(entry.id, code, message))
        elif entry.id in successes:
            outcomes.append(BatchItemOutcome.success(entry.id, successes[entry.id]))
        else:
            outcomes.append(
                BatchItemOutcome.failure(
                    entry.id, MISSING_CODE, "No per-item outcome was reported"
                )
            )
    return outcomes


@dataclass(frozen=True)
class BatchResult(Result):
    """Result of a batch call."""

    successful: tuple[BatchItemOutcome, ...] | None = None
    failed: tuple[BatchItemOutcome, ...] | None = None

    @property
    def all_succeeded(self) -> bool:
        """True when the batch was accepted and no item failed."""
        return self.failed is not None and len(self.failed) == 0
