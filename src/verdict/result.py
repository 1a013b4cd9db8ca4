"""Tri-state results and the throw/return policy.

Every operation settles into exactly one of three states:

- ``success``: ``processed=True, ok=True, error=None``
- ``error``: ``processed=True, ok=False, error=OperationError``
- ``failure``: ``processed=False, ok=False, error=TransportFailure``

Payload fields that do not apply to a state are ``None``, never absent.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import TYPE_CHECKING, Any, ClassVar, Literal, TypeVar

from verdict.errors import ClientError, InternalError, is_interruption

if TYPE_CHECKING:
    from collections.abc import Mapping

ResultState = Literal["success", "error", "failure"]

R = TypeVar("R", bound="Result")

_BASE_FIELDS: frozenset[str] = frozenset(
    {"kind", "processed", "ok", "error", "duration"}
)


@dataclass(frozen=True)
class Result:
    """Immutable outcome of one attempt."""

    kind: str
    processed: bool
    ok: bool
    error: ClientError | None
    #: Wall-clock milliseconds for the whole attempt.
    duration: float

    #: Payload fields that stay populated when the backend reported an error.
    retained_on_error: ClassVar[frozenset[str]] = frozenset()
    #: Payload fields that stay populated when the backend was never reached.
    retained_on_failure: ClassVar[frozenset[str]] = frozenset()

    def __post_init__(self) -> None:
        """Reject any combination outside the three valid states."""
        state = _state_of(self.processed, self.ok, self.error)
        if state is None:
            raise InternalError(
                f"Invalid result state for {self.kind!r}: processed={self.processed}, "
                f"ok={self.ok}, error={self.error!r}"
            )
        if state == "success":
            return
        retained = (
            self.retained_on_error if state == "error" else self.retained_on_failure
        )
        for name in payload_fields(type(self)):
            if name not in retained and getattr(self, name) is not None:
                raise InternalError(
                    f"{type(self).__name__}.{name} must be None in the {state} state"
                )

    @property
    def state(self) -> ResultState:
        """Name of the state this result is in."""
        state = _state_of(self.processed, self.ok, self.error)
        if state is None:  # pragma: no cover - rejected at construction
            raise InternalError(f"Invalid result state for {self.kind!r}")
        return state


@dataclass(frozen=True)
class ValueResult(Result):
    """Result whose payload is a single value."""

    value: Any = None


def _state_of(
    processed: bool, ok: bool, error: ClientError | None
) -> ResultState | None:
    if processed and ok and error is None:
        return "success"
    if processed and not ok and isinstance(error, ClientError):
        return "error" if error.tier == "protocol" else None
    if not processed and not ok and isinstance(error, ClientError):
        return "failure" if error.tier == "transport" else None
    return None


def payload_fields(result_type: type[Result]) -> tuple[str, ...]:
    """Names of the kind-specific payload fields on *result_type*."""
    return tuple(
        f.name
        for f in fields(result_type)
        if f.init and f.name not in _BASE_FIELDS and f.metadata.get("payload", True)
    )


def _auxiliary_fields(result_type: type[Result]) -> tuple[str, ...]:
    # Constructor arguments that are not payload (decoders and the like).
    return tuple(
        f.name
        for f in fields(result_type)
        if f.init and f.name not in _BASE_FIELDS and not f.metadata.get("payload", True)
    )


def build_result(
    result_type: type[R],
    *,
    kind: str,
    duration: float,
    payload: Mapping[str, Any] | None = None,
    error: ClientError | None = None,
) -> R:
    """Construct the result for one settled attempt.

    With no error the attempt succeeded and *payload* fills the payload
    fields. With an error, only the fields the result type retains for that
    state may be supplied; every other payload field is set to ``None``.
    """
    if error is not None and not isinstance(error, ClientError):
        raise InternalError(
            f"Results carry ClientError values, got {type(error).__name__}"
        )

    names = payload_fields(result_type)
    auxiliary = _auxiliary_fields(result_type)
    supplied = dict(payload or {})
    unknown = set(supplied) - set(names) - set(auxiliary)
    if unknown:
        raise InternalError(
            f"{result_type.__name__} has no payload field(s): "
            f"{', '.join(sorted(unknown))}"
        )

    if error is None:
        processed, ok = True, True
        allowed: frozenset[str] | tuple[str, ...] = names
    elif error.tier == "protocol":
        processed, ok = True, False
        allowed = result_type.retained_on_error
    else:
        processed, ok = False, False
        allowed = result_type.retained_on_failure

    values = {name: (supplied.get(name) if name in allowed else None) for name in names}
    values.update({name: supplied[name] for name in auxiliary if name in supplied})
    return result_type(
        kind=kind,
        processed=processed,
        ok=ok,
        error=error,
        duration=duration,
        **values,
    )


def settle(result: R, *, throw_on_error: bool = False) -> R:
    """Apply the throw/return policy to a built result.

    Timeout and abort failures are always raised: they interrupt the caller
    rather than describe the backend. Other failures are raised only when
    *throw_on_error* is set.
    """
    error = result.error
    if error is None:
        return result
    if is_interruption(error):
        raise error
    if throw_on_error:
        raise error
    return result
