"""Key-value cache client over a Redis-shaped async driver.

Commands go through ``execute_command`` (as on ``redis.asyncio.Redis``).
Byte replies are decoded as UTF-8 so results carry ``str`` values whether
or not the driver decodes responses itself.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import TYPE_CHECKING, Any, Protocol

from verdict.attempt import Outcome, run_attempt
from verdict.clients.base import BaseClient
from verdict.config import KeyValueClientConfig
from verdict.errors import ConfigurationError
from verdict.result import ValueResult
from verdict.taxonomy import keyvalue as taxonomy

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from verdict.options import CallOptions

logger = logging.getLogger(__name__)


class KeyValueDriver(Protocol):
    async def execute_command(self, *args: Any, **options: Any) -> Any: ...

    async def aclose(self) -> None: ...


@dataclass(frozen=True)
class KeyValueGetResult(ValueResult):
    """``value`` is None when the key does not exist."""

    value: str | None = None


@dataclass(frozen=True)
class KeyValueSetResult(ValueResult):
    """``value`` is ``"OK"``, or None when an NX/XX condition prevented the write."""

    value: str | None = None


@dataclass(frozen=True)
class KeyValueCountResult(ValueResult):
    value: int | None = None


@dataclass(frozen=True)
class KeyValueArrayResult(ValueResult):
    value: tuple[str, ...] | None = None


@dataclass(frozen=True)
class KeyValueHashResult(ValueResult):
    value: dict[str, str] | None = None


def _text(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    return value


def _as_text(reply: Any) -> Outcome:
    return Outcome(payload={"value": None if reply is None else _text(reply)})


def _as_count(reply: Any) -> Outcome:
    return Outcome(payload={"value": int(reply)})


def _as_array(reply: Any) -> Outcome:
    return Outcome(payload={"value": tuple(_text(item) for item in reply or ())})


def _as_hash(reply: Any) -> Outcome:
    if isinstance(reply, dict):
        pairs = list(reply.items())
    else:
        # Flat [field, value, field, value, ...] reply.
        items = list(reply or ())
        pairs = list(zip(items[::2], items[1::2], strict=True))
    return Outcome(payload={"value": {_text(k): _text(v) for k, v in pairs}})


def _as_raw(reply: Any) -> Outcome:
    return Outcome(payload={"value": reply})


class KeyValueClient(BaseClient):
    """Tri-state key-value cache client.

    Example:
        async with KeyValueClient(redis.asyncio.from_url(url)) as kv:
            await kv.set("greeting", "hello", ex=60)
            res = await kv.get("greeting")
    """

    backend = "keyvalue"

    def __init__(
        self, driver: KeyValueDriver, config: KeyValueClientConfig | None = None
    ) -> None:
        super().__init__(config.defaults() if config is not None else None)
        self.config = config
        self._driver = driver
        logger.debug("KeyValueClient created config=%r", config)

    async def _command(
        self,
        kind: str,
        args: tuple[Any, ...],
        options: CallOptions | None,
        *,
        result_type: type[Any],
        interpret: Callable[[Any], Outcome],
    ) -> Any:
        operation = self._operation(kind, options)
        name = str(args[0])
        driver = self._driver
        result = await run_attempt(
            operation,
            lambda: driver.execute_command(*args),
            result_type=result_type,
            classify=lambda exc: taxonomy.classify(exc, command=name),
            interpret=interpret,
        )
        logger.debug(
            "%s finished state=%s duration=%.1fms", name, result.state, result.duration
        )
        return result

    # --- strings -----------------------------------------------------------

    async def get(
        self, key: str, *, options: CallOptions | None = None
    ) -> KeyValueGetResult:
        """GET *key*."""
        return await self._command(
            "keyvalue:get",
            ("GET", key),
            options,
            result_type=KeyValueGetResult,
            interpret=_as_text,
        )

    async def set(
        self,
        key: str,
        value: str | bytes | int | float,
        *,
        ex: int | None = None,
        px: int | None = None,
        nx: bool = False,
        xx: bool = False,
        options: CallOptions | None = None,
    ) -> KeyValueSetResult:
        """SET *key* with optional expiry (seconds or milliseconds) and condition."""
        if ex is not None and px is not None:
            raise ConfigurationError("Pass at most one of ex and px")
        if nx and xx:
            raise ConfigurationError("nx and xx are mutually exclusive")
        args: list[Any] = ["SET", key, value]
        if ex is not None:
            args += ["EX", ex]
        if px is not None:
            args += ["PX", px]
        if nx:
            args.append("NX")
        if xx:
            args.append("XX")
        return await self._command(
            "keyvalue:set",
            tuple(args),
            options,
            result_type=KeyValueSetResult,
            interpret=_as_set_reply,
        )

    async def delete(
        self, *keys: str, options: CallOptions | None = None
    ) -> KeyValueCountResult:
        """DEL *keys*; ``value`` is the number removed."""
        _require_keys(keys)
        return await self._command(
            "keyvalue:count",
            ("DEL", *keys),
            options,
            result_type=KeyValueCountResult,
            interpret=_as_count,
        )

    async def exists(
        self, *keys: str, options: CallOptions | None = None
    ) -> KeyValueCountResult:
        """EXISTS *keys*; ``value`` counts the keys that exist."""
        _require_keys(keys)
        return await self._command(
            "keyvalue:count",
            ("EXISTS", *keys),
            options,
            result_type=KeyValueCountResult,
            interpret=_as_count,
        )

    async def incr(
        self, key: str, by: int = 1, *, options: CallOptions | None = None
    ) -> KeyValueCountResult:
        """INCRBY *key*; ``value`` is the new counter value."""
        return await self._command(
            "keyvalue:count",
            ("INCRBY", key, by),
            options,
            result_type=KeyValueCountResult,
            interpret=_as_count,
        )

    async def expire(
        self, key: str, seconds: int, *, options: CallOptions | None = None
    ) -> KeyValueCountResult:
        """EXPIRE *key*; ``value`` is 1 when a timeout was set."""
        return await self._command(
            "keyvalue:count",
            ("EXPIRE", key, seconds),
            options,
            result_type=KeyValueCountResult,
            interpret=_as_count,
        )

    # --- hashes ------------------------------------------------------------

    async def hget(
        self, key: str, field: str, *, options: CallOptions | None = None
    ) -> KeyValueGetResult:
        """HGET one field of a hash."""
        return await self._command(
            "keyvalue:get",
            ("HGET", key, field),
            options,
            result_type=KeyValueGetResult,
            interpret=_as_text,
        )

    async def hset(
        self,
        key: str,
        mapping: Mapping[str, str | int | float],
        *,
        options: CallOptions | None = None,
    ) -> KeyValueCountResult:
        """HSET several fields; ``value`` counts the fields added."""
        if not mapping:
            raise ConfigurationError("hset needs at least one field")
        args: list[Any] = ["HSET", key]
        for name, value in mapping.items():
            args += [name, value]
        return await self._command(
            "keyvalue:count",
            tuple(args),
            options,
            result_type=KeyValueCountResult,
            interpret=_as_count,
        )

    async def hgetall(
        self, key: str, *, options: CallOptions | None = None
    ) -> KeyValueHashResult:
        """HGETALL; a missing key yields an empty mapping."""
        return await self._command(
            "keyvalue:hash",
            ("HGETALL", key),
            options,
            result_type=KeyValueHashResult,
            interpret=_as_hash,
        )

    # --- lists and sets ----------------------------------------------------

    async def rpush(
        self, key: str, *values: str, options: CallOptions | None = None
    ) -> KeyValueCountResult:
        """RPUSH; ``value`` is the list length afterwards."""
        if not values:
            raise ConfigurationError("rpush needs at least one value")
        return await self._command(
            "keyvalue:count",
            ("RPUSH", key, *values),
            options,
            result_type=KeyValueCountResult,
            interpret=_as_count,
        )

    async def lrange(
        self,
        key: str,
        start: int = 0,
        stop: int = -1,
        *,
        options: CallOptions | None = None,
    ) -> KeyValueArrayResult:
        """LRANGE; defaults to the whole list."""
        return await self._command(
            "keyvalue:array",
            ("LRANGE", key, start, stop),
            options,
            result_type=KeyValueArrayResult,
            interpret=_as_array,
        )

    async def sadd(
        self, key: str, *members: str, options: CallOptions | None = None
    ) -> KeyValueCountResult:
        """SADD; ``value`` counts the members added."""
        if not members:
            raise ConfigurationError("sadd needs at least one member")
        return await self._command(
            "keyvalue:count",
            ("SADD", key, *members),
            options,
            result_type=KeyValueCountResult,
            interpret=_as_count,
        )

    async def smembers(
        self, key: str, *, options: CallOptions | None = None
    ) -> KeyValueArrayResult:
        """SMEMBERS, sorted so results compare stably."""
        return await self._command(
            "keyvalue:array",
            ("SMEMBERS", key),
            options,
            result_type=KeyValueArrayResult,
            interpret=_as_sorted_array,
        )

    async def publish(
        self, channel: str, message: str, *, options: CallOptions | None = None
    ) -> KeyValueCountResult:
        """PUBLISH; ``value`` counts the subscribers that received it."""
        return await self._command(
            "keyvalue:count",
            ("PUBLISH", channel, message),
            options,
            result_type=KeyValueCountResult,
            interpret=_as_count,
        )

    async def command(
        self, *args: Any, options: CallOptions | None = None
    ) -> ValueResult:
        """Run an arbitrary command; ``value`` is the raw reply."""
        if not args:
            raise ConfigurationError("command needs a command name")
        return await self._command(
            "keyvalue:command",
            tuple(args),
            options,
            result_type=ValueResult,
            interpret=_as_raw,
        )

    async def _release(self) -> None:
        await self._driver.aclose()


def _as_set_reply(reply: Any) -> Outcome:
    if reply is True:
        reply = "OK"
    return _as_text(reply)


def _as_sorted_array(reply: Any) -> Outcome:
    members = sorted(_text(item) for item in reply or ())
    return Outcome(payload={"value": tuple(members)})


def _require_keys(keys: tuple[str, ...]) -> None:
    if not keys:
        raise ConfigurationError("At least one key is required")
