"""Command API built on top of a CommandTarget.

Every operation follows one pattern: build ``[NAME, arg1, ...]``, submit it
through the target, decode the reply into the operation's result type and
return the future. Passing ``callback=`` additionally delivers the outcome
as ``callback(error, result)`` from that same future.

Usage:
    commands = RedisCommands(connection)

    await commands.set("greeting", "hello", expire=2.5)
    value = await commands.get("greeting")

    commands.incr("visits", callback=lambda err, n: print(err or n))
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, TypeVar

from .extract import ScanPage
from .protocol.commands import CommandType, SetMode
from .protocol.values import RESPEncodable, RESPValue
from .scan import START_CURSOR, PageCallback, ScanIterator
from .target import CommandTarget, ReplyCallback, dispatch, when_callback

logger = logging.getLogger(__name__)

T = TypeVar("T")

Duration = float | int | timedelta
Timestamp = datetime | float | int


def _seconds(duration: Duration) -> float:
    if isinstance(duration, timedelta):
        return duration.total_seconds()
    return float(duration)


def _epoch_seconds(when: Timestamp) -> float:
    if isinstance(when, datetime):
        return when.timestamp()
    return float(when)


def _flatten(args: Sequence[Any]) -> list[Any]:
    """Accept both ``f("a", "b")`` and ``f(["a", "b"])``."""
    if len(args) == 1 and isinstance(args[0], (list, tuple)):
        return list(args[0])
    return list(args)


def _stringify(value: Any) -> str | bytes:
    if isinstance(value, (str, bytes)):
        return value
    return str(value)


@dataclass
class RedisCommands:
    """Typed command operations over any CommandTarget."""

    target: CommandTarget

    def _submit(
        self,
        values: list[RESPEncodable],
        result_type: type[T] | Any,
        callback: ReplyCallback | None,
    ) -> asyncio.Future[T]:
        future = dispatch(self.target, values, result_type)
        if callback is not None:
            when_callback(future, callback)
        return future

    # =========================================================================
    # Connection
    # =========================================================================

    def ping(
        self, message: str | None = None, *, callback: ReplyCallback | None = None
    ) -> asyncio.Future[str]:
        """Ping the server; answers PONG, or echoes ``message``."""
        values: list[RESPEncodable] = [CommandType.PING]
        if message is not None:
            values.append(message)
        return self._submit(values, str, callback)

    def publish(
        self, channel: str, message: str, *, callback: ReplyCallback | None = None
    ) -> asyncio.Future[int]:
        """Publish a message; resolves to the number of receivers."""
        return self._submit([CommandType.PUBLISH, channel, message], int, callback)

    # =========================================================================
    # Keys and strings
    # =========================================================================

    def get(self, key: str, *, callback: ReplyCallback | None = None) -> asyncio.Future[str]:
        return self._submit([CommandType.GET, key], str, callback)

    def set(
        self,
        key: str,
        value: RESPEncodable,
        expire: Duration | None = None,
        mode: SetMode = SetMode.ALWAYS,
        *,
        callback: ReplyCallback | None = None,
    ) -> asyncio.Future[RESPValue]:
        """Set a key.

        Args:
            key: Key to set
            value: Text, bytes, number or a prepared RESPValue
            expire: Time to live; always sent as whole milliseconds (PX)
            mode: Only if missing (NX), only if existing (XX), or always
        """
        values: list[RESPEncodable] = [CommandType.SET, key, value]
        if expire is not None:
            values.append("PX")
            values.append(RESPValue.integer(int(_seconds(expire) * 1000.0)))
        if mode == SetMode.IF_EXISTING:
            values.append("XX")
        elif mode == SetMode.IF_MISSING:
            values.append("NX")
        return self._submit(values, RESPValue, callback)

    def keys(
        self, pattern: str = "*", *, callback: ReplyCallback | None = None
    ) -> asyncio.Future[list[str]]:
        return self._submit([CommandType.KEYS, pattern], list[str], callback)

    def scan(
        self,
        cursor: str = START_CURSOR,
        pattern: str | None = None,
        count: int | None = None,
        *,
        callback: ReplyCallback | None = None,
    ) -> asyncio.Future[ScanPage]:
        """Fetch one SCAN page; resolves to ``(next_cursor, keys)``."""
        values: list[RESPEncodable] = [CommandType.SCAN, cursor]
        if pattern is not None:
            values.extend(["MATCH", pattern])
        if count is not None:
            values.extend(["COUNT", count])
        return self._submit(values, ScanPage, callback)

    def scan_iter(self, pattern: str | None = None, count: int | None = None) -> ScanIterator:
        """Iterate over all non-empty SCAN pages with ``async for``."""
        return ScanIterator(self, pattern=pattern, count=count)

    def scan_all(
        self,
        pattern: str | None = None,
        count: int | None = None,
        *,
        on_page: PageCallback,
        callback: ReplyCallback | None = None,
    ) -> asyncio.Future[int]:
        """Scan the whole keyspace, calling ``on_page`` for each non-empty page.

        Pages are fetched one at a time. The returned future resolves to the
        number of keys reported after the final page, or fails with the first
        error (no retries).
        """
        iterator = self.scan_iter(pattern=pattern, count=count)
        logger.debug(f"Starting full scan (pattern={pattern!r}, count={count})")
        task = self.target.loop.create_task(iterator.run(on_page))
        if callback is not None:
            when_callback(task, callback)
        return task

    def delete(
        self, *keys: str | Sequence[str], callback: ReplyCallback | None = None
    ) -> asyncio.Future[RESPValue]:
        """Delete keys, given variadically or as one sequence (DEL)."""
        return self._submit([CommandType.DEL, *_flatten(keys)], RESPValue, callback)

    # =========================================================================
    # Counters
    # =========================================================================

    def incr(
        self, key: str, by: int | None = None, *, callback: ReplyCallback | None = None
    ) -> asyncio.Future[int]:
        """Increment by one (INCR), or by ``by`` (INCRBY)."""
        if by is None:
            return self._submit([CommandType.INCR, key], int, callback)
        return self._submit([CommandType.INCRBY, key, by], int, callback)

    def decr(
        self, key: str, by: int | None = None, *, callback: ReplyCallback | None = None
    ) -> asyncio.Future[int]:
        """Decrement by one (DECR), or by ``by`` (DECRBY)."""
        if by is None:
            return self._submit([CommandType.DECR, key], int, callback)
        return self._submit([CommandType.DECRBY, key, by], int, callback)

    # =========================================================================
    # Hashes
    # =========================================================================

    def hset(
        self, key: str, field: str, value: str, *, callback: ReplyCallback | None = None
    ) -> asyncio.Future[bool]:
        """Set a hash field; resolves to True if the field is new."""
        return self._submit([CommandType.HSET, key, field, value], bool, callback)

    def hkeys(self, key: str, *, callback: ReplyCallback | None = None) -> asyncio.Future[list[str]]:
        return self._submit([CommandType.HKEYS, key], list[str], callback)

    def hgetall(
        self, key: str, *, callback: ReplyCallback | None = None
    ) -> asyncio.Future[dict[str, str]]:
        return self._submit([CommandType.HGETALL, key], dict[str, str], callback)

    def hmget(
        self, key: str, *fields: str | Sequence[str], callback: ReplyCallback | None = None
    ) -> asyncio.Future[list[str]]:
        return self._submit([CommandType.HMGET, key, *_flatten(fields)], list[str], callback)

    def hmset(
        self,
        key: str,
        *fields: Any,
        callback: ReplyCallback | None = None,
    ) -> asyncio.Future[RESPValue]:
        """Set several hash fields at once.

        Accepts a mapping, a flat ``[field, value, ...]`` sequence, or the
        same flat pairs variadically. Fields of a mapping are sent in the
        mapping's iteration order; no particular order is guaranteed.

        Raises:
            ValueError: If no fields are given or the flat form is unpaired
        """
        flat: list[RESPEncodable] = []
        if len(fields) == 1 and isinstance(fields[0], Mapping):
            for name, value in fields[0].items():
                flat.append(_stringify(name))
                flat.append(_stringify(value))
        else:
            flat = _flatten(fields)
            if len(flat) % 2:
                raise ValueError(f"HMSET expects field/value pairs, got {len(flat)} items")
        if not flat:
            raise ValueError("HMSET needs at least one field")
        return self._submit([CommandType.HMSET, key, *flat], RESPValue, callback)

    # =========================================================================
    # Expiration
    # =========================================================================

    def expire(
        self, key: str, seconds: Duration, *, callback: ReplyCallback | None = None
    ) -> asyncio.Future[str]:
        """Expire the key after ``seconds``, in full second granularity."""
        ttl = RESPValue.integer(int(_seconds(seconds)))
        return self._submit([CommandType.EXPIRE, key, ttl], str, callback)

    def expire_at(
        self, key: str, when: Timestamp, *, callback: ReplyCallback | None = None
    ) -> asyncio.Future[str]:
        """Expire the key at ``when``, truncated to whole epoch seconds."""
        ts = RESPValue.integer(int(_epoch_seconds(when)))
        return self._submit([CommandType.EXPIREAT, key, ts], str, callback)

    def pexpire(
        self, key: str, seconds: Duration, *, callback: ReplyCallback | None = None
    ) -> asyncio.Future[str]:
        """Expire the key after ``seconds``, in millisecond granularity."""
        ttl = RESPValue.integer(int(_seconds(seconds) * 1000.0))
        return self._submit([CommandType.PEXPIRE, key, ttl], str, callback)

    def pexpire_at(
        self, key: str, when: Timestamp, *, callback: ReplyCallback | None = None
    ) -> asyncio.Future[str]:
        """Expire the key at ``when``, truncated to whole epoch milliseconds."""
        ts = RESPValue.integer(int(_epoch_seconds(when) * 1000.0))
        return self._submit([CommandType.PEXPIREAT, key, ts], str, callback)

    def persist(self, key: str, *, callback: ReplyCallback | None = None) -> asyncio.Future[str]:
        return self._submit([CommandType.PERSIST, key], str, callback)

    def ttl(self, key: str, *, callback: ReplyCallback | None = None) -> asyncio.Future[float]:
        """Remaining time to live in seconds (-1: no expiry, -2: missing key)."""
        return self._submit([CommandType.TTL, key], float, callback)
