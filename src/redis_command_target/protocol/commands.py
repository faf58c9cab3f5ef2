"""Command calls for the protocol layer.

A CommandCall is one pending request: the command name and its arguments
as protocol values, plus a one-shot completion future bound to the event
loop of the caller. The transport completes it exactly once.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Iterable
from enum import Enum

from .values import RESPEncodable, RESPValue, to_resp


class CommandType(str, Enum):
    """Command names used by the command API."""

    # Connection
    PING = "PING"
    PUBLISH = "PUBLISH"

    # Keys and strings
    GET = "GET"
    SET = "SET"
    KEYS = "KEYS"
    SCAN = "SCAN"
    DEL = "DEL"

    # Counters
    INCR = "INCR"
    DECR = "DECR"
    INCRBY = "INCRBY"
    DECRBY = "DECRBY"

    # Hashes
    HSET = "HSET"
    HKEYS = "HKEYS"
    HGETALL = "HGETALL"
    HMGET = "HMGET"
    HMSET = "HMSET"

    # Expiration
    EXPIRE = "EXPIRE"
    EXPIREAT = "EXPIREAT"
    PEXPIRE = "PEXPIRE"
    PEXPIREAT = "PEXPIREAT"
    PERSIST = "PERSIST"
    TTL = "TTL"


class SetMode(str, Enum):
    """Condition attached to SET."""

    ALWAYS = "always"
    IF_MISSING = "if_missing"  # NX
    IF_EXISTING = "if_existing"  # XX


class CommandCall:
    """A single request awaiting its reply.

    The values are fixed at construction. Nothing is sent until the call is
    handed to a CommandTarget. The future is completed by the transport via
    succeed() or fail(), exactly once; a second completion raises
    asyncio.InvalidStateError.

    Example:
        call = CommandCall(["GET", "greeting"], loop)
        target.enqueue_command_call(call)
        reply = await call.future
    """

    __slots__ = ("id", "_values", "_future")

    def __init__(self, values: Iterable[RESPEncodable], loop: asyncio.AbstractEventLoop) -> None:
        self.id = f"call_{uuid.uuid4().hex[:12]}"
        self._values: tuple[RESPValue, ...] = tuple(to_resp(v) for v in values)
        if not self._values:
            raise ValueError("A command call needs at least a command name")
        self._future: asyncio.Future[RESPValue] = loop.create_future()

    @classmethod
    def create(
        cls,
        values: Iterable[RESPEncodable],
        loop: asyncio.AbstractEventLoop,
    ) -> CommandCall:
        """Factory method for creating calls."""
        return cls(values, loop)

    @property
    def values(self) -> tuple[RESPValue, ...]:
        """The serialized command, name first."""
        return self._values

    @property
    def name(self) -> str:
        return self._values[0].string_value or self._values[0].describe()

    @property
    def future(self) -> asyncio.Future[RESPValue]:
        """One-shot completion slot holding the raw reply."""
        return self._future

    @property
    def done(self) -> bool:
        return self._future.done()

    def succeed(self, value: RESPValue) -> None:
        """Complete the call with the store's reply."""
        self._future.set_result(value)

    def fail(self, error: BaseException) -> None:
        """Complete the call with a transport failure."""
        self._future.set_exception(error)

    def __repr__(self) -> str:
        args = " ".join(v.string_value or v.describe() for v in self._values)
        return f"<CommandCall {self.id} {args!r}>"
