"""Command target: the capability a connection offers to the command API.

Any object with an event loop and an ``enqueue_command_call`` method can
carry commands. The command API never depends on a concrete connection
class, so real sockets and in-memory test doubles are interchangeable.

A submitted call resolves through one future per command:

    dispatch(target, ["GET", "k"], str)
        -> CommandCall created on target.loop
        -> decode step attached to the call's future
        -> target.enqueue_command_call(call)
        <- Future[str] (await it, or attach a callback via when_callback)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable
from typing import Any, Protocol, TypeVar, runtime_checkable

from .errors import StoreError, TypeMismatchError
from .extract import extract
from .protocol.commands import CommandCall
from .protocol.values import RESPEncodable, RESPValue

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Callback style: exactly one of (error, result) is not None
ReplyCallback = Callable[[BaseException | None, Any], None]


@runtime_checkable
class CommandTarget(Protocol):
    """Protocol for anything that can transmit command calls.

    Implementations must:
    - Return immediately from enqueue_command_call (no blocking I/O)
    - Complete calls submitted from the same loop in submission order
    - Complete each call exactly once, on ``loop``
    """

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        """Event loop that owns the connection and runs completions."""
        ...

    def enqueue_command_call(self, call: CommandCall) -> None:
        """Submit a call for eventual transmission."""
        ...


def dispatch(
    target: CommandTarget,
    values: Iterable[RESPEncodable],
    result_type: type[T] | Any,
) -> asyncio.Future[T]:
    """Create a call, attach its decode step and submit it to the target.

    Args:
        target: Connection to send the call through
        values: Command name followed by its arguments
        result_type: Type the reply is extracted as (see extract.py)

    Returns:
        Future resolving to the extracted result. It fails with the
        transport's error, a StoreError for error replies, or a
        TypeMismatchError when the reply has the wrong shape.
    """
    loop = target.loop
    call = CommandCall(values, loop)
    result: asyncio.Future[T] = loop.create_future()

    def decode(reply: asyncio.Future[RESPValue]) -> None:
        if result.cancelled():
            logger.debug(f"Discarding reply for cancelled {call.name} ({call.id})")
            return
        if reply.cancelled():
            result.cancel()
            return
        error = reply.exception()
        if error is not None:
            result.set_exception(error)
            return
        value = reply.result()
        if value.is_error:
            result.set_exception(StoreError(value))
            return
        try:
            result.set_result(extract(value, result_type))
        except TypeMismatchError as e:
            logger.debug(f"{call.name} ({call.id}) reply mismatch: {e}")
            result.set_exception(e)
        except Exception as e:
            # Custom extractors may raise anything; the result must still complete
            logger.error(f"Extractor for {call.name} ({call.id}) failed: {e}")
            result.set_exception(e)

    call.future.add_done_callback(decode)
    logger.debug(f"Enqueue {call!r}")
    target.enqueue_command_call(call)
    return result


def when_callback(future: asyncio.Future[Any], callback: ReplyCallback) -> None:
    """Deliver a future's outcome to a ``callback(error, result)``.

    The callback runs once, on the future's loop, with exactly one of its
    two arguments set.
    """

    def deliver(done: asyncio.Future[Any]) -> None:
        if done.cancelled():
            callback(asyncio.CancelledError(), None)
            return
        error = done.exception()
        if error is not None:
            callback(error, None)
        else:
            callback(None, done.result())

    future.add_done_callback(deliver)
