"""Connections that carry command calls to a store.

Architecture:
- CommandTarget (target.py) is the PROTOCOL the command API depends on
- BaseConnection implements it once: state, FIFO of in-flight calls and a
  background reader routing each reply to the oldest pending call
- Subclasses only handle the wire (StreamConnection) or fake it
  (MockConnection, for tests)

Replies on one connection arrive in request order, so the FIFO is the
whole correlation scheme. Nothing here retries or reconnects: when the
connection fails, every pending call fails with TransportError.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
from abc import ABC, abstractmethod
from collections import deque
from collections.abc import AsyncIterator, Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from .errors import TransportError
from .protocol.commands import CommandCall
from .protocol.resp import RESPParser, encode_command
from .protocol.values import RESPValue

logger = logging.getLogger(__name__)

# A reply routed to a pending call: the store's value, or an error failing that call only
Reply = RESPValue | Exception


class ConnectionState(str, Enum):
    """Connection state machine."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    CLOSED = "closed"


@dataclass
class ConnectionConfig:
    """Configuration for connections.

    Environment variables (see from_env):
        REDIS_HOST, REDIS_PORT, REDIS_CONNECT_TIMEOUT
    """

    host: str = "localhost"
    port: int = 6379

    # Only connecting is bounded; replies are awaited until the connection fails
    connect_timeout: float = 5.0

    read_chunk_size: int = 65536

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ConnectionConfig:
        """Build a config from environment variables, falling back to defaults."""
        env = os.environ if environ is None else environ
        config = cls()
        if env.get("REDIS_HOST"):
            config.host = env["REDIS_HOST"]
        if env.get("REDIS_PORT"):
            config.port = int(env["REDIS_PORT"])
        if env.get("REDIS_CONNECT_TIMEOUT"):
            config.connect_timeout = float(env["REDIS_CONNECT_TIMEOUT"])
        return config


class BaseConnection(ABC):
    """Base class for connections, implementing the CommandTarget protocol.

    Provides:
    - State management
    - FIFO routing of replies to pending calls
    - Background reader task management
    """

    def __init__(
        self,
        config: ConnectionConfig,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self.config = config
        self._loop = loop
        self._state = ConnectionState.DISCONNECTED
        self._pending: deque[CommandCall] = deque()
        self._reader_task: asyncio.Task[None] | None = None
        self._lock = asyncio.Lock()

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        """Event loop the connection is bound to (the running loop by default)."""
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == ConnectionState.CONNECTED

    @property
    def pending_count(self) -> int:
        """Number of calls sent and still waiting for a reply."""
        return len(self._pending)

    def enqueue_command_call(self, call: CommandCall) -> None:
        """Send a call without waiting; its future completes when the reply arrives."""
        if not self.is_connected:
            call.fail(TransportError(f"Cannot send {call.name}: connection is {self._state.value}"))
            return

        self._pending.append(call)
        try:
            self._do_send(call)
        except Exception as e:
            self._pending.remove(call)
            logger.error(f"Failed to send {call.name} ({call.id}): {e}")
            error = TransportError(f"Failed to send {call.name}: {e}")
            error.__cause__ = e
            call.fail(error)

    async def connect(self) -> None:
        """Establish the connection and start reading replies.

        Raises:
            TransportError: If the connection cannot be established
        """
        async with self._lock:
            if self._state == ConnectionState.CONNECTED:
                return
            if self._loop is None:
                self._loop = asyncio.get_running_loop()

            self._state = ConnectionState.CONNECTING
            try:
                await self._do_connect()
            except Exception as e:
                self._state = ConnectionState.DISCONNECTED
                raise TransportError(f"Failed to connect: {e}") from e

            self._state = ConnectionState.CONNECTED
            self._reader_task = asyncio.create_task(self._read_loop())
            logger.info(f"{self.__class__.__name__} connected")

    async def disconnect(self) -> None:
        """Close the connection, failing calls still waiting for a reply."""
        async with self._lock:
            if self._reader_task is None and self._state != ConnectionState.CONNECTED:
                return

            self._state = ConnectionState.CLOSED

            if self._reader_task:
                self._reader_task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await self._reader_task
                self._reader_task = None

            self._fail_pending("Connection closed")

            await self._do_disconnect()
            self._state = ConnectionState.DISCONNECTED
            logger.info(f"{self.__class__.__name__} disconnected")

    async def _read_loop(self) -> None:
        """Background task routing replies to pending calls."""
        try:
            async for reply in self._receive_replies():
                self._handle_reply(reply)
        except asyncio.CancelledError:
            return
        except Exception as e:
            logger.error(f"Read loop error: {e}")
            self._state = ConnectionState.DISCONNECTED
            self._fail_pending(f"Transport error: {e}", cause=e)
            await self._do_disconnect()
            return

        if self._state == ConnectionState.CONNECTED:
            logger.warning(f"{self.__class__.__name__} closed by peer")
            self._state = ConnectionState.DISCONNECTED
            self._fail_pending("Connection closed by peer")
            await self._do_disconnect()

    def _handle_reply(self, reply: Reply) -> None:
        if not self._pending:
            shown = reply.describe() if isinstance(reply, RESPValue) else repr(reply)
            logger.warning(f"Dropping reply with no pending call: {shown}")
            return

        call = self._pending.popleft()
        if isinstance(reply, Exception):
            call.fail(reply)
        else:
            call.succeed(reply)
        logger.debug(f"Completed {call.name} ({call.id})")

    def _fail_pending(self, message: str, cause: BaseException | None = None) -> None:
        """Fail every pending call. A TransportError cause is delivered as-is."""
        while self._pending:
            call = self._pending.popleft()
            if call.done:
                continue
            if isinstance(cause, TransportError):
                call.fail(cause)
                continue
            error = TransportError(message)
            error.__cause__ = cause
            call.fail(error)

    # Abstract methods for subclasses
    @abstractmethod
    async def _do_connect(self) -> None:
        """Implementation-specific connection logic."""
        ...

    @abstractmethod
    async def _do_disconnect(self) -> None:
        """Implementation-specific disconnection logic."""
        ...

    @abstractmethod
    def _do_send(self, call: CommandCall) -> None:
        """Implementation-specific send logic. Must not block."""
        ...

    @abstractmethod
    def _receive_replies(self) -> AsyncIterator[Reply]:
        """Implementation-specific receive logic. Must be an async generator."""
        ...

    async def __aenter__(self) -> BaseConnection:
        await self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.disconnect()


class StreamConnection(BaseConnection):
    """Connection over a TCP stream speaking RESP2.

    Wire format:
    - Requests: RESP arrays of bulk strings
    - Replies: any RESP2 value, parsed incrementally
    """

    def __init__(
        self,
        config: ConnectionConfig | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        super().__init__(config or ConnectionConfig(), loop)
        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None

    async def _do_connect(self) -> None:
        """Open the TCP stream."""
        self._reader, self._writer = await asyncio.wait_for(
            asyncio.open_connection(self.config.host, self.config.port),
            timeout=self.config.connect_timeout,
        )
        logger.info(f"Connected to {self.config.host}:{self.config.port}")

    async def _do_disconnect(self) -> None:
        """Close the TCP stream."""
        writer, self._writer = self._writer, None
        self._reader = None
        if writer:
            writer.close()
            with contextlib.suppress(OSError):
                await writer.wait_closed()

    def _do_send(self, call: CommandCall) -> None:
        """Buffer the encoded request; the stream flushes it in the background."""
        if not self._writer:
            raise ConnectionError("Stream not open")
        self._writer.write(encode_command(call.values))

    async def _receive_replies(self) -> AsyncIterator[Reply]:
        """Read and parse replies until EOF."""
        if not self._reader:
            raise ConnectionError("Stream not open")

        parser = RESPParser()
        while True:
            chunk = await self._reader.read(self.config.read_chunk_size)
            if not chunk:
                if parser.buffered:
                    logger.debug(f"EOF with {parser.buffered} unparsed byte(s)")
                break
            parser.feed(chunk)
            for value in parser:
                yield value


class MockConnection(BaseConnection):
    """In-memory connection for testing.

    Records every call and answers with canned replies. No actual I/O.

    Usage:
        connection = MockConnection()
        connection.set_response("GET", RESPValue.bulk("hello"))
        connection.queue_responses("SCAN", [page1, page2])

        async with connection:
            commands = RedisCommands(connection)
            assert await commands.get("greeting") == "hello"

        assert connection.recorded_commands[0] == ["GET", "greeting"]

    With ``auto_reply=False`` calls stay pending until reply() is called.
    """

    DEFAULT_REPLY = RESPValue.simple("OK")

    def __init__(
        self,
        auto_reply: bool = True,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        super().__init__(ConnectionConfig(host="mock", port=0), loop)
        self.auto_reply = auto_reply
        self._defaults: dict[str, Reply] = {}
        self._queued: dict[str, deque[Reply]] = {}
        self._recorded_calls: list[CommandCall] = []
        self._replies: asyncio.Queue[Reply] = asyncio.Queue()

    @property
    def recorded_calls(self) -> list[CommandCall]:
        """All calls sent through this connection."""
        return self._recorded_calls.copy()

    @property
    def recorded_commands(self) -> list[list[str]]:
        """Sent calls rendered as text, e.g. ``[["DEL", "a", "b"]]``."""
        return [[_render(v) for v in call.values] for call in self._recorded_calls]

    def set_response(self, command: str, reply: Reply) -> None:
        """Answer every call of ``command`` with ``reply``."""
        self._defaults[command.upper()] = reply

    def queue_responses(self, command: str, replies: Iterable[Reply]) -> None:
        """Answer the next calls of ``command`` with ``replies``, in order."""
        self._queued.setdefault(command.upper(), deque()).extend(replies)

    def reply(self, reply: Reply) -> None:
        """Deliver a reply to the oldest pending call (manual mode)."""
        self._replies.put_nowait(reply)

    def drop(self, message: str = "Connection reset") -> None:
        """Simulate a transport failure for all pending calls."""
        self._fail_pending(message)

    def clear(self) -> None:
        """Clear recorded calls and canned replies."""
        self._recorded_calls.clear()
        self._defaults.clear()
        self._queued.clear()

    async def _do_connect(self) -> None:
        """No-op for mock."""
        pass

    async def _do_disconnect(self) -> None:
        """No-op for mock."""
        pass

    def _do_send(self, call: CommandCall) -> None:
        """Record the call and queue its canned reply."""
        self._recorded_calls.append(call)
        if not self.auto_reply:
            return

        name = call.name.upper()
        queued = self._queued.get(name)
        if queued:
            self._replies.put_nowait(queued.popleft())
        else:
            self._replies.put_nowait(self._defaults.get(name, self.DEFAULT_REPLY))

    async def _receive_replies(self) -> AsyncIterator[Reply]:
        """Yield queued replies."""
        while True:
            yield await self._replies.get()


def _render(value: RESPValue) -> str:
    if value.integer_value is not None:
        return str(value.integer_value)
    text = value.string_value
    return text if text is not None else value.describe()


# Factory functions


def create_stream_connection(
    host: str | None = None,
    port: int | None = None,
    connect_timeout: float | None = None,
) -> StreamConnection:
    """Create a TCP connection, defaulting to the REDIS_* environment.

    Args:
        host: Server host (default: REDIS_HOST or localhost)
        port: Server port (default: REDIS_PORT or 6379)
        connect_timeout: Seconds to wait for the connection

    Returns:
        StreamConnection (not yet connected)
    """
    config = ConnectionConfig.from_env()
    if host is not None:
        config.host = host
    if port is not None:
        config.port = port
    if connect_timeout is not None:
        config.connect_timeout = connect_timeout
    return StreamConnection(config)


def create_mock_connection(auto_reply: bool = True) -> MockConnection:
    """Create a mock connection for testing.

    Returns:
        MockConnection (not yet connected)
    """
    return MockConnection(auto_reply=auto_reply)
