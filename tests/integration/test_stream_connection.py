"""Integration tests for StreamConnection against an in-process RESP server.

The server speaks real RESP2 over TCP on localhost and keeps a small
in-memory keyspace, so these tests cover the full path: encoding,
socket I/O, incremental parsing and reply routing.
"""

from __future__ import annotations

import asyncio
import contextlib

import pytest

from redis_command_target import (
    ConnectionState,
    RedisCommands,
    RESPValue,
    StoreError,
    StreamConnection,
    TransportError,
    create_stream_connection,
)
from redis_command_target.protocol.resp import RESPParser, encode_value

pytestmark = pytest.mark.integration


class FakeServer:
    """Minimal RESP server with GET/SET/INCR/SCAN semantics."""

    def __init__(self) -> None:
        self.store: dict[str, str] = {}
        self.received: list[list[str]] = []
        self.hang_up_on: str | None = None

    async def handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        parser = RESPParser()
        try:
            while data := await reader.read(4096):
                parser.feed(data)
                for request in parser:
                    args = [item.string_value or "" for item in request.items or ()]
                    self.received.append(args)
                    if args[0].upper() == self.hang_up_on:
                        return
                    writer.write(encode_value(self.respond(args)))
                await writer.drain()
        finally:
            writer.close()

    def respond(self, args: list[str]) -> RESPValue:
        name, rest = args[0].upper(), args[1:]
        if name == "PING":
            return RESPValue.bulk(rest[0]) if rest else RESPValue.simple("PONG")
        if name == "SET":
            self.store[rest[0]] = rest[1]
            return RESPValue.simple("OK")
        if name == "GET":
            return RESPValue.bulk(self.store.get(rest[0]))
        if name == "INCR":
            current = self.store.get(rest[0], "0")
            if not current.lstrip("-").isdigit():
                return RESPValue.error("ERR value is not an integer or out of range")
            self.store[rest[0]] = str(int(current) + 1)
            return RESPValue.integer(int(current) + 1)
        if name == "SCAN":
            # Two keys per page; the cursor is the index of the next page
            keys = sorted(self.store)
            start = int(rest[0])
            page = keys[start : start + 2]
            cursor = start + 2 if start + 2 < len(keys) else 0
            return RESPValue.array(
                [RESPValue.bulk(str(cursor)), RESPValue.array([RESPValue.bulk(k) for k in page])]
            )
        return RESPValue.error(f"ERR unknown command '{args[0]}'")


@contextlib.asynccontextmanager
async def running_server():
    fake = FakeServer()
    server = await asyncio.start_server(fake.handle, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    try:
        yield fake, port
    finally:
        server.close()
        await server.wait_closed()


class TestStreamConnection:
    @pytest.mark.asyncio
    async def test_set_then_get(self):
        async with running_server() as (fake, port):
            async with create_stream_connection(host="127.0.0.1", port=port) as connection:
                commands = RedisCommands(connection)

                assert await commands.ping() == "PONG"
                assert await commands.set("greeting", "héllo", expire=2.5) == RESPValue.simple("OK")
                assert await commands.get("greeting") == "héllo"

            assert fake.received[1] == ["SET", "greeting", "héllo", "PX", "2500"]

    @pytest.mark.asyncio
    async def test_pipelined_replies_keep_order(self):
        """Many calls sent before any reply still resolve to their own replies."""
        async with running_server() as (fake, port):
            async with create_stream_connection(host="127.0.0.1", port=port) as connection:
                commands = RedisCommands(connection)

                futures = [commands.ping(f"m{i}") for i in range(50)]
                results = await asyncio.gather(*futures)

                assert results == [f"m{i}" for i in range(50)]
                assert connection.pending_count == 0

    @pytest.mark.asyncio
    async def test_store_error(self):
        async with running_server() as (fake, port):
            async with create_stream_connection(host="127.0.0.1", port=port) as connection:
                commands = RedisCommands(connection)
                await commands.set("name", "ada")

                with pytest.raises(StoreError) as exc_info:
                    await commands.incr("name")

                assert exc_info.value.code == "ERR"
                assert await commands.incr("visits") == 1

    @pytest.mark.asyncio
    async def test_scan_all(self):
        async with running_server() as (fake, port):
            fake.store.update({f"k{i}": "v" for i in range(5)})
            async with create_stream_connection(host="127.0.0.1", port=port) as connection:
                pages: list[list[str]] = []

                await RedisCommands(connection).scan_all(on_page=pages.append)

                assert pages == [["k0", "k1"], ["k2", "k3"], ["k4"]]
                assert [args[1] for args in fake.received] == ["0", "2", "4"]

    @pytest.mark.asyncio
    async def test_server_hang_up_fails_pending(self):
        async with running_server() as (fake, port):
            fake.hang_up_on = "GET"
            connection = create_stream_connection(host="127.0.0.1", port=port)
            async with connection:
                commands = RedisCommands(connection)

                with pytest.raises(TransportError):
                    await commands.get("greeting")

                # The stream is released without waiting for disconnect()
                assert connection._writer is None

                with pytest.raises(TransportError):
                    await commands.ping()

            assert connection.state == ConnectionState.DISCONNECTED

    @pytest.mark.asyncio
    async def test_connect_refused(self):
        async with running_server() as (fake, port):
            pass

        connection = StreamConnection()
        connection.config.host = "127.0.0.1"
        connection.config.port = port

        with pytest.raises(TransportError):
            await connection.connect()
        assert connection.state == ConnectionState.DISCONNECTED
