"""Unit tests for the redis-target CLI.

The TCP connection factory is replaced with one returning a MockConnection.
"""

from __future__ import annotations

import pytest
from click.testing import CliRunner

from redis_command_target import MockConnection, RESPValue
from redis_command_target.cli import format_reply, main


@pytest.fixture
def connection(monkeypatch):
    """MockConnection handed to the CLI, plus the arguments it was opened with."""
    mock = MockConnection()
    mock.opened_with = None

    def factory(host=None, port=None):
        mock.opened_with = (host, port)
        return mock

    monkeypatch.setattr("redis_command_target.cli.create_stream_connection", factory)
    return mock


def invoke(*args: str):
    return CliRunner().invoke(main, list(args))


class TestCommands:
    def test_ping(self, connection):
        connection.set_response("PING", RESPValue.simple("PONG"))

        result = invoke("ping")

        assert result.exit_code == 0
        assert result.output.strip() == "PONG"
        assert connection.recorded_commands == [["PING"]]

    def test_host_and_port(self, connection):
        connection.set_response("PING", RESPValue.simple("PONG"))

        invoke("--host", "db.local", "--port", "6380", "ping")

        assert connection.opened_with == ("db.local", 6380)

    def test_get(self, connection):
        connection.set_response("GET", RESPValue.bulk("hello"))

        result = invoke("get", "greeting")

        assert result.exit_code == 0
        assert result.output.strip() == "hello"

    def test_set_with_options(self, connection):
        result = invoke("set", "greeting", "hi", "--px", "2.5", "--nx")

        assert result.exit_code == 0
        assert result.output.strip() == "OK"
        assert connection.recorded_commands == [["SET", "greeting", "hi", "PX", "2500", "NX"]]

    def test_set_conflicting_modes(self, connection):
        result = invoke("set", "greeting", "hi", "--nx", "--xx")

        assert result.exit_code == 2
        assert connection.recorded_calls == []

    def test_keys(self, connection):
        connection.set_response(
            "KEYS", RESPValue.array([RESPValue.bulk("a"), RESPValue.bulk("b")])
        )

        result = invoke("keys", "user:*")

        assert result.output.splitlines() == ["a", "b"]
        assert connection.recorded_commands == [["KEYS", "user:*"]]

    def test_scan_all(self, connection, scan_reply):
        connection.queue_responses(
            "SCAN", [scan_reply("4", ["a"]), scan_reply("0", ["b", "c"])]
        )

        result = invoke("scan-all", "--match", "*", "--count", "10")

        assert result.exit_code == 0
        assert result.output.splitlines() == ["a", "b", "c"]
        assert connection.recorded_commands == [
            ["SCAN", "0", "MATCH", "*", "COUNT", "10"],
            ["SCAN", "4", "MATCH", "*", "COUNT", "10"],
        ]

    def test_ttl(self, connection):
        connection.set_response("TTL", RESPValue.integer(42))

        result = invoke("ttl", "greeting")

        assert result.output.strip() == "42.0"

    def test_store_error_exits_nonzero(self, connection):
        connection.set_response("GET", RESPValue.error("WRONGTYPE not a string"))

        result = invoke("get", "user")

        assert result.exit_code == 1
        assert "Error: WRONGTYPE not a string" in result.output

    def test_mismatch_exits_nonzero(self, connection):
        connection.set_response("GET", RESPValue.nil())

        result = invoke("get", "missing")

        assert result.exit_code == 1
        assert "Cannot extract str from nil" in result.output


class TestFormatReply:
    def test_raw_values(self):
        assert format_reply(RESPValue.simple("OK")) == "OK"
        assert format_reply(RESPValue.nil()) == "nil"

    def test_lists(self):
        assert format_reply(["a", "b"]) == "a\nb"

    def test_scalars(self):
        assert format_reply(3) == "3"
