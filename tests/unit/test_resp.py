"""Unit tests for the RESP wire codec."""

import pytest

from redis_command_target.errors import ProtocolError
from redis_command_target.protocol.resp import RESPParser, encode_command, encode_value
from redis_command_target.protocol.values import RESPValue, to_resp


class CountingParser(RESPParser):
    def __init__(self) -> None:
        super().__init__()
        self.elements_parsed = 0

    def _parse_element(self):
        element = super()._parse_element()
        self.elements_parsed += 1
        return element


class TestEncodeCommand:
    """Test request encoding."""

    def test_bulk_strings(self):
        """Requests are arrays of bulk strings."""
        data = encode_command([to_resp("SET"), to_resp("k"), to_resp("v")])
        assert data == b"*3\r\n$3\r\nSET\r\n$1\r\nk\r\n$1\r\nv\r\n"

    def test_integers_sent_as_text(self):
        """Integer arguments are rendered as decimal bulk strings."""
        data = encode_command([to_resp("PX"), RESPValue.integer(2500)])
        assert data == b"*2\r\n$2\r\nPX\r\n$4\r\n2500\r\n"

    def test_binary_payload(self):
        """Bulk strings are length-prefixed, so CRLF inside is safe."""
        data = encode_command([to_resp(b"a\r\nb")])
        assert data == b"*1\r\n$4\r\na\r\nb\r\n"

    @pytest.mark.parametrize(
        "value", [RESPValue.nil(), RESPValue.array([]), RESPValue.error("ERR")]
    )
    def test_rejects_non_scalar(self, value):
        """Nil, arrays and errors cannot be request arguments."""
        with pytest.raises(ValueError):
            encode_command([to_resp("ECHO"), value])


class TestEncodeValue:
    """Test reply encoding."""

    def test_scalars(self):
        assert encode_value(RESPValue.simple("OK")) == b"+OK\r\n"
        assert encode_value(RESPValue.error("ERR bad")) == b"-ERR bad\r\n"
        assert encode_value(RESPValue.integer(-3)) == b":-3\r\n"
        assert encode_value(RESPValue.nil()) == b"$-1\r\n"

    def test_arrays(self):
        assert encode_value(RESPValue.array(None)) == b"*-1\r\n"
        assert encode_value(RESPValue.array([RESPValue.bulk("a"), RESPValue.integer(1)])) == (
            b"*2\r\n$1\r\na\r\n:1\r\n"
        )


class TestParser:
    """Test incremental reply parsing."""

    def test_parse_each_kind(self):
        """Every reply kind parses back to its value."""
        parser = RESPParser()
        parser.feed(b"+OK\r\n-ERR no\r\n:42\r\n$5\r\nhello\r\n$-1\r\n*-1\r\n*0\r\n")

        assert list(parser) == [
            RESPValue.simple("OK"),
            RESPValue.error("ERR no"),
            RESPValue.integer(42),
            RESPValue.bulk("hello"),
            RESPValue.nil(),
            RESPValue.array(None),
            RESPValue.array([]),
        ]
        assert parser.buffered == 0

    def test_nested_array(self):
        """A SCAN reply parses as cursor plus key array."""
        parser = RESPParser()
        parser.feed(b"*2\r\n$1\r\n5\r\n*2\r\n$2\r\nk1\r\n$2\r\nk2\r\n")

        value = parser.gets()
        assert value == RESPValue.array(
            [RESPValue.bulk("5"), RESPValue.array([RESPValue.bulk("k1"), RESPValue.bulk("k2")])]
        )

    def test_partial_data_waits(self):
        """Incomplete values stay buffered until the rest arrives."""
        parser = RESPParser()
        data = b"*2\r\n$5\r\nhello\r\n:7\r\n"

        for byte in data[:-1]:
            parser.feed(bytes([byte]))
            assert parser.gets() is None

        parser.feed(data[-1:])
        assert parser.gets() == RESPValue.array([RESPValue.bulk("hello"), RESPValue.integer(7)])
        assert parser.gets() is None

    def test_large_array_in_small_chunks(self):
        """A long reply split mid-element still parses to the whole array."""
        keys = [f"key:{i}" for i in range(2000)]
        data = encode_value(RESPValue.array([RESPValue.bulk(k) for k in keys])) + b":1\r\n"
        parser = CountingParser()

        values = []
        for start in range(0, len(data), 7):
            parser.feed(data[start : start + 7])
            values.extend(parser)

        assert len(values) == 2
        assert [item.string_value for item in values[0].items] == keys
        assert values[1] == RESPValue.integer(1)
        assert parser.buffered == 0
        # Header, 2000 elements and the trailing integer: each parsed exactly once
        assert parser.elements_parsed == 2002

    def test_nested_arrays_split_across_chunks(self):
        """Partially received nested arrays resume where they stopped."""
        parser = RESPParser()
        parser.feed(b"*2\r\n$1\r\n7\r\n*2\r\n$2\r\nk1")
        assert parser.gets() is None

        parser.feed(b"\r\n*0\r\n")
        assert parser.gets() == RESPValue.array(
            [RESPValue.bulk("7"), RESPValue.array([RESPValue.bulk("k1"), RESPValue.array([])])]
        )
        assert parser.gets() is None

    def test_unknown_marker(self):
        parser = RESPParser()
        parser.feed(b"?what\r\n")
        with pytest.raises(ProtocolError):
            parser.gets()

    def test_invalid_integer(self):
        parser = RESPParser()
        parser.feed(b":12a\r\n")
        with pytest.raises(ProtocolError):
            parser.gets()

    def test_unterminated_bulk(self):
        parser = RESPParser()
        parser.feed(b"$2\r\nabXY")
        with pytest.raises(ProtocolError):
            parser.gets()
