"""Protocol values: the unit of request and reply data on the RESP wire.

A RESPValue is a tagged union over the RESP2 reply kinds. Arrays can be
absent (a null multi-bulk reply), which is distinct from an empty array.
"""

from __future__ import annotations

from enum import Enum
from typing import Union

from pydantic import BaseModel, ConfigDict


class RESPKind(str, Enum):
    """All reply kinds of the RESP2 protocol."""

    NIL = "nil"
    SIMPLE_STRING = "simple_string"
    BULK_STRING = "bulk_string"
    INTEGER = "integer"
    ERROR = "error"
    ARRAY = "array"


class RESPValue(BaseModel):
    """A single request or reply value.

    Payload by kind:
    - NIL: None
    - SIMPLE_STRING / ERROR: str
    - BULK_STRING: bytes
    - INTEGER: int
    - ARRAY: tuple of RESPValue, or None for a null array

    Use the factory methods rather than the constructor:
        RESPValue.bulk("GET"), RESPValue.integer(42), RESPValue.array([...])
    """

    model_config = ConfigDict(frozen=True)

    kind: RESPKind
    payload: bytes | int | str | tuple[RESPValue, ...] | None = None

    # =========================================================================
    # Factories
    # =========================================================================

    @classmethod
    def nil(cls) -> RESPValue:
        return cls(kind=RESPKind.NIL)

    @classmethod
    def simple(cls, text: str) -> RESPValue:
        return cls(kind=RESPKind.SIMPLE_STRING, payload=text)

    @classmethod
    def bulk(cls, value: str | bytes | int | float | None) -> RESPValue:
        """Create a bulk string. ``None`` yields a nil value."""
        if value is None:
            return cls.nil()
        if isinstance(value, bytes):
            return cls(kind=RESPKind.BULK_STRING, payload=value)
        if isinstance(value, bool):
            raise TypeError("bool is not a valid bulk string value")
        if isinstance(value, (int, float)):
            value = repr(value) if isinstance(value, float) else str(value)
        return cls(kind=RESPKind.BULK_STRING, payload=value.encode("utf-8"))

    @classmethod
    def integer(cls, value: int) -> RESPValue:
        return cls(kind=RESPKind.INTEGER, payload=int(value))

    @classmethod
    def error(cls, message: str) -> RESPValue:
        return cls(kind=RESPKind.ERROR, payload=message)

    @classmethod
    def array(cls, items: list[RESPValue] | tuple[RESPValue, ...] | None) -> RESPValue:
        """Create an array. ``None`` yields a null (absent) array."""
        if items is None:
            return cls(kind=RESPKind.ARRAY, payload=None)
        return cls(kind=RESPKind.ARRAY, payload=tuple(items))

    # =========================================================================
    # Inspection
    # =========================================================================

    @property
    def is_nil(self) -> bool:
        return self.kind == RESPKind.NIL

    @property
    def is_error(self) -> bool:
        return self.kind == RESPKind.ERROR

    @property
    def is_array(self) -> bool:
        return self.kind == RESPKind.ARRAY

    @property
    def is_null_array(self) -> bool:
        return self.kind == RESPKind.ARRAY and self.payload is None

    @property
    def items(self) -> tuple[RESPValue, ...] | None:
        """Array elements, or None for non-arrays and null arrays."""
        if self.kind == RESPKind.ARRAY:
            return self.payload  # type: ignore[return-value]
        return None

    @property
    def bytes_value(self) -> bytes | None:
        """Raw payload of a bulk or simple string."""
        if self.kind == RESPKind.BULK_STRING:
            return self.payload  # type: ignore[return-value]
        if self.kind == RESPKind.SIMPLE_STRING:
            return self.payload.encode("utf-8")  # type: ignore[union-attr]
        return None

    @property
    def string_value(self) -> str | None:
        """Text of a bulk or simple string, None if not a (decodable) string."""
        if self.kind == RESPKind.SIMPLE_STRING:
            return self.payload  # type: ignore[return-value]
        if self.kind == RESPKind.BULK_STRING:
            try:
                return self.payload.decode("utf-8")  # type: ignore[union-attr]
            except UnicodeDecodeError:
                return None
        return None

    @property
    def integer_value(self) -> int | None:
        if self.kind == RESPKind.INTEGER:
            return self.payload  # type: ignore[return-value]
        return None

    @property
    def error_message(self) -> str | None:
        if self.kind == RESPKind.ERROR:
            return self.payload  # type: ignore[return-value]
        return None

    def describe(self) -> str:
        """Short human readable rendering used in error messages and logs."""
        if self.kind == RESPKind.NIL:
            return "nil"
        if self.kind == RESPKind.ARRAY:
            if self.payload is None:
                return "array(null)"
            inner = ", ".join(item.describe() for item in self.payload)  # type: ignore[union-attr]
            return f"array[{inner}]"
        return f"{self.kind.value}({self.payload!r})"


RESPEncodable = Union[RESPValue, str, bytes, int, float]


def to_resp(value: RESPEncodable) -> RESPValue:
    """Encode a host value as a protocol value.

    Text and bytes become bulk strings, integers become integers and floats
    are sent as the bulk string of their text form.

    Raises:
        TypeError: If the value has no protocol representation
    """
    if isinstance(value, RESPValue):
        return value
    if isinstance(value, bool) or value is None:
        raise TypeError(f"Cannot encode {value!r} as a protocol value")
    if isinstance(value, int):
        return RESPValue.integer(value)
    if isinstance(value, (str, bytes, float)):
        return RESPValue.bulk(value)
    raise TypeError(f"Cannot encode {type(value).__name__} as a protocol value")
