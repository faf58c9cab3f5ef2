"""Error types raised by the command layer.

Three kinds of failure reach a caller's future or callback:
- TransportError: the connection failed (surfaced as-is, never retried)
- TypeMismatchError: a reply cannot be represented as the requested type
- StoreError: the store answered with an error reply
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .protocol.values import RESPValue


class RedisCommandError(Exception):
    """Base class for all errors raised by this package."""


class TransportError(RedisCommandError, ConnectionError):
    """The underlying connection failed or is not available."""


class ProtocolError(TransportError):
    """Malformed data was received from the wire."""


class TypeMismatchError(RedisCommandError, TypeError):
    """A reply's shape cannot produce the requested result type.

    Always carries the offending value for diagnostics.
    """

    def __init__(self, value: RESPValue, expected: Any, reason: str | None = None) -> None:
        self.value = value
        self.expected = expected
        self.reason = reason
        message = f"Cannot extract {_type_name(expected)} from {value.describe()}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class StoreError(RedisCommandError):
    """The store replied with an error (e.g. ``-WRONGTYPE ...``)."""

    def __init__(self, value: RESPValue) -> None:
        self.value = value
        self.message = value.error_message or ""
        super().__init__(self.message)

    @property
    def code(self) -> str | None:
        """Error prefix sent by the store, such as ``ERR`` or ``WRONGTYPE``."""
        head, _, _ = self.message.partition(" ")
        if head and head.isupper():
            return head
        return None


def _type_name(expected: Any) -> str:
    if isinstance(expected, type):
        return expected.__name__
    return str(expected)
