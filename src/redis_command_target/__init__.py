"""Typed command dispatch for Redis-style key-value store clients.

Commands are built as protocol values, handed to any CommandTarget for
transmission, and their replies are extracted into typed results.

Usage:
    async with create_stream_connection() as connection:
        commands = RedisCommands(connection)
        await commands.set("greeting", "hello")
        print(await commands.get("greeting"))
"""

from .api import RedisCommands
from .errors import (
    ProtocolError,
    RedisCommandError,
    StoreError,
    TransportError,
    TypeMismatchError,
)
from .extract import ScanPage, extract, register_extractor
from .protocol import CommandCall, CommandType, RESPKind, RESPValue, SetMode
from .scan import ScanIterator, ScanState
from .target import CommandTarget, ReplyCallback, dispatch, when_callback
from .transport import (
    BaseConnection,
    ConnectionConfig,
    ConnectionState,
    MockConnection,
    StreamConnection,
    create_mock_connection,
    create_stream_connection,
)

__version__ = "0.1.0"

__all__ = [
    # Command API
    "RedisCommands",
    "ScanIterator",
    "ScanState",
    # Core protocol
    "CommandCall",
    "CommandType",
    "CommandTarget",
    "ReplyCallback",
    "RESPKind",
    "RESPValue",
    "SetMode",
    "dispatch",
    "when_callback",
    # Type extraction
    "ScanPage",
    "extract",
    "register_extractor",
    # Connections
    "BaseConnection",
    "ConnectionConfig",
    "ConnectionState",
    "MockConnection",
    "StreamConnection",
    "create_mock_connection",
    "create_stream_connection",
    # Errors
    "RedisCommandError",
    "TransportError",
    "ProtocolError",
    "TypeMismatchError",
    "StoreError",
]
