"""Protocol layer: values, command calls and the RESP wire codec."""

from .commands import CommandCall, CommandType, SetMode
from .resp import RESPParser, encode_command, encode_value
from .values import RESPEncodable, RESPKind, RESPValue, to_resp

__all__ = [
    "CommandCall",
    "CommandType",
    "SetMode",
    "RESPEncodable",
    "RESPKind",
    "RESPValue",
    "to_resp",
    "RESPParser",
    "encode_command",
    "encode_value",
]
