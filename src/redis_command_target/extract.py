"""Type extraction: decoding a reply into the result type a command promises.

Every supported result type has one extractor. An extractor either returns a
correctly coerced value or raises TypeMismatchError; it never substitutes a
default for a reply it cannot represent.

Usage:
    extract(RESPValue.integer(7), str)          # "7"
    extract(reply, list[str])                   # ["a", "b"]
    extract(reply, ScanPage)                    # ("0", ["k1"])
"""

from __future__ import annotations

import re
from collections.abc import Callable
from typing import Any, TypeVar

from .errors import TypeMismatchError
from .protocol.values import RESPKind, RESPValue

T = TypeVar("T")

Extractor = Callable[[RESPValue], Any]

# Reply shape of SCAN: (next cursor, keys of this page)
ScanPage = tuple[str, list[str]]

_extractors: dict[Any, Extractor] = {}

# Numeric text exactly as the store writes it (int() alone would also accept "1_000")
_INTEGER_TEXT = re.compile(r"-?[0-9]+")
_FLOAT_TEXT = re.compile(r"[+-]?(?:inf|(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)(?:[eE][+-]?[0-9]+)?)")


def register_extractor(result_type: Any) -> Callable[[Extractor], Extractor]:
    """Register the extractor for a result type.

    Args:
        result_type: A type or generic alias such as ``list[str]``

    Returns:
        Decorator registering the function
    """

    def decorator(fn: Extractor) -> Extractor:
        _extractors[result_type] = fn
        return fn

    return decorator


def extract(value: RESPValue, result_type: type[T] | Any) -> T:
    """Decode a reply as ``result_type``.

    Raises:
        TypeMismatchError: If the reply cannot represent the type
        TypeError: If no extractor is registered for the type
    """
    try:
        extractor = _extractors[result_type]
    except KeyError:
        raise TypeError(f"No extractor registered for {result_type!r}") from None
    return extractor(value)


def supported_types() -> list[Any]:
    """All result types with a registered extractor."""
    return list(_extractors)


# =============================================================================
# Extractors
# =============================================================================


@register_extractor(RESPValue)
def _extract_raw(value: RESPValue) -> RESPValue:
    return value


@register_extractor(str)
def _extract_str(value: RESPValue) -> str:
    # Integer replies render as text (TTL, EXPIRE and PERSIST answer with integers)
    if value.kind == RESPKind.INTEGER:
        return str(value.payload)
    if value.kind == RESPKind.BULK_STRING and value.string_value is None:
        raise TypeMismatchError(value, str, "bulk string is not valid UTF-8")
    text = value.string_value
    if text is None:
        raise TypeMismatchError(value, str)
    return text


def _numeric_text(value: RESPValue, expected: Any, pattern: re.Pattern[str]) -> str:
    text = value.string_value
    if text is None:
        raise TypeMismatchError(value, expected)
    if not pattern.fullmatch(text):
        raise TypeMismatchError(value, expected, f"not a number: {text!r}")
    return text


@register_extractor(int)
def _extract_int(value: RESPValue) -> int:
    if value.kind == RESPKind.INTEGER:
        return value.payload  # type: ignore[return-value]
    try:
        return int(_numeric_text(value, int, _INTEGER_TEXT))
    except ValueError:
        raise TypeMismatchError(value, int, "not an integer") from None


@register_extractor(bool)
def _extract_bool(value: RESPValue) -> bool:
    if value.kind == RESPKind.INTEGER and value.payload in (0, 1):
        return value.payload == 1
    raise TypeMismatchError(value, bool)


@register_extractor(float)
def _extract_float(value: RESPValue) -> float:
    if value.kind == RESPKind.INTEGER:
        return float(value.payload)  # type: ignore[arg-type]
    try:
        return float(_numeric_text(value, float, _FLOAT_TEXT))
    except ValueError:
        raise TypeMismatchError(value, float, "not a number") from None


def _require_items(value: RESPValue, expected: Any) -> tuple[RESPValue, ...]:
    if value.kind != RESPKind.ARRAY:
        raise TypeMismatchError(value, expected, "not an array")
    if value.items is None:
        raise TypeMismatchError(value, expected, "null array")
    return value.items


def _strings(value: RESPValue, items: tuple[RESPValue, ...], expected: Any) -> list[str]:
    try:
        return [_extract_str(item) for item in items]
    except TypeMismatchError as e:
        raise TypeMismatchError(value, expected, f"element {e.value.describe()}") from e


@register_extractor(list[str])
def _extract_str_list(value: RESPValue) -> list[str]:
    return _strings(value, _require_items(value, list[str]), list[str])


@register_extractor(dict[str, str])
def _extract_str_dict(value: RESPValue) -> dict[str, str]:
    items = _require_items(value, dict[str, str])
    if len(items) % 2:
        raise TypeMismatchError(value, dict[str, str], "odd number of elements")
    flat = _strings(value, items, dict[str, str])
    return dict(zip(flat[::2], flat[1::2]))


@register_extractor(ScanPage)
def _extract_scan_page(value: RESPValue) -> ScanPage:
    items = _require_items(value, ScanPage)
    if len(items) != 2:
        raise TypeMismatchError(value, ScanPage, f"expected 2 elements, got {len(items)}")
    cursor, keys = items
    if cursor.kind != RESPKind.BULK_STRING or cursor.string_value is None:
        raise TypeMismatchError(value, ScanPage, "cursor is not a bulk string")
    key_items = keys.items
    if keys.kind != RESPKind.ARRAY or key_items is None:
        raise TypeMismatchError(value, ScanPage, "keys are not an array")
    return cursor.string_value, _strings(value, key_items, ScanPage)
