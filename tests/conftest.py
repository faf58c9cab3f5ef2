"""Pytest configuration and shared fixtures."""

import pytest

from redis_command_target import RESPValue


@pytest.fixture
def scan_reply():
    """Build a SCAN reply ``[cursor, [keys...]]``."""

    def build(cursor: str, keys: list[str]) -> RESPValue:
        return RESPValue.array(
            [RESPValue.bulk(cursor), RESPValue.array([RESPValue.bulk(k) for k in keys])]
        )

    return build
