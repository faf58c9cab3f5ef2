"""Cursor-driven iteration over SCAN.

Each page's cursor is only known once the previous page has arrived, so
pages are fetched strictly one after another:

    READY("0") -> FETCHING("0") -> READY("17") -> FETCHING("17") -> DONE
                                                      \\-> FAILED(error)

The cursor "0" is both the starting point and the end marker. Empty pages
are valid replies but are never handed to the caller.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .api import RedisCommands

logger = logging.getLogger(__name__)

START_CURSOR = "0"

PageCallback = Callable[[list[str]], None]


class ScanState(str, Enum):
    """Iterator state machine."""

    READY = "ready"
    FETCHING = "fetching"
    DONE = "done"
    FAILED = "failed"


class ScanIterator:
    """Async iterator over the non-empty key pages of a full SCAN.

    No retries: a failed page fetch ends the iteration for good.

    Usage:
        async for keys in ScanIterator(commands, pattern="user:*"):
            ...

        await ScanIterator(commands).run(on_page)
    """

    def __init__(
        self,
        commands: RedisCommands,
        pattern: str | None = None,
        count: int | None = None,
    ) -> None:
        self._commands = commands
        self.pattern = pattern
        self.count = count
        self.cursor = START_CURSOR
        self.state = ScanState.READY
        self.error: BaseException | None = None
        self.pages_fetched = 0

    @property
    def finished(self) -> bool:
        return self.state in (ScanState.DONE, ScanState.FAILED)

    async def fetch_page(self) -> list[str]:
        """Fetch the page at the current cursor and advance the state.

        Returns:
            Keys of the page (possibly empty)

        Raises:
            RuntimeError: If a page is already in flight or iteration finished
        """
        if self.state == ScanState.FETCHING:
            raise RuntimeError("A scan page is already being fetched")
        if self.finished:
            raise RuntimeError(f"Scan already {self.state.value}")

        self.state = ScanState.FETCHING
        try:
            cursor, keys = await self._commands.scan(
                cursor=self.cursor, pattern=self.pattern, count=self.count
            )
        except (Exception, asyncio.CancelledError) as e:
            # A cancelled fetch is terminal too; the iterator never stays FETCHING
            self.state = ScanState.FAILED
            self.error = e
            logger.debug(f"Scan failed at cursor {self.cursor}: {e!r}")
            raise

        self.pages_fetched += 1
        self.cursor = cursor
        self.state = ScanState.DONE if cursor == START_CURSOR else ScanState.READY
        return keys

    def __aiter__(self) -> ScanIterator:
        return self

    async def __anext__(self) -> list[str]:
        if self.state == ScanState.FETCHING:
            raise RuntimeError("A scan page is already being fetched")
        while self.state == ScanState.READY:
            keys = await self.fetch_page()
            if keys:
                return keys
        if self.state == ScanState.FAILED and self.error is not None:
            raise self.error
        raise StopAsyncIteration

    async def run(self, on_page: PageCallback) -> int:
        """Drive the scan to completion, reporting each non-empty page.

        Returns:
            Total number of keys reported to ``on_page``
        """
        reported = 0
        async for keys in self:
            on_page(keys)
            reported += len(keys)
        logger.debug(f"Scan complete after {self.pages_fetched} page(s), {reported} key(s)")
        return reported
