"""Cursor-driven pagination under a fixed page cap."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Generic, Protocol, TypeVar

logger = logging.getLogger(__name__)


class HasNextToken(Protocol):
    next_token: str | None


P = TypeVar("P", bound=HasNextToken)


class Paginator(Generic[P]):
    """Walk a paginated endpoint one page at a time.

    *fetch* is called with ``None`` for the first page and with the previous
    page's ``next_token`` afterwards. Each page is yielded before the next is
    requested, so the consumer finishes with a page before more quota is spent.
    """

    def __init__(
        self,
        fetch: Callable[[str | None], Awaitable[P]],
        *,
        max_pages: int,
        delay: float = 0.5,
        stop_event: asyncio.Event | None = None,
        label: str = "pagination",
    ) -> None:
        if max_pages < 1:
            raise ValueError("max_pages must be at least 1")
        self._fetch = fetch
        self.max_pages = max_pages
        self.delay = delay
        self.stop_event = stop_event
        self.label = label
        self.pages_fetched = 0

    async def pages(self) -> AsyncIterator[P]:
        next_token: str | None = None
        while True:
            page = await self._fetch(next_token)
            self.pages_fetched += 1
            yield page

            next_token = page.next_token
            if not next_token:
                return
            if self.pages_fetched >= self.max_pages:
                logger.warning(
                    f"{self.label}: reached page cap ({self.max_pages}), more results remain"
                )
                return
            if self.stop_event is not None and self.stop_event.is_set():
                logger.info(f"{self.label}: stop requested after {self.pages_fetched} page(s)")
                return
            await asyncio.sleep(self.delay)

    async def collect(self) -> list[P]:
        return [page async for page in self.pages()]
