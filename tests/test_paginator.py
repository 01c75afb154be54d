import asyncio
from dataclasses import dataclass

import pytest

from reputest.twitter.paginator import Paginator


@dataclass
class Page:
    number: int
    next_token: str | None


class FakeEndpoint:
    """Serves *total* pages; records the continuation token of every call."""

    def __init__(self, total: int, fail_on: int | None = None) -> None:
        self.total = total
        self.fail_on = fail_on
        self.tokens: list[str | None] = []

    async def __call__(self, token: str | None) -> Page:
        self.tokens.append(token)
        number = len(self.tokens)
        if number == self.fail_on:
            raise RuntimeError("upstream broke")
        return Page(number, f"t{number}" if number < self.total else None)


async def test_stops_when_token_disappears():
    endpoint = FakeEndpoint(total=3)
    pages = await Paginator(endpoint, max_pages=10, delay=0).collect()

    assert [p.number for p in pages] == [1, 2, 3]
    assert endpoint.tokens == [None, "t1", "t2"]


async def test_stops_exactly_at_cap(caplog):
    endpoint = FakeEndpoint(total=50)
    pages = await Paginator(endpoint, max_pages=10, delay=0).collect()

    assert len(pages) == 10
    assert len(endpoint.tokens) == 10
    assert "page cap" in caplog.text


async def test_single_page():
    endpoint = FakeEndpoint(total=1)
    assert len(await Paginator(endpoint, max_pages=10, delay=0).collect()) == 1


async def test_failure_propagates_after_earlier_pages_were_consumed():
    endpoint = FakeEndpoint(total=5, fail_on=3)
    seen = []

    with pytest.raises(RuntimeError):
        async for page in Paginator(endpoint, max_pages=10, delay=0).pages():
            seen.append(page.number)

    assert seen == [1, 2]


async def test_each_page_is_consumed_before_the_next_fetch():
    endpoint = FakeEndpoint(total=3)
    async for page in Paginator(endpoint, max_pages=10, delay=0).pages():
        assert len(endpoint.tokens) == page.number


async def test_stop_event_ends_iteration():
    endpoint = FakeEndpoint(total=10)
    stop = asyncio.Event()
    seen = []
    async for page in Paginator(endpoint, max_pages=10, delay=0, stop_event=stop).pages():
        seen.append(page.number)
        if page.number == 2:
            stop.set()

    assert seen == [1, 2]


def test_max_pages_must_be_positive():
    with pytest.raises(ValueError):
        Paginator(FakeEndpoint(total=1), max_pages=0)
