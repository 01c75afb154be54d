"""One ingestion pass: the vibes hashtag search, then the bot mention search."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from reputest.ingest.coordinator import IngestionCoordinator, MessageOutcome, count_outcomes
from reputest.twitter.client import TwitterClient
from reputest.twitter.paginator import Paginator

logger = logging.getLogger(__name__)


@dataclass
class SearchSpec:
    name: str
    query: str
    window: timedelta


@dataclass
class SearchSummary:
    name: str
    pages: int = 0
    messages: int = 0
    outcomes: dict[MessageOutcome, int] = field(default_factory=dict)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class PassSummary:
    searches: list[SearchSummary] = field(default_factory=list)
    total_vibes: int | None = None

    def count(self, outcome: MessageOutcome) -> int:
        return sum(s.outcomes.get(outcome, 0) for s in self.searches)

    @property
    def messages(self) -> int:
        return sum(s.messages for s in self.searches)

    @property
    def failed_searches(self) -> list[str]:
        return [s.name for s in self.searches if not s.ok]


class IngestionPipeline:
    def __init__(
        self,
        client: TwitterClient,
        coordinator: IngestionCoordinator,
        *,
        searches: list[SearchSpec],
        max_pages: int = 10,
        page_delay: float = 0.5,
        stop_event: asyncio.Event | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.client = client
        self.coordinator = coordinator
        self.searches = searches
        self.max_pages = max_pages
        self.page_delay = page_delay
        self.stop_event = stop_event
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @classmethod
    def default_searches(
        cls,
        *,
        bot_handle: str = "reputest",
        hashtag: str = "#gmgv",
        vibes_window_hours: int = 6,
        mentions_window_hours: int = 24,
    ) -> list[SearchSpec]:
        return [
            SearchSpec("vibes", hashtag, timedelta(hours=vibes_window_hours)),
            SearchSpec("mentions", f"@{bot_handle}", timedelta(hours=mentions_window_hours)),
        ]

    async def run_once(self) -> PassSummary:
        """Run every search in order. A failing search does not stop the others."""
        summary = PassSummary()
        for spec in self.searches:
            if self.stop_event is not None and self.stop_event.is_set():
                break
            summary.searches.append(await self._run_search(spec))

        try:
            summary.total_vibes = await self.coordinator.vibes.count_vibes()
        except Exception as e:
            logger.warning(f"Could not count stored good vibes: {e}")

        logger.info(
            f"Pass finished: {summary.messages} message(s), "
            f"{summary.count(MessageOutcome.RECORDED)} recorded, "
            f"{summary.count(MessageOutcome.FAILED)} failed"
            + (f", {summary.total_vibes} good vibes stored" if summary.total_vibes is not None else "")
            + (f", failed searches: {', '.join(summary.failed_searches)}" if summary.failed_searches else "")
        )
        return summary

    async def _run_search(self, spec: SearchSpec) -> SearchSummary:
        result = SearchSummary(name=spec.name)
        since = self._clock() - spec.window
        paginator = Paginator(
            lambda token: self.client.search(spec.query, since, token),
            max_pages=self.max_pages,
            delay=self.page_delay,
            stop_event=self.stop_event,
            label=f"search {spec.name}",
        )
        try:
            async for page in paginator.pages():
                results = await self.coordinator.process_page(page)
                result.pages += 1
                result.messages += len(results)
                for outcome, n in count_outcomes(results).items():
                    result.outcomes[outcome] = result.outcomes.get(outcome, 0) + n
        except Exception as e:
            # Rows committed for earlier pages stay committed
            logger.exception(f"Search {spec.name} aborted after {result.pages} page(s): {e}")
            result.error = str(e)
        else:
            logger.info(f"Search {spec.name}: {result.pages} page(s), {result.messages} message(s)")
        return result
