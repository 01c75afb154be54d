"""Turn extracted intents into stored records and replies.

Every message goes through one decision step that returns a ``MessageResult``
and one acknowledgement step that sends the result's reply, if any. Replies
that do not accompany a new record are claimed in ``processed_requests``
before they are sent, so overlapping passes answer each post at most once.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from reputest.core.errors import UpstreamError
from reputest.ingest.extraction import (
    DirectQuery,
    FollowQuery,
    Matcher,
    NoIntent,
    Transfer,
    VibeDeclaration,
    build_matchers,
    extract_intent,
)
from reputest.ingest.identity import IdentityResolver
from reputest.twitter.client import TwitterClient
from reputest.twitter.paginator import Paginator
from reputest.twitter.payloads import SearchPage, Tweet, TwitterUser
from shared.models.user import UserIdentity
from shared.models.vibes import MAX_TRANSFER_AMOUNT, TransferRecord, VibeRecord
from shared.repositories.user import UserRepository
from shared.repositories.vibes import VibesRepository

logger = logging.getLogger(__name__)

STATUS_URL = "https://twitter.com/i/status/{tweet_id}"


class MessageOutcome(str, Enum):
    NO_INTENT = "no_intent"
    NOT_FOUND = "not_found"
    ALREADY_PROCESSED = "already_processed"
    DUPLICATE = "duplicate"
    RECORDED = "recorded"
    ANSWERED = "answered"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class MessageResult:
    outcome: MessageOutcome
    reply: str | None = None
    replied: bool = False


# ==================== Reply Texts ====================


def not_found_reply(handle: str) -> str:
    return (
        f"I couldn't find a Twitter user with the handle '{handle}'. "
        "Please check the spelling and try again."
    )


def duplicate_reply(original_tweet_id: str) -> str:
    return (
        "You've already declared these vibes! See your previous tweet: "
        + STATUS_URL.format(tweet_id=original_tweet_id)
    )


def vibes_recorded_reply(emitter_handle: str) -> str:
    return f"Your good vibes from {emitter_handle} have been noted."


def transfer_recorded_reply(amount: int, receiver_handle: str) -> str:
    return f"Your {amount} megajoules to {receiver_handle} have been noted."


def vibe_scores_reply(handle: str, one: int, two: int, three: int) -> str:
    return (
        f"Good vibes from @{handle} to you: "
        f"1st degree {one}, 2nd degree {two}, 3rd degree {three}."
    )


def following_reply(handle: str, total: int, with_vibes: int) -> str:
    return f"@{handle} follows {total} accounts; you have good vibes from {with_vibes} of them."


def following_unavailable_reply(handle: str) -> str:
    return f"The accounts @{handle} follows are not accessible."


class IngestionCoordinator:
    def __init__(
        self,
        client: TwitterClient,
        resolver: IdentityResolver,
        users: UserRepository,
        vibes: VibesRepository,
        *,
        bot_handle: str = "reputest",
        matchers: tuple[Matcher, ...] | None = None,
        following_max_pages: int = 15,
        page_delay: float = 0.5,
        stop_event: asyncio.Event | None = None,
    ) -> None:
        self.client = client
        self.resolver = resolver
        self.users = users
        self.vibes = vibes
        self.bot_handle = bot_handle.lstrip("@")
        self.matchers = matchers or build_matchers(self.bot_handle)
        self.following_max_pages = following_max_pages
        self.page_delay = page_delay
        self.stop_event = stop_event

    async def process_page(self, page: SearchPage) -> list[MessageResult]:
        """Process one search page in upstream order.

        Authors in the page includes are stored first; a failing message is
        logged and does not stop the rest of the page.
        """
        if page.users:
            await self.resolver.observe(page.users.values())

        results = []
        for tweet in page.tweets:
            results.append(await self.process_message(tweet, page))
        return results

    async def process_message(self, tweet: Tweet, page: SearchPage) -> MessageResult:
        try:
            result = await self._decide(tweet, page)
        except Exception as e:
            logger.exception(f"Failed to process tweet {tweet.id}: {e}")
            return MessageResult(MessageOutcome.FAILED)

        if result.reply:
            result.replied = await self._acknowledge(tweet, result.reply)
        return result

    # ==================== Decision ====================

    async def _decide(self, tweet: Tweet, page: SearchPage) -> MessageResult:
        author = page.author_of(tweet)
        if author is None:
            logger.warning(f"Skipping tweet {tweet.id}: author {tweet.author_id} not in includes")
            return MessageResult(MessageOutcome.SKIPPED)
        if author.username.lower() == self.bot_handle.lower():
            return MessageResult(MessageOutcome.SKIPPED)
        if tweet.created_at is None:
            logger.warning(f"Skipping tweet {tweet.id}: missing created_at")
            return MessageResult(MessageOutcome.SKIPPED)

        intent = extract_intent(tweet.text, self._reply_target(tweet, page), self.matchers)
        if isinstance(intent, NoIntent):
            return MessageResult(MessageOutcome.NO_INTENT)

        # Answered before: no lookups or list syncs for it again
        if await self.vibes.is_claimed(tweet.id):
            return MessageResult(MessageOutcome.ALREADY_PROCESSED)

        logger.info(f"Tweet {tweet.id} from @{author.username}: {intent}")
        if isinstance(intent, VibeDeclaration):
            return await self._handle_vibes(tweet, author, intent)
        if isinstance(intent, Transfer):
            return await self._handle_transfer(tweet, author, intent)
        if isinstance(intent, DirectQuery):
            return await self._handle_direct_query(tweet, author, intent)
        if isinstance(intent, FollowQuery):
            return await self._handle_follow_query(tweet, author, intent)
        raise TypeError(f"Unhandled intent {intent!r}")

    @staticmethod
    def _reply_target(tweet: Tweet, page: SearchPage) -> str | None:
        if not tweet.in_reply_to_user_id:
            return None
        target = page.users.get(tweet.in_reply_to_user_id)
        return target.username if target else None

    async def _handle_vibes(
        self, tweet: Tweet, author: TwitterUser, intent: VibeDeclaration
    ) -> MessageResult:
        if await self.vibes.vibe_exists_for_message(tweet.id):
            return MessageResult(MessageOutcome.ALREADY_PROCESSED)

        emitter = await self.resolver.resolve(intent.emitter_handle)
        if emitter is None:
            return await self._claimed(
                tweet, "not_found", MessageOutcome.NOT_FOUND, not_found_reply(intent.emitter_handle)
            )
        if emitter.id == author.id:
            logger.info(f"Ignoring self-declared vibes in tweet {tweet.id}")
            return MessageResult(MessageOutcome.SKIPPED)

        if await self.vibes.vibe_exists_for_pair(emitter.id, author.id):
            original = await self.vibes.originating_message_id(emitter.id, author.id)
            if original is None:
                # Pair row deleted between the two reads
                return MessageResult(MessageOutcome.ALREADY_PROCESSED)
            return await self._claimed(
                tweet, "duplicate", MessageOutcome.DUPLICATE, duplicate_reply(original)
            )

        record = VibeRecord(
            tweet_id=tweet.id,
            emitter_id=emitter.id,
            sensor_id=author.id,
            created_at=tweet.created_at,  # type: ignore[arg-type]
        )
        if not await self.vibes.insert_vibe(record):
            return MessageResult(MessageOutcome.ALREADY_PROCESSED)
        return MessageResult(MessageOutcome.RECORDED, vibes_recorded_reply(intent.emitter_handle))

    async def _handle_transfer(
        self, tweet: Tweet, author: TwitterUser, intent: Transfer
    ) -> MessageResult:
        if await self.vibes.transfer_exists_for_message(tweet.id):
            return MessageResult(MessageOutcome.ALREADY_PROCESSED)
        if intent.amount > MAX_TRANSFER_AMOUNT:
            logger.warning(f"Ignoring transfer of {intent.amount} megajoules in tweet {tweet.id}: too large")
            return MessageResult(MessageOutcome.SKIPPED)

        receiver = await self.resolver.resolve(intent.receiver_handle)
        if receiver is None:
            return await self._claimed(
                tweet, "not_found", MessageOutcome.NOT_FOUND, not_found_reply(intent.receiver_handle)
            )
        if receiver.id == author.id:
            logger.info(f"Ignoring megajoules sent to self in tweet {tweet.id}")
            return MessageResult(MessageOutcome.SKIPPED)

        record = TransferRecord(
            tweet_id=tweet.id,
            sender_id=author.id,
            receiver_id=receiver.id,
            amount=intent.amount,
            created_at=tweet.created_at,  # type: ignore[arg-type]
        )
        if not await self.vibes.insert_transfer(record):
            return MessageResult(MessageOutcome.ALREADY_PROCESSED)
        return MessageResult(
            MessageOutcome.RECORDED,
            transfer_recorded_reply(intent.amount, intent.receiver_handle),
        )

    async def _handle_direct_query(
        self, tweet: Tweet, author: TwitterUser, intent: DirectQuery
    ) -> MessageResult:
        target = await self.resolver.resolve(intent.queried_handle)
        if target is None:
            return await self._claimed(
                tweet, "not_found", MessageOutcome.NOT_FOUND, not_found_reply(intent.queried_handle)
            )

        scores = await self.vibes.vibe_scores(sensor_id=author.id, emitter_id=target.id)
        reply = vibe_scores_reply(
            target.username, scores.degree_one, scores.degree_two, scores.degree_three
        )
        return await self._claimed(tweet, "direct_query", MessageOutcome.ANSWERED, reply)

    async def _handle_follow_query(
        self, tweet: Tweet, author: TwitterUser, intent: FollowQuery
    ) -> MessageResult:
        target = await self.resolver.resolve(intent.queried_handle)
        if target is None:
            return await self._claimed(
                tweet, "not_found", MessageOutcome.NOT_FOUND, not_found_reply(intent.queried_handle)
            )

        try:
            total = await self._sync_following(target)
        except UpstreamError as e:
            if e.status != 403:
                raise
            logger.info(f"Following list of @{target.username} is not accessible")
            return await self._claimed(
                tweet,
                "follow_query",
                MessageOutcome.ANSWERED,
                following_unavailable_reply(target.username),
            )

        with_vibes = await self.users.count_followed_with_vibes(target.id, author.id)
        reply = following_reply(target.username, total, with_vibes)
        return await self._claimed(tweet, "follow_query", MessageOutcome.ANSWERED, reply)

    async def _sync_following(self, target: UserIdentity) -> int:
        """Store *target*'s following list. Returns the number of accounts seen."""
        paginator = Paginator(
            lambda token: self.client.following(target.id, token),
            max_pages=self.following_max_pages,
            delay=self.page_delay,
            stop_event=self.stop_event,
            label=f"following of @{target.username}",
        )
        total = 0
        async for page in paginator.pages():
            await self.resolver.observe(page.users)
            total += await self.users.upsert_following(target.id, (u.id for u in page.users))
        logger.info(f"Stored {total} following edge(s) for @{target.username}")
        return total

    async def _claimed(
        self, tweet: Tweet, kind: str, outcome: MessageOutcome, reply: str
    ) -> MessageResult:
        if not await self.vibes.claim_request(tweet.id, kind):
            return MessageResult(MessageOutcome.ALREADY_PROCESSED)
        return MessageResult(outcome, reply)

    # ==================== Acknowledgement ====================

    async def _acknowledge(self, tweet: Tweet, reply: str) -> bool:
        try:
            await self.client.post(reply, in_reply_to=tweet.id)
            return True
        except Exception as e:
            logger.warning(f"Failed to reply to tweet {tweet.id}: {e}")
            return False


def count_outcomes(results: Iterable[MessageResult]) -> dict[MessageOutcome, int]:
    counts: dict[MessageOutcome, int] = {}
    for result in results:
        counts[result.outcome] = counts.get(result.outcome, 0) + 1
    return counts
