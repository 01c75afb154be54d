"""X API v2 endpoints used by the bot."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from reputest.core.errors import MalformedPayloadError, UpstreamError
from reputest.twitter.executor import AuthenticatedExecutor, RequestTemplate
from reputest.twitter.payloads import FollowingPage, SearchPage, TwitterUser

logger = logging.getLogger(__name__)

SEARCH_PAGE_SIZE = 100
FOLLOWING_PAGE_SIZE = 1000

USER_FIELDS = "id,username,name,created_at,public_metrics"
TWEET_FIELDS = "created_at,conversation_id,in_reply_to_user_id,author_id"
EXPANSIONS = "author_id,referenced_tweets.id,in_reply_to_user_id"


def format_start_time(since: datetime) -> str:
    """Render *since* the way the search endpoint expects (UTC, millisecond precision)."""
    if since.tzinfo is not None:
        since = since.astimezone(timezone.utc)
    return since.strftime("%Y-%m-%dT%H:%M:%S.000Z")


class TwitterClient:
    def __init__(self, executor: AuthenticatedExecutor, base_url: str = "https://api.x.com") -> None:
        self.executor = executor
        self.base_url = base_url.rstrip("/")

    def _url(self, path: str) -> str:
        return f"{self.base_url}/2/{path}"

    async def post(self, text: str, in_reply_to: str | None = None) -> str | None:
        """Publish a post, optionally as a reply. Returns the new post id."""
        body: dict = {"text": text}
        if in_reply_to:
            body["reply"] = {"in_reply_to_tweet_id": in_reply_to}

        data = await self.executor.execute_json(
            RequestTemplate("POST", self._url("tweets"), json=body), "post tweet"
        )
        tweet_id = (data.get("data") or {}).get("id")
        logger.info(f"Posted tweet {tweet_id}" + (f" in reply to {in_reply_to}" if in_reply_to else ""))
        return tweet_id

    async def search(
        self, query: str, since: datetime, next_token: str | None = None
    ) -> SearchPage:
        """One page of recent-search results for *query* newer than *since*."""
        params = {
            "query": query,
            "start_time": format_start_time(since),
            "max_results": str(SEARCH_PAGE_SIZE),
            "expansions": EXPANSIONS,
            "user.fields": USER_FIELDS,
            "tweet.fields": TWEET_FIELDS,
        }
        if next_token:
            params["next_token"] = next_token

        data = await self.executor.execute_json(
            RequestTemplate("GET", self._url("tweets/search/recent"), params=params),
            f"search {query!r}",
        )
        page = SearchPage.from_payload(data)
        logger.debug(f"Search {query!r}: {len(page.tweets)} tweet(s), next={page.next_token}")
        return page

    async def lookup_by_handle(self, handle: str) -> TwitterUser | None:
        """Resolve a handle remotely. ``None`` when the account does not exist."""
        handle = handle.lstrip("@")
        template = RequestTemplate(
            "GET",
            self._url(f"users/by/username/{handle}"),
            params={"user.fields": USER_FIELDS},
        )
        try:
            data = await self.executor.execute_json(template, f"lookup @{handle}")
        except UpstreamError as e:
            if e.status == 404:
                return None
            raise

        # Suspended or unknown accounts come back as 200 with only "errors"
        if not data.get("data"):
            logger.info(f"User @{handle} not found")
            return None
        try:
            return TwitterUser.from_payload(data["data"])
        except MalformedPayloadError as e:
            logger.warning(f"Lookup of @{handle} returned an unusable user: {e}")
            return None

    async def following(self, user_id: str, next_token: str | None = None) -> FollowingPage:
        """One page of the accounts *user_id* follows."""
        params = {"max_results": str(FOLLOWING_PAGE_SIZE), "user.fields": USER_FIELDS}
        if next_token:
            params["pagination_token"] = next_token
        data = await self.executor.execute_json(
            RequestTemplate("GET", self._url(f"users/{user_id}/following"), params=params),
            f"following of {user_id}",
        )
        return FollowingPage.from_payload(data)
