"""Typed views of X API v2 response bodies.

Each ``from_payload`` raises ``MalformedPayloadError`` for items missing
required fields; list parsers log and skip such items.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from reputest.core.errors import MalformedPayloadError
from shared.models.user import UserIdentity

logger = logging.getLogger(__name__)


def parse_timestamp(value: Any) -> datetime:
    """Parse an RFC 3339 timestamp such as ``2024-05-01T12:00:00.000Z``."""
    if not isinstance(value, str):
        raise MalformedPayloadError(f"Expected timestamp string, got {value!r}")
    try:
        return datetime.fromisoformat(value)
    except ValueError as e:
        raise MalformedPayloadError(f"Invalid timestamp {value!r}") from e


def _require(payload: dict[str, Any], key: str, kind: str) -> Any:
    value = payload.get(key)
    if value in (None, ""):
        raise MalformedPayloadError(f"{kind} is missing '{key}'")
    return value


@dataclass
class TwitterUser:
    id: str
    username: str
    name: str
    created_at: datetime
    follower_count: int | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> TwitterUser:
        if not isinstance(payload, dict):
            raise MalformedPayloadError(f"User entry is not an object: {payload!r}")
        metrics = payload.get("public_metrics") or {}
        followers = metrics.get("followers_count") if isinstance(metrics, dict) else None
        return cls(
            id=str(_require(payload, "id", "User")),
            username=str(_require(payload, "username", "User")),
            name=str(payload.get("name") or ""),
            created_at=parse_timestamp(_require(payload, "created_at", "User")),
            follower_count=int(followers) if followers is not None else None,
        )

    def to_identity(self) -> UserIdentity:
        return UserIdentity(
            id=self.id,
            username=self.username,
            name=self.name,
            created_at=self.created_at,
            follower_count=self.follower_count,
        )


@dataclass
class Tweet:
    id: str
    text: str
    author_id: str | None = None
    created_at: datetime | None = None
    conversation_id: str | None = None
    in_reply_to_user_id: str | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> Tweet:
        if not isinstance(payload, dict):
            raise MalformedPayloadError(f"Tweet entry is not an object: {payload!r}")
        created_at = payload.get("created_at")
        return cls(
            id=str(_require(payload, "id", "Tweet")),
            text=str(payload.get("text") or ""),
            author_id=payload.get("author_id"),
            created_at=parse_timestamp(created_at) if created_at else None,
            conversation_id=payload.get("conversation_id"),
            in_reply_to_user_id=payload.get("in_reply_to_user_id"),
        )


def _parse_users(entries: Any, context: str) -> list[TwitterUser]:
    users: list[TwitterUser] = []
    for entry in entries or []:
        try:
            users.append(TwitterUser.from_payload(entry))
        except MalformedPayloadError as e:
            logger.warning(f"Skipping malformed user in {context}: {e}")
    return users


@dataclass
class SearchPage:
    tweets: list[Tweet] = field(default_factory=list)
    users: dict[str, TwitterUser] = field(default_factory=dict)
    next_token: str | None = None
    result_count: int = 0

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> SearchPage:
        tweets: list[Tweet] = []
        for entry in payload.get("data") or []:
            try:
                tweets.append(Tweet.from_payload(entry))
            except MalformedPayloadError as e:
                logger.warning(f"Skipping malformed tweet in search page: {e}")

        includes = payload.get("includes") or {}
        users = _parse_users(includes.get("users"), "search includes")
        meta = payload.get("meta") or {}
        return cls(
            tweets=tweets,
            users={u.id: u for u in users},
            next_token=meta.get("next_token") or None,
            result_count=int(meta.get("result_count", len(tweets))),
        )

    def author_of(self, tweet: Tweet) -> TwitterUser | None:
        if tweet.author_id is None:
            return None
        return self.users.get(tweet.author_id)


@dataclass
class FollowingPage:
    users: list[TwitterUser] = field(default_factory=list)
    next_token: str | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> FollowingPage:
        meta = payload.get("meta") or {}
        return cls(
            users=_parse_users(payload.get("data"), "following list"),
            next_token=meta.get("next_token") or None,
        )
