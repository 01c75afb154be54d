"""Data models for the users and following tables."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass
class UserIdentity:
    """X user as stored in ``users``. ``id`` is assigned upstream."""

    id: str
    username: str
    name: str
    created_at: datetime
    follower_count: int | None = None


@dataclass
class FollowEdge:
    follower: str
    followed: str
