"""Repository for the users and following tables."""

from __future__ import annotations

import logging
from collections.abc import Iterable

import asyncpg

from shared.cache import AsyncTTLCache, cached
from shared.models.user import FollowEdge, UserIdentity

logger = logging.getLogger(__name__)

# Handles are re-resolved at most every five minutes per process.
_user_by_handle_cache = AsyncTTLCache(maxsize=512, ttl=300)

_COLUMNS = "id, username, name, created_at, follower_count"

_UPSERT_SQL = """
    INSERT INTO users (id, username, name, created_at, follower_count)
    VALUES ($1, $2, $3, $4, $5)
    ON CONFLICT (id) DO UPDATE SET
        username       = EXCLUDED.username,
        name           = EXCLUDED.name,
        created_at     = EXCLUDED.created_at,
        follower_count = COALESCE(EXCLUDED.follower_count, users.follower_count),
        updated_at     = NOW()
"""


def _handle_key(handle: str) -> str:
    return f"user:{handle.lstrip('@').lower()}"


class UserRepository:
    """Pure SQL operations for users / following."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    # ==================== Identity Operations ====================

    @cached(cache=_user_by_handle_cache, key_func=lambda self, handle: _handle_key(handle))
    async def find_by_handle(self, handle: str) -> UserIdentity | None:
        """Look up a user by handle, case-insensitively."""
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {_COLUMNS} FROM users "
                "WHERE LOWER(username) = LOWER($1) "
                "ORDER BY updated_at DESC LIMIT 1",
                handle.lstrip("@"),
            )
            if not row:
                return None
            return UserIdentity(**dict(row))

    async def upsert_identity(self, identity: UserIdentity) -> None:
        """Insert or refresh one user row."""
        await self.upsert_identities([identity])

    async def upsert_identities(self, identities: Iterable[UserIdentity]) -> int:
        """Insert or refresh many user rows in one round trip. Returns the count."""
        rows = [
            (u.id, u.username, u.name, u.created_at, u.follower_count) for u in identities
        ]
        if not rows:
            return 0
        async with self.pool.acquire() as conn:
            await conn.executemany(_UPSERT_SQL, rows)
        for row in rows:
            _user_by_handle_cache.invalidate(_handle_key(row[1]))
        logger.debug(f"Upserted {len(rows)} user(s)")
        return len(rows)

    # ==================== Following Operations ====================

    async def upsert_following(self, follower_id: str, followed_ids: Iterable[str]) -> int:
        """Record follower -> followed edges. Existing edges are left untouched."""
        edges = [FollowEdge(follower=follower_id, followed=f) for f in followed_ids]
        if not edges:
            return 0
        async with self.pool.acquire() as conn:
            await conn.executemany(
                """
                INSERT INTO following (follower, followed)
                VALUES ($1, $2)
                ON CONFLICT (follower, followed) DO NOTHING
                """,
                [(e.follower, e.followed) for e in edges],
            )
        return len(edges)

    async def count_followed_with_vibes(self, follower_id: str, sensor_id: str) -> int:
        """How many accounts *follower_id* follows have sent good vibes to *sensor_id*."""
        async with self.pool.acquire() as conn:
            count = await conn.fetchval(
                """
                SELECT COUNT(*)
                FROM following f
                JOIN good_vibes gv ON gv.emitter_id = f.followed
                WHERE f.follower = $1 AND gv.sensor_id = $2
                """,
                follower_id,
                sensor_id,
            )
            return int(count or 0)
