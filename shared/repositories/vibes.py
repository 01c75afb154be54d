"""Repository for good_vibes, megajoules and processed_requests tables."""

from __future__ import annotations

import logging

import asyncpg

from shared.models.vibes import TransferRecord, VibeRecord, VibeScores

logger = logging.getLogger(__name__)


class VibesRepository:
    """Pure SQL operations for vibe declarations, transfers and reply claims.

    Inserts use ``ON CONFLICT DO NOTHING``: losing a race against a concurrent
    poll returns ``False`` instead of raising.
    """

    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    # ==================== Good Vibes ====================

    async def vibe_exists_for_message(self, tweet_id: str) -> bool:
        async with self.pool.acquire() as conn:
            return bool(
                await conn.fetchval(
                    "SELECT EXISTS(SELECT 1 FROM good_vibes WHERE tweet_id = $1)", tweet_id
                )
            )

    async def vibe_exists_for_pair(self, emitter_id: str, sensor_id: str) -> bool:
        async with self.pool.acquire() as conn:
            return bool(
                await conn.fetchval(
                    "SELECT EXISTS(SELECT 1 FROM good_vibes "
                    "WHERE emitter_id = $1 AND sensor_id = $2)",
                    emitter_id,
                    sensor_id,
                )
            )

    async def originating_message_id(self, emitter_id: str, sensor_id: str) -> str | None:
        """Tweet id that first declared vibes from *emitter_id* to *sensor_id*."""
        async with self.pool.acquire() as conn:
            return await conn.fetchval(
                "SELECT tweet_id FROM good_vibes WHERE emitter_id = $1 AND sensor_id = $2",
                emitter_id,
                sensor_id,
            )

    async def insert_vibe(self, record: VibeRecord) -> bool:
        """Insert a declaration. Returns False if the tweet or the pair already exists."""
        async with self.pool.acquire() as conn:
            inserted = await conn.fetchval(
                """
                INSERT INTO good_vibes (tweet_id, emitter_id, sensor_id, created_at)
                VALUES ($1, $2, $3, $4)
                ON CONFLICT DO NOTHING
                RETURNING tweet_id
                """,
                record.tweet_id,
                record.emitter_id,
                record.sensor_id,
                record.created_at,
            )
        if inserted is None:
            logger.info(f"Good vibes for tweet {record.tweet_id} already stored")
            return False
        logger.info(
            f"Stored good vibes: tweet {record.tweet_id} from {record.emitter_id} "
            f"to {record.sensor_id}"
        )
        return True

    async def count_vibes(self) -> int:
        async with self.pool.acquire() as conn:
            return int(await conn.fetchval("SELECT COUNT(*) FROM good_vibes") or 0)

    async def vibe_scores(self, sensor_id: str, emitter_id: str) -> VibeScores:
        """Count vibe paths of length 1..3 from *emitter_id* to *sensor_id*."""
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                SELECT
                    (SELECT COUNT(*) FROM good_vibes
                      WHERE emitter_id = $1 AND sensor_id = $2) AS degree_one,
                    (SELECT COUNT(*) FROM good_vibes g1
                       JOIN good_vibes g2 ON g1.sensor_id = g2.emitter_id
                      WHERE g1.emitter_id = $1 AND g2.sensor_id = $2) AS degree_two,
                    (SELECT COUNT(*) FROM good_vibes g1
                       JOIN good_vibes g2 ON g1.sensor_id = g2.emitter_id
                       JOIN good_vibes g3 ON g2.sensor_id = g3.emitter_id
                      WHERE g1.emitter_id = $1 AND g3.sensor_id = $2) AS degree_three
                """,
                emitter_id,
                sensor_id,
            )
        return VibeScores(
            degree_one=int(row["degree_one"]),
            degree_two=int(row["degree_two"]),
            degree_three=int(row["degree_three"]),
        )

    # ==================== Megajoules ====================

    async def transfer_exists_for_message(self, tweet_id: str) -> bool:
        async with self.pool.acquire() as conn:
            return bool(
                await conn.fetchval(
                    "SELECT EXISTS(SELECT 1 FROM megajoules WHERE tweet_id = $1)", tweet_id
                )
            )

    async def insert_transfer(self, record: TransferRecord) -> bool:
        """Insert a transfer. Returns False if the tweet was already recorded."""
        async with self.pool.acquire() as conn:
            inserted = await conn.fetchval(
                """
                INSERT INTO megajoules (tweet_id, sender_id, receiver_id, amount, created_at)
                VALUES ($1, $2, $3, $4, $5)
                ON CONFLICT (tweet_id) DO NOTHING
                RETURNING tweet_id
                """,
                record.tweet_id,
                record.sender_id,
                record.receiver_id,
                record.amount,
                record.created_at,
            )
        if inserted is None:
            logger.info(f"Megajoule transfer for tweet {record.tweet_id} already stored")
            return False
        logger.info(
            f"Stored megajoule transfer: tweet {record.tweet_id}, {record.amount} "
            f"from {record.sender_id} to {record.receiver_id}"
        )
        return True

    # ==================== Reply Claims ====================

    async def is_claimed(self, tweet_id: str) -> bool:
        async with self.pool.acquire() as conn:
            return bool(
                await conn.fetchval(
                    "SELECT EXISTS(SELECT 1 FROM processed_requests WHERE tweet_id = $1)", tweet_id
                )
            )

    async def claim_request(self, tweet_id: str, kind: str) -> bool:
        """Mark *tweet_id* as answered. Returns False if it was claimed before."""
        async with self.pool.acquire() as conn:
            claimed = await conn.fetchval(
                """
                INSERT INTO processed_requests (tweet_id, kind)
                VALUES ($1, $2)
                ON CONFLICT (tweet_id) DO NOTHING
                RETURNING tweet_id
                """,
                tweet_id,
                kind,
            )
        return claimed is not None
