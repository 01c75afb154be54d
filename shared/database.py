"""Database connection management for the reputest services.

Pooler modes (detected from the URL port):
  - Session Pooler  (port 5432) : long-lived workers, prepared statements allowed
  - Transaction Pooler (port 6543) : PgBouncer transaction mode, no prepared statements
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlparse

import asyncpg

logger = logging.getLogger(__name__)


@dataclass
class PoolConfig:
    """Database pool configuration with sensible defaults for the ingest worker."""

    min_size: int = 1
    max_size: int = 4
    timeout: float = 5.0
    command_timeout: float = 15.0
    max_inactive_connection_lifetime: float = 60.0
    max_retries: int = 3
    retry_delay: float = 2.0
    ssl: str | None = None


class DatabaseManager:
    """Owns the asyncpg pool used by every repository.

    Connection is retried with exponential backoff; ``pool`` raises until
    ``connect()`` has succeeded.
    """

    def __init__(self, database_url: str, config: PoolConfig | None = None):
        self.database_url = database_url
        self.config = config or PoolConfig()
        self._pool: asyncpg.Pool | None = None
        self._pooler_mode: str = "transaction" if ":6543" in database_url else "session"

    def _pool_kwargs(self) -> dict[str, Any]:
        cfg = self.config
        kwargs: dict[str, Any] = {
            "dsn": self.database_url,
            "max_size": cfg.max_size,
            "timeout": cfg.timeout,
            "command_timeout": cfg.command_timeout,
        }
        if cfg.ssl:
            kwargs["ssl"] = cfg.ssl

        if self._pooler_mode == "transaction":
            # PgBouncer drops idle server connections and cannot prepare statements
            kwargs.update(min_size=0, statement_cache_size=0, max_inactive_connection_lifetime=0)
        else:
            kwargs.update(
                min_size=cfg.min_size,
                statement_cache_size=100,
                max_inactive_connection_lifetime=cfg.max_inactive_connection_lifetime,
            )
        return kwargs

    def _masked_target(self) -> str:
        parsed = urlparse(self.database_url)
        return f"{parsed.hostname or 'unknown'}:{parsed.port or 5432}/{parsed.path.lstrip('/')}"

    async def connect(self) -> None:
        """Create the pool, retrying with exponential backoff."""
        if self._pool is not None:
            logger.warning("Database pool already initialized")
            return

        cfg = self.config
        pool_kwargs = self._pool_kwargs()
        logger.info(f"Connecting to {self._masked_target()} ({self._pooler_mode} pooler mode)")

        for attempt in range(1, cfg.max_retries + 1):
            try:
                self._pool = await asyncpg.create_pool(**pool_kwargs)
                async with self._pool.acquire() as conn:
                    await conn.fetchval("SELECT 1")
                logger.info(
                    f"Database pool ready (size={pool_kwargs['min_size']}-{cfg.max_size})"
                )
                return
            except (OSError, asyncpg.PostgresError, asyncio.TimeoutError) as e:
                if self._pool is not None:
                    await self._pool.close()
                    self._pool = None
                if attempt >= cfg.max_retries:
                    logger.error(
                        f"Database connection failed after {cfg.max_retries} attempts: "
                        f"{type(e).__name__}: {e}"
                    )
                    raise
                delay = cfg.retry_delay * (2 ** (attempt - 1))
                logger.warning(
                    f"Database connection attempt {attempt}/{cfg.max_retries} failed: "
                    f"{type(e).__name__}: {e}, retrying in {delay}s..."
                )
                await asyncio.sleep(delay)

    async def disconnect(self) -> None:
        """Close the pool."""
        if self._pool is None:
            return
        await self._pool.close()
        self._pool = None
        logger.info("Database pool closed")

    @property
    def pool(self) -> asyncpg.Pool:
        """Get the connection pool. Raises if not initialized."""
        if self._pool is None:
            raise RuntimeError("Database pool not initialized. Call connect() first.")
        return self._pool
