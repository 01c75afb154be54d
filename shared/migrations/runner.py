"""Schema migrations tracked in ``schema_migrations``."""

from __future__ import annotations

import logging
from pathlib import Path

import asyncpg

logger = logging.getLogger(__name__)

VERSIONS_DIR = Path(__file__).resolve().parent / "versions"

# Arbitrary constant shared by every reputest process
_ADVISORY_LOCK_KEY = 0x7265_7075


class MigrationRunner:
    """Apply ``versions/NNN_description.sql`` files in filename order.

    Each file runs in its own transaction together with its tracking row, so a
    failed migration leaves no partial state and is retried on the next start.
    A session-level advisory lock serialises concurrent runners.
    """

    TRACKING_TABLE = "schema_migrations"

    def __init__(self, pool: asyncpg.Pool, versions_dir: Path | None = None) -> None:
        self.pool = pool
        self.versions_dir = versions_dir or VERSIONS_DIR

    def discover(self) -> list[Path]:
        return sorted(self.versions_dir.glob("*.sql"))

    async def pending(self) -> list[str]:
        """Versions on disk that have not been applied yet."""
        async with self.pool.acquire() as conn:
            await self._ensure_table(conn)
            applied = await self._applied(conn)
        return [p.stem for p in self.discover() if p.stem not in applied]

    async def run_pending(self) -> list[str]:
        """Apply every pending migration. Returns the newly applied versions."""
        sql_files = self.discover()
        if not sql_files:
            logger.info(f"No migration files found in {self.versions_dir}")
            return []

        newly_applied: list[str] = []
        async with self.pool.acquire() as conn:
            await conn.execute("SELECT pg_advisory_lock($1)", _ADVISORY_LOCK_KEY)
            try:
                await self._ensure_table(conn)
                applied = await self._applied(conn)
                for sql_path in sql_files:
                    version = sql_path.stem
                    if version in applied:
                        continue
                    logger.info(f"Applying migration {version}")
                    async with conn.transaction():
                        await conn.execute(sql_path.read_text(encoding="utf-8"))
                        await conn.execute(
                            f"INSERT INTO {self.TRACKING_TABLE} (version, name) "  # noqa: S608
                            "VALUES ($1, $2)",
                            version,
                            sql_path.name,
                        )
                    newly_applied.append(version)
            finally:
                await conn.execute("SELECT pg_advisory_unlock($1)", _ADVISORY_LOCK_KEY)

        if newly_applied:
            logger.info(f"Applied {len(newly_applied)} migration(s): {', '.join(newly_applied)}")
        else:
            logger.info("Database schema is up to date")
        return newly_applied

    async def _ensure_table(self, conn: asyncpg.Connection) -> None:
        await conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {self.TRACKING_TABLE} (
                version    TEXT PRIMARY KEY,
                name       TEXT NOT NULL,
                applied_at TIMESTAMPTZ DEFAULT NOW()
            )
            """
        )

    async def _applied(self, conn: asyncpg.Connection) -> set[str]:
        rows = await conn.fetch(f"SELECT version FROM {self.TRACKING_TABLE}")  # noqa: S608
        return {row["version"] for row in rows}
