"""Repository for the access_tokens and refresh_tokens history tables."""

from __future__ import annotations

import logging

import asyncpg

from shared.crypto import TokenCipher
from shared.models.token import TokenKind, TokenRecord, mask_token

logger = logging.getLogger(__name__)


class TokenRepository:
    """Append-only token history. The row with the newest ``created_at`` is current.

    When a ``TokenCipher`` is supplied, tokens are encrypted before insert and
    decrypted on read.
    """

    def __init__(self, pool: asyncpg.Pool, cipher: TokenCipher | None = None) -> None:
        self.pool = pool
        self.cipher = cipher

    async def get_latest_record(self, kind: TokenKind) -> TokenRecord | None:
        """Return the newest row of *kind*, decrypted."""
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT id, token, created_at FROM {kind.table} "  # noqa: S608
                "ORDER BY created_at DESC, id DESC LIMIT 1"
            )
        if not row:
            logger.warning(f"No {kind.value} token found in database")
            return None

        record = TokenRecord(**dict(row))
        if self.cipher is not None:
            record.token = self.cipher.decrypt(record.token)
        logger.debug(
            f"Loaded {kind.value} token created at {record.created_at} "
            f"(masked: {mask_token(record.token)})"
        )
        return record

    async def get_latest_token(self, kind: TokenKind) -> str | None:
        record = await self.get_latest_record(kind)
        return record.token if record else None

    async def save_token(self, kind: TokenKind, token: str) -> None:
        """Append a new row; older rows are kept for audit."""
        if not token:
            raise ValueError(f"Refusing to store an empty {kind.value} token")

        stored = self.cipher.encrypt(token) if self.cipher is not None else token
        async with self.pool.acquire() as conn:
            await conn.execute(
                f"INSERT INTO {kind.table} (token) VALUES ($1)",  # noqa: S608
                stored,
            )
        logger.info(f"Stored new {kind.value} token (masked: {mask_token(token)})")
