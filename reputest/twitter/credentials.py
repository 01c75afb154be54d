"""In-memory OAuth2 credential with compare-and-swap replacement.

The store is the single writer of the access/refresh token history: every
successful replacement is appended to the database before it becomes visible
to other callers.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace

from reputest.core.errors import ConfigurationError
from shared.models.token import TokenKind, mask_token
from shared.repositories.token import TokenRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Credential:
    access_token: str
    refresh_token: str | None = None
    client_id: str | None = None
    client_secret: str | None = None

    @property
    def can_refresh(self) -> bool:
        return bool(self.refresh_token and self.client_id and self.client_secret)

    @property
    def authorization(self) -> str:
        return f"Bearer {self.access_token}"

    def __repr__(self) -> str:
        return (
            f"Credential(access_token={mask_token(self.access_token)!r}, "
            f"can_refresh={self.can_refresh})"
        )


class CredentialStore:
    def __init__(self, credential: Credential, tokens: TokenRepository | None = None) -> None:
        self._current = credential
        self._tokens = tokens
        self._lock = asyncio.Lock()

    @classmethod
    async def load(
        cls,
        tokens: TokenRepository,
        client_id: str | None = None,
        client_secret: str | None = None,
    ) -> CredentialStore:
        """Build a store from the newest persisted tokens."""
        access_token = await tokens.get_latest_token(TokenKind.ACCESS)
        if not access_token:
            raise ConfigurationError("No access token stored; authorize the bot account first")
        refresh_token = await tokens.get_latest_token(TokenKind.REFRESH)

        credential = Credential(
            access_token=access_token,
            refresh_token=refresh_token,
            client_id=client_id or None,
            client_secret=client_secret or None,
        )
        if not credential.can_refresh:
            logger.warning("Token refresh disabled: refresh token or client credentials missing")
        return cls(credential, tokens)

    def current(self) -> Credential:
        return self._current

    async def replace(self, expected: Credential, new: Credential) -> bool:
        """Install *new* only if *expected* is still current."""
        async with self._lock:
            if self._current is not expected:
                return False
            await self._install(new)
            return True

    async def refresh_from(
        self,
        stale: Credential,
        refresh: Callable[[Credential], Awaitable[tuple[str, str | None]]],
    ) -> Credential:
        """Replace *stale* using *refresh*, at most once per stale credential.

        A caller that finds the credential already replaced by a concurrent
        refresh gets the winner's credential without calling *refresh*.
        *refresh* returns ``(access_token, refresh_token_or_None)``.
        """
        async with self._lock:
            if self._current is not stale:
                logger.debug("Credential already refreshed by another caller")
                return self._current

            access_token, refresh_token = await refresh(stale)
            new = replace(
                stale,
                access_token=access_token,
                refresh_token=refresh_token or stale.refresh_token,
            )
            await self._install(new)
            return new

    async def _install(self, new: Credential) -> None:
        old = self._current
        if self._tokens is not None:
            try:
                await self._tokens.save_token(TokenKind.ACCESS, new.access_token)
                if new.refresh_token and new.refresh_token != old.refresh_token:
                    await self._tokens.save_token(TokenKind.REFRESH, new.refresh_token)
            except Exception as e:
                # The refresh already succeeded upstream; the old token is now invalid
                logger.warning(f"Failed to persist refreshed tokens, keeping them in memory: {e}")
        self._current = new
        logger.info(f"Access token replaced (masked: {mask_token(new.access_token)})")
