"""Handle to identity resolution: local store first, then the API."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from reputest.twitter.client import TwitterClient
from reputest.twitter.payloads import TwitterUser
from shared.models.user import UserIdentity
from shared.repositories.user import UserRepository

logger = logging.getLogger(__name__)


class IdentityResolver:
    def __init__(self, users: UserRepository, client: TwitterClient) -> None:
        self.users = users
        self.client = client

    async def resolve(self, handle: str) -> UserIdentity | None:
        """Return the identity for *handle*, or ``None`` if the account does not exist.

        Remote hits are written to the store before returning. API failures
        propagate to the caller.
        """
        handle = handle.lstrip("@")
        identity = await self.users.find_by_handle(handle)
        if identity is not None:
            return identity

        logger.debug(f"@{handle} not in store, looking up remotely")
        user = await self.client.lookup_by_handle(handle)
        if user is None:
            return None

        identity = user.to_identity()
        await self.users.upsert_identity(identity)
        logger.info(f"Resolved @{handle} to user {identity.id}")
        return identity

    async def observe(self, users: Iterable[TwitterUser]) -> int:
        """Upsert identities seen in search includes or following lists."""
        return await self.users.upsert_identities(u.to_identity() for u in users)
