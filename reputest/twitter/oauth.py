"""OAuth 2.0 refresh-token grant against the X token endpoint."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from reputest.core.errors import RefreshFailedError, truncate_body
from reputest.twitter.credentials import Credential

logger = logging.getLogger(__name__)

TOKEN_PATH = "/2/oauth2/token"


@dataclass
class TokenRefreshResult:
    """Result of a token refresh operation."""

    access_token: str
    refresh_token: str | None = None


class TokenRefresher:
    def __init__(self, http: httpx.AsyncClient, base_url: str = "https://api.x.com") -> None:
        self._http = http
        self.token_url = f"{base_url.rstrip('/')}{TOKEN_PATH}"

    async def refresh(self, credential: Credential) -> TokenRefreshResult:
        """Exchange the refresh token for a new access token.

        X may rotate the refresh token too; ``refresh_token`` is ``None`` when
        it did not. Never retried: a failure is final for the caller.
        """
        if not credential.can_refresh:
            raise RefreshFailedError("Refresh token or client credentials are missing")

        try:
            response = await self._http.post(
                self.token_url,
                data={
                    "grant_type": "refresh_token",
                    "refresh_token": credential.refresh_token,
                    "client_id": credential.client_id,
                },
                auth=(credential.client_id, credential.client_secret),  # type: ignore[arg-type]
            )
        except httpx.HTTPError as e:
            raise RefreshFailedError(f"Token refresh request failed: {e}") from e

        if not response.is_success:
            logger.error(
                f"Token refresh failed with status {response.status_code}: "
                f"{truncate_body(response.text)}"
            )
            raise RefreshFailedError(
                f"Token refresh failed with status {response.status_code}",
                status=response.status_code,
                body=response.text,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise RefreshFailedError(
                "Token refresh response is not JSON", status=response.status_code, body=response.text
            ) from e

        access_token = data.get("access_token") if isinstance(data, dict) else None
        if not access_token:
            raise RefreshFailedError(
                "No access_token in refresh response",
                status=response.status_code,
                body=response.text,
            )

        logger.debug("Successfully refreshed access token")
        return TokenRefreshResult(
            access_token=access_token,
            refresh_token=data.get("refresh_token") or None,
        )

    async def __call__(self, credential: Credential) -> tuple[str, str | None]:
        result = await self.refresh(credential)
        return result.access_token, result.refresh_token
