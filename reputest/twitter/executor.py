"""Authenticated request execution with a single refresh-and-retry on 401."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import httpx

from reputest.core.errors import (
    AuthUnavailableError,
    MalformedPayloadError,
    TransportError,
    UpstreamError,
    truncate_body,
)
from reputest.twitter.credentials import Credential, CredentialStore
from reputest.twitter.oauth import TokenRefresher

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RequestTemplate:
    """Everything needed to rebuild a request; the auth header is added per attempt."""

    method: str
    url: str
    params: Mapping[str, str] | None = None
    json: Any = None


class AuthenticatedExecutor:
    def __init__(
        self,
        http: httpx.AsyncClient,
        credentials: CredentialStore,
        refresher: TokenRefresher,
    ) -> None:
        self._http = http
        self.credentials = credentials
        self.refresher = refresher

    async def execute(self, template: RequestTemplate, operation: str) -> str:
        """Send *template* and return the response body of a 2xx answer.

        A 401 is followed by at most one token refresh and one resend, and
        only when the credential can be refreshed.
        """
        credential = self.credentials.current()
        response = await self._send(template, credential, operation)
        if response.is_success:
            return response.text

        if response.status_code == 401:
            if not credential.can_refresh:
                logger.error(f"{operation}: access token rejected and refresh is not possible")
                raise AuthUnavailableError(operation, response.text)

            logger.info(f"{operation}: access token expired, refreshing")
            # RefreshFailedError propagates unchanged
            credential = await self.credentials.refresh_from(credential, self.refresher)
            response = await self._send(template, credential, operation)
            if response.is_success:
                return response.text

        logger.warning(
            f"{operation} failed with status {response.status_code}: "
            f"{truncate_body(response.text)}"
        )
        raise UpstreamError(operation, response.status_code, response.text)

    async def execute_json(self, template: RequestTemplate, operation: str) -> dict[str, Any]:
        body = await self.execute(template, operation)
        try:
            data = json.loads(body)
        except json.JSONDecodeError as e:
            raise MalformedPayloadError(f"{operation}: response is not JSON: {e}") from e
        if not isinstance(data, dict):
            raise MalformedPayloadError(f"{operation}: expected a JSON object")
        return data

    async def _send(
        self, template: RequestTemplate, credential: Credential, operation: str
    ) -> httpx.Response:
        try:
            return await self._http.request(
                template.method,
                template.url,
                params=template.params,
                json=template.json,
                headers={"Authorization": credential.authorization},
            )
        except httpx.HTTPError as e:
            logger.error(f"{operation}: transport error: {e}")
            raise TransportError(f"{operation}: {e}") from e
