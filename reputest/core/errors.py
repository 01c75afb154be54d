"""Exception hierarchy for the ingestion pipeline."""

from __future__ import annotations

BODY_PREVIEW_LIMIT = 200


def truncate_body(body: str, limit: int = BODY_PREVIEW_LIMIT) -> str:
    """Shorten a response body for logs and error messages."""
    if len(body) <= limit:
        return body
    return f"{body[:limit]}... [truncated, {len(body)} total bytes]"


class ReputestError(Exception):
    """Base class for all reputest errors."""


class ConfigurationError(ReputestError):
    """Startup cannot proceed (no stored token, bad encryption key, ...)."""


class AuthUnavailableError(ReputestError):
    """The access token was rejected and no refresh credentials are configured."""

    def __init__(self, operation: str, body: str) -> None:
        self.operation = operation
        self.body = body
        super().__init__(
            f"{operation}: access token rejected (401) and no refresh credentials "
            f"are configured: {truncate_body(body)}"
        )


class UpstreamError(ReputestError):
    """The API answered with a non-success status."""

    def __init__(self, operation: str, status: int, body: str = "") -> None:
        self.operation = operation
        self.status = status
        self.body = body
        super().__init__(f"{operation} failed with status {status}: {truncate_body(body)}")


class RefreshFailedError(ReputestError):
    """The OAuth2 token endpoint refused to issue a new access token."""

    def __init__(self, message: str, status: int | None = None, body: str = "") -> None:
        self.status = status
        self.body = body
        super().__init__(message)


class TransportError(ReputestError):
    """The request never produced an HTTP response."""


class MalformedPayloadError(ReputestError):
    """A response body is missing required fields or is not valid JSON."""
