"""Data models for the access_tokens / refresh_tokens history tables."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class TokenKind(str, Enum):
    """Which history table a token row lives in."""

    ACCESS = "access"
    REFRESH = "refresh"

    @property
    def table(self) -> str:
        return f"{self.value}_tokens"


@dataclass
class TokenRecord:
    """One row of token history. The newest ``created_at`` is current."""

    id: int
    token: str
    created_at: datetime


def mask_token(token: str) -> str:
    """Log-safe rendering: first and last eight characters only."""
    if len(token) > 16:
        return f"{token[:8]}...{token[-8:]}"
    return f"{token[:4]}..."
