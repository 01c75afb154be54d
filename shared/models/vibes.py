"""Data models for good_vibes and megajoules records."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

# megajoules.amount is a BIGINT
MAX_TRANSFER_AMOUNT = 2**63 - 1


@dataclass
class VibeRecord:
    """``sensor`` received good vibes from ``emitter``, declared in ``tweet_id``."""

    tweet_id: str
    emitter_id: str
    sensor_id: str
    created_at: datetime


@dataclass
class TransferRecord:
    """A megajoule transfer declared in ``tweet_id``."""

    tweet_id: str
    sender_id: str
    receiver_id: str
    amount: int
    created_at: datetime

    def __post_init__(self) -> None:
        if not 0 < self.amount <= MAX_TRANSFER_AMOUNT:
            raise ValueError(f"Transfer amount must be in 1..{MAX_TRANSFER_AMOUNT}, got {self.amount}")


@dataclass
class VibeScores:
    """Number of vibe paths of length 1, 2 and 3 from an emitter to a sensor."""

    degree_one: int = 0
    degree_two: int = 0
    degree_three: int = 0
