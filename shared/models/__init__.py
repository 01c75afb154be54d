"""Shared data models for the reputest store."""

from .token import TokenKind, TokenRecord, mask_token
from .user import FollowEdge, UserIdentity
from .vibes import MAX_TRANSFER_AMOUNT, TransferRecord, VibeRecord, VibeScores

__all__ = [
    "MAX_TRANSFER_AMOUNT",
    "FollowEdge",
    "TokenKind",
    "TokenRecord",
    "TransferRecord",
    "UserIdentity",
    "VibeRecord",
    "VibeScores",
    "mask_token",
]
