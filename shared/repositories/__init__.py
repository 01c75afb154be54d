"""Shared repository layer for the reputest store."""

from .token import TokenRepository
from .user import UserRepository
from .vibes import VibesRepository

__all__ = [
    "TokenRepository",
    "UserRepository",
    "VibesRepository",
]
