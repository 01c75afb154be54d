"""In-process TTL cache for repository reads.

Uses cachetools.TTLCache; each process owns its own instances. Unlike a
read-through fallback cache, failures of the wrapped call are never masked:
the exception propagates and nothing is cached.
"""

import asyncio
import functools
import logging
from collections.abc import Callable
from typing import Any, TypeVar

from cachetools import TTLCache  # type: ignore[import-untyped]

logger = logging.getLogger(__name__)

# Sentinel distinguishing "not in cache" from a cached None
MISSING = object()

F = TypeVar("F", bound=Callable[..., Any])


class AsyncTTLCache:
    """TTL cache with per-key locks so concurrent misses hit the store once."""

    def __init__(self, maxsize: int = 128, ttl: float = 60.0):
        self._maxsize = maxsize
        self._cache: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl)
        self._locks: dict[str, asyncio.Lock] = {}

    def lock_for(self, key: str) -> asyncio.Lock:
        if key not in self._locks:
            if len(self._locks) > self._maxsize * 2:
                for k in [k for k in self._locks if k not in self._cache]:
                    del self._locks[k]
            self._locks[key] = asyncio.Lock()
        return self._locks[key]

    def get(self, key: str) -> Any:
        """Return the cached value or ``MISSING``."""
        return self._cache.get(key, MISSING)

    def set(self, key: str, value: Any) -> None:
        self._cache[key] = value

    def invalidate(self, key: str) -> None:
        self._cache.pop(key, None)

    def clear(self) -> None:
        self._cache.clear()

    @property
    def size(self) -> int:
        return len(self._cache)


def cached(
    cache: AsyncTTLCache,
    key_func: Callable[..., str],
    *,
    cache_none: bool = False,
):
    """Cache the result of an async repository method.

    ``key_func`` receives the same arguments as the decorated function.
    ``None`` results are not cached unless *cache_none* is set, so a miss
    followed by an upsert is visible immediately.
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            cache_key = key_func(*args, **kwargs)

            result = cache.get(cache_key)
            if result is not MISSING:
                return result

            async with cache.lock_for(cache_key):
                result = cache.get(cache_key)
                if result is not MISSING:
                    return result

                result = await func(*args, **kwargs)
                if result is not None or cache_none:
                    cache.set(cache_key, result)
                return result

        wrapper.cache = cache  # type: ignore[attr-defined]
        return wrapper  # type: ignore[return-value]

    return decorator
