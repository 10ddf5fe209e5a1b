"""In-memory cache provider using cachetools.TTLCache.

Process-local cache owned by whoever constructs it (the embedding client in
practice), so tests can build isolated instances.  Entries expire after a
fixed time-to-live; when the cache is full the least recently used live
entry is evicted first.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any

import structlog
from cachetools import TTLCache

from src.interfaces.cache_provider import ICacheProvider

logger = structlog.get_logger(logger_name=__name__)


class MemoryCacheProvider(ICacheProvider):
    """In-memory TTL cache backed by ``cachetools.TTLCache``.

    Parameters
    ----------
    max_size:
        Maximum number of entries kept before eviction.
    ttl:
        Time-to-live in seconds for every entry.
    timer:
        Clock used for expiry, ``time.monotonic`` by default.  Tests pass a
        fake clock to move past the TTL without sleeping.
    """

    def __init__(
        self,
        max_size: int = 1000,
        ttl: float = 300,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl
        self._cache: TTLCache[str, Any] = TTLCache(maxsize=max_size, ttl=ttl, timer=timer)

    @property
    def ttl(self) -> float:
        return self._ttl

    @property
    def max_size(self) -> int:
        return int(self._cache.maxsize)

    # ------------------------------------------------------------------
    # ICacheProvider implementation
    # ------------------------------------------------------------------

    async def get(self, key: str) -> Any | None:
        """Retrieve the cached value for *key*, or ``None`` if missing/expired."""
        value = self._cache.get(key)
        logger.debug("cache_hit" if value is not None else "cache_miss", key=key)
        return value

    async def set(self, key: str, value: Any) -> None:
        self._cache[key] = value
        logger.debug("cache_set", key=key, size=len(self._cache))

    async def delete(self, key: str) -> None:
        self._cache.pop(key, None)

    async def clear(self) -> None:
        self._cache.clear()

    def size(self) -> int:
        self._cache.expire()
        return len(self._cache)
