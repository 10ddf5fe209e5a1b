"""Cache providers.

MemoryCacheProvider is a process-local TTL cache; the embedding client uses
it to skip provider calls for text it has embedded recently.  A shared
cache (e.g. Redis) can replace it by implementing ICacheProvider.
"""

from src.providers.cache.memory_cache import MemoryCacheProvider

__all__ = ["MemoryCacheProvider"]
