"""Abstract base class for cache service providers.

Defines the contract for the key-value cache the embedding client uses to
avoid re-embedding identical text.  Implementations may use an in-memory
TTL cache, Redis, or any other backend; callers must treat every lookup as
best-effort, a miss is always handled as if there were no cache.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class ICacheProvider(ABC):
    """Contract for key-value cache services.

    All operations are async to allow for network-backed stores (e.g. Redis)
    without blocking the event loop.
    """

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Retrieve the value stored under *key*.

        Parameters
        ----------
        key:
            The cache key to look up.

        Returns
        -------
        Any or None
            The cached value if present and not expired; ``None`` otherwise.
        """

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        """Store *value* under *key* using the provider's time-to-live.

        Parameters
        ----------
        key:
            The cache key.
        value:
            The value to store.
        """

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove the entry stored under *key* (no-op if absent)."""

    @abstractmethod
    async def clear(self) -> None:
        """Drop every entry."""

    @abstractmethod
    def size(self) -> int:
        """Return the number of live entries."""
