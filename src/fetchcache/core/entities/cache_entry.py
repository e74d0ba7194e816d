"""Cache entry entity."""

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class CacheEntry:
    """Immutable cache entry value object.

    Holds a fetched value together with the time it was inserted.
    The timestamp comes from the owning store's timer, so it is only
    comparable with readings of that same timer.
    """

    key: str
    value: Any
    inserted_at: float

    def age(self, now: float) -> float:
        """Seconds elapsed since the entry was inserted.

        Args:
            now: Current reading of the store's timer.

        Returns:
            The age of the entry in seconds.
        """
        return now - self.inserted_at

    def is_fresh(self, now: float, ttl_seconds: float) -> bool:
        """Check whether the entry is still within its time-to-live.

        An entry whose age equals the TTL is already stale.

        Args:
            now: Current reading of the store's timer.
            ttl_seconds: Time-to-live in seconds.

        Returns:
            True if the entry can be served without refetching.
        """
        return self.age(now) < ttl_seconds

    @classmethod
    def create(cls, key: str, value: Any, inserted_at: float) -> "CacheEntry":
        """Factory method to create a new cache entry.

        Args:
            key: The cache key.
            value: The value to cache.
            inserted_at: Timer reading at insertion.

        Returns:
            A new CacheEntry instance.
        """
        return cls(key=key, value=value, inserted_at=inserted_at)
