"""Domain entities for fetchcache."""

from fetchcache.core.entities.cache_config import CacheConfig, FetchPolicy
from fetchcache.core.entities.cache_entry import CacheEntry
from fetchcache.core.entities.listener import (
    Listener,
    ListenerRegistration,
    RefreshEvent,
)

__all__ = [
    "CacheEntry",
    "CacheConfig",
    "FetchPolicy",
    "Listener",
    "ListenerRegistration",
    "RefreshEvent",
]
