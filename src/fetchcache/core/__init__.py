"""Core domain layer for fetchcache."""

from fetchcache.core.entities import (
    CacheConfig,
    CacheEntry,
    FetchPolicy,
    ListenerRegistration,
    RefreshEvent,
)
from fetchcache.core.exceptions import FetchCacheError, FetchExhausted
from fetchcache.core.interfaces import ICacheStore
from fetchcache.core.services import FetchCoordinator

__all__ = [
    # Entities
    "CacheConfig",
    "CacheEntry",
    "FetchPolicy",
    "ListenerRegistration",
    "RefreshEvent",
    # Errors
    "FetchCacheError",
    "FetchExhausted",
    # Interfaces
    "ICacheStore",
    # Services
    "FetchCoordinator",
]
