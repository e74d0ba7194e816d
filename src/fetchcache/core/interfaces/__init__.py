"""Core interfaces (Protocol classes) for fetchcache."""

from fetchcache.core.interfaces.cache_store import ICacheStore

__all__ = [
    "ICacheStore",
]
