"""Infrastructure layer implementations for fetchcache."""

from fetchcache.infrastructure.stores import InMemoryCacheStore

__all__ = [
    "InMemoryCacheStore",
]
