"""Cache store implementations."""

from fetchcache.infrastructure.stores.memory import InMemoryCacheStore

__all__ = ["InMemoryCacheStore"]
