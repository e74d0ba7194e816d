"""fetchcache - Client-side cache for asynchronous fetches.

A small asyncio library that memoizes the results of fetch coroutines
by key, serves them while they are within their TTL, retries failed
fetches, and notifies listeners when a key is invalidated so that
they can refresh.

Example:
    from fetchcache import FetchCoordinator, FetchPolicy

    async def load_user():
        return await api.get_user("1")

    async with FetchCoordinator() as coordinator:
        user = await coordinator.fetch(
            "user:1", load_user, FetchPolicy(ttl_seconds=60)
        )

        # The first listener of a key refetches, the others are told
        # once the cache holds a new value.
        async def on_refetch(event):
            await coordinator.fetch("user:1", load_user)

        coordinator.register_listener("user:1", on_refetch)
        await coordinator.invalidate("user:1")

Keeping a value refreshed:
    from fetchcache import QuerySubscriber

    async with QuerySubscriber(coordinator, "user:1", load_user) as user:
        if user.is_data_loaded:
            print(user.data)

Invalidating after a mutation:
    from fetchcache import invalidates

    @invalidates(coordinator, key="user:{user_id}")
    async def rename_user(user_id: str, name: str) -> dict:
        return await api.patch_user(user_id, name=name)
"""

from fetchcache.core.entities import (
    CacheConfig,
    CacheEntry,
    FetchPolicy,
    Listener,
    ListenerRegistration,
    RefreshEvent,
)
from fetchcache.core.exceptions import FetchCacheError, FetchExhausted
from fetchcache.core.interfaces import ICacheStore
from fetchcache.core.services import FetchCoordinator
from fetchcache.decorators import cached, invalidates
from fetchcache.infrastructure import InMemoryCacheStore
from fetchcache.subscriber import QuerySubscriber

__version__ = "0.1.0"

__all__ = [
    # Version
    "__version__",
    # Core entities
    "CacheConfig",
    "CacheEntry",
    "FetchPolicy",
    "Listener",
    "ListenerRegistration",
    "RefreshEvent",
    # Errors
    "FetchCacheError",
    "FetchExhausted",
    # Core interfaces
    "ICacheStore",
    # Core services
    "FetchCoordinator",
    # Infrastructure implementations
    "InMemoryCacheStore",
    # Refresh scheduling
    "QuerySubscriber",
    # Decorators
    "cached",
    "invalidates",
]
