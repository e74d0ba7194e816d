"""Fetch coordinator - main orchestrator for cached fetches."""

import asyncio
import functools
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from fetchcache.core.entities.cache_config import CacheConfig, FetchPolicy
from fetchcache.core.entities.cache_entry import CacheEntry
from fetchcache.core.entities.listener import (
    Listener,
    ListenerRegistration,
    RefreshEvent,
)
from fetchcache.core.exceptions import FetchExhausted
from fetchcache.core.interfaces.cache_store import ICacheStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

ListenerErrorHandler = Callable[[str, BaseException], None]


def _log_listener_error(key: str, error: BaseException) -> None:
    logger.error("Listener for %s failed on refetch", key, exc_info=error)


class FetchCoordinator:
    """Domain service that applies the fetch, retry and TTL policy.

    This is the main entry point for cached fetches. It wraps a cache
    store and drives the invalidation protocol over the store's
    listeners. One coordinator is created explicitly and passed to
    every caller that should share its cache.
    """

    def __init__(
        self,
        store: ICacheStore | None = None,
        config: CacheConfig | None = None,
        on_listener_error: ListenerErrorHandler | None = None,
    ) -> None:
        """Initialize the fetch coordinator.

        Args:
            store: The cache store. A fresh InMemoryCacheStore if not provided.
            config: Optional configuration. Uses defaults if not provided.
            on_listener_error: Called with the key and the error whenever a
                detached secondary listener fails. Logs by default.
        """
        if store is None:
            from fetchcache.infrastructure.stores.memory import InMemoryCacheStore

            store = InMemoryCacheStore()

        self._store = store
        self._config = config or CacheConfig()
        self._on_listener_error = on_listener_error or _log_listener_error

        self._notifications: set[asyncio.Task[None]] = set()
        self._in_flight: dict[str, asyncio.Task[Any]] = {}

        # Statistics
        self._hits = 0
        self._misses = 0
        self._retries = 0
        self._failures = 0

    @property
    def config(self) -> CacheConfig:
        """Get the coordinator configuration."""
        return self._config

    @property
    def store(self) -> ICacheStore:
        """Get the underlying cache store."""
        return self._store

    @property
    def stats(self) -> dict[str, int]:
        """Get fetch statistics.

        Returns:
            Dictionary with hits, misses, retries, failures and total lookups.
        """
        return {
            "hits": self._hits,
            "misses": self._misses,
            "retries": self._retries,
            "failures": self._failures,
            "total": self._hits + self._misses,
        }

    @property
    def pending_notifications(self) -> int:
        """Number of detached listener notifications still running."""
        return len(self._notifications)

    def reset_stats(self) -> None:
        self._hits = 0
        self._misses = 0
        self._retries = 0
        self._failures = 0

    def get(self, key: str) -> CacheEntry | None:
        """Return the stored entry for a key, fresh or not."""
        return self._store.get(key)

    def set(self, key: str, value: Any) -> CacheEntry:
        """Store a value for a key, stamped with the current time."""
        return self._store.set(key, value)

    def register_listener(self, key: str, callback: Listener) -> ListenerRegistration:
        """Register a coroutine function to be notified on invalidation.

        The first listener registered for a key is its primary listener.

        Returns:
            A registration whose ``remove()`` detaches the listener.
        """
        return self._store.register_listener(key, callback)

    async def fetch(
        self,
        key: str,
        operation: Callable[[], Awaitable[T]],
        policy: FetchPolicy | None = None,
        attempt: int = 0,
    ) -> T:
        """Return the value for a key, fetching it when needed.

        A fresh entry is returned without calling ``operation``.
        Otherwise ``operation`` is awaited and its result stored. A
        failing operation is retried up to ``policy.max_retries`` times,
        re-checking freshness before each retry so that a value written
        by a concurrent caller ends the loop early.

        Args:
            key: The cache key.
            operation: Zero-argument coroutine function producing the value.
            policy: TTL and retry options. Uses the config defaults if None.
            attempt: Number of attempts already made.

        Returns:
            The cached or freshly fetched value.

        Raises:
            FetchExhausted: If every allowed attempt failed. The store is
                left unchanged.
        """
        policy = policy or self._config.policy()

        entry = self._fresh_entry(key, policy)
        if entry is not None:
            self._hits += 1
            return entry.value  # type: ignore[no-any-return]

        self._misses += 1

        if self._config.single_flight:
            return await self._join_in_flight(key, operation, policy, attempt)
        return await self._fetch_with_retries(key, operation, policy, attempt)

    async def invalidate(self, key: str) -> None:
        """Drop the entry for a key and notify its listeners.

        The primary listener is awaited first. Secondary listeners are
        only notified if the primary left a new entry in the store, and
        then as detached tasks that this call does not wait for.

        Args:
            key: The cache key to invalidate.

        Raises:
            Exception: Whatever the primary listener raised. Secondary
                listeners are not notified in that case.
        """
        listeners = self._store.invalidate(key)
        logger.debug("Invalidated %s with %d listener(s)", key, len(listeners))

        if not listeners:
            return

        primary, *rest = listeners
        await primary(RefreshEvent.REFETCH)

        if self._store.get(key) is None:
            logger.debug(
                "Primary listener left no entry for %s, skipping %d secondary listener(s)",
                key,
                len(rest),
            )
            return

        for listener in rest:
            if listener.active:
                self._notify_detached(listener)

    async def aclose(self) -> None:
        """Wait for detached notifications and clear the store."""
        if self._notifications:
            await asyncio.gather(*self._notifications, return_exceptions=True)
        self._store.clear()

    async def __aenter__(self) -> "FetchCoordinator":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    def _fresh_entry(self, key: str, policy: FetchPolicy) -> CacheEntry | None:
        """Return the entry for a key if it is within the policy's TTL."""
        entry = self._store.get(key)
        if entry is None:
            logger.debug("No existing cache exists for %s", key)
            return None
        if not entry.is_fresh(self._store.timer(), policy.ttl_seconds):
            logger.debug("Cache time elapsed for %s", key)
            return None
        logger.debug("Found cache for %s", key)
        return entry

    async def _fetch_with_retries(
        self,
        key: str,
        operation: Callable[[], Awaitable[T]],
        policy: FetchPolicy,
        first_attempt: int,
    ) -> T:
        last_error: Exception | None = None

        for attempt in range(first_attempt, policy.max_retries + 1):
            if attempt > first_attempt:
                entry = self._fresh_entry(key, policy)
                if entry is not None:
                    return entry.value  # type: ignore[no-any-return]
                self._retries += 1

            try:
                result = await operation()
            except Exception as e:
                last_error = e
                logger.warning("Fetch attempt %d for %s failed: %r", attempt + 1, key, e)
                continue

            self._store.set(key, result)
            return result

        self._failures += 1
        attempts = max(policy.max_retries + 1 - first_attempt, 0)
        logger.error("Was not able to fetch %s after %d attempt(s)", key, attempts)
        raise FetchExhausted(key, attempts) from last_error

    async def _join_in_flight(
        self,
        key: str,
        operation: Callable[[], Awaitable[T]],
        policy: FetchPolicy,
        attempt: int,
    ) -> T:
        """Share one in-flight fetch between concurrent callers of a key."""
        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.create_task(
                self._fetch_with_retries(key, operation, policy, attempt)
            )
            self._in_flight[key] = task
            task.add_done_callback(functools.partial(self._forget_in_flight, key))
        else:
            logger.debug("Joining in-flight fetch for %s", key)

        # A cancelled waiter must not cancel the shared fetch
        return await asyncio.shield(task)  # type: ignore[no-any-return]

    def _forget_in_flight(self, key: str, task: "asyncio.Task[Any]") -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]
        # Every waiter may have been cancelled; mark the outcome as retrieved
        if not task.cancelled():
            task.exception()

    def _notify_detached(self, listener: ListenerRegistration) -> None:
        task = asyncio.create_task(listener(RefreshEvent.REFETCH))
        self._notifications.add(task)
        task.add_done_callback(functools.partial(self._on_notification_done, listener.key))

    def _on_notification_done(self, key: str, task: "asyncio.Task[None]") -> None:
        self._notifications.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self._on_listener_error(key, error)
