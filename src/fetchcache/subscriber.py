"""Per-subscriber refresh scheduling.

A QuerySubscriber keeps one consumer's view of a cached key up to date:
it loads the value once, reloads it every ``ttl_seconds``, and reloads
whenever the key is invalidated.

Usage:
    from fetchcache import FetchCoordinator, QuerySubscriber

    coordinator = FetchCoordinator()

    async def load_user():
        return await api.get_user("1")

    async with QuerySubscriber(coordinator, "user:1", load_user) as user:
        print(user.data)

        # Elsewhere, after a write:
        await coordinator.invalidate("user:1")
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Generic, TypeVar

from fetchcache.core.entities.cache_config import DEFAULT_TTL_SECONDS, FetchPolicy
from fetchcache.core.entities.listener import ListenerRegistration, RefreshEvent
from fetchcache.core.exceptions import FetchExhausted
from fetchcache.core.services.fetch_coordinator import FetchCoordinator

logger = logging.getLogger(__name__)

T = TypeVar("T")


class QuerySubscriber(Generic[T]):
    """Keeps a single consumer's copy of a cached value refreshed."""

    def __init__(
        self,
        coordinator: FetchCoordinator,
        key: str,
        operation: Callable[[], Awaitable[T]],
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        on_change: Callable[["QuerySubscriber[T]"], Any] | None = None,
    ) -> None:
        """Initialize the subscriber. Nothing is fetched until ``start()``.

        Args:
            coordinator: The coordinator owning the shared cache.
            key: The cache key to follow.
            operation: Zero-argument coroutine function fetching the value.
            ttl_seconds: TTL used for fetches and the refresh interval.
            on_change: Called with the subscriber after every load.
        """
        self._coordinator = coordinator
        self._key = key
        self._operation = operation
        self._ttl_seconds = ttl_seconds
        self._policy = FetchPolicy(
            ttl_seconds=ttl_seconds,
            max_retries=coordinator.config.max_retries,
        )
        self._on_change = on_change

        self.data: T | None = None
        self.is_loading = True
        self.is_error = False

        self._registration: ListenerRegistration | None = None
        self._timer: asyncio.TimerHandle | None = None
        self._refresh: asyncio.Task[None] | None = None
        self._closed = False

    @property
    def key(self) -> str:
        return self._key

    @property
    def is_data_loaded(self) -> bool:
        """True once a value has been loaded and no error is pending."""
        return self.data is not None and not self.is_loading and not self.is_error

    @property
    def refresh_pending(self) -> bool:
        """True while a delayed refresh is armed or running."""
        return self._timer is not None or self._refresh is not None

    async def start(self) -> None:
        """Register for invalidations, load once and arm the refresh timer."""
        if self._closed:
            raise RuntimeError(f"Subscriber for {self._key!r} is closed")

        if self._registration is None:
            self._registration = self._coordinator.register_listener(
                self._key, self._on_event
            )

        logger.debug("Configuring initial refetch for %s", self._key)
        await self.load()
        self._reload_in(self._ttl_seconds)

    async def load(self) -> None:
        """Fetch the value through the coordinator and update state.

        Exhausted fetches set ``is_error`` instead of raising.
        """
        try:
            self.data = await self._coordinator.fetch(
                self._key, self._operation, self._policy
            )
            self.is_error = False
        except FetchExhausted:
            self.is_error = True

        self.is_loading = False

        if self._on_change is not None:
            try:
                self._on_change(self)
            except Exception:
                logger.exception("on_change callback for %s failed", self._key)

    async def close(self) -> None:
        """Cancel any pending refresh and stop listening for invalidations.

        A refresh whose timer already fired is left to finish; it does
        not re-arm.
        """
        self._closed = True
        logger.debug("Unlatching refresh for %s", self._key)

        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

        if self._registration is not None:
            self._registration.remove()
            self._registration = None

    async def __aenter__(self) -> "QuerySubscriber[T]":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def _on_event(self, event: RefreshEvent) -> None:
        if event is RefreshEvent.REFETCH:
            await self.load()

    def _reload_in(self, seconds: float) -> None:
        if self._timer is not None or self._closed:
            return
        logger.debug("Arming refresh for %s in %ss", self._key, seconds)
        self._timer = asyncio.get_running_loop().call_later(
            seconds, self._on_timer, seconds
        )

    def _on_timer(self, seconds: float) -> None:
        self._timer = None
        self._refresh = asyncio.get_running_loop().create_task(
            self._reload_after(seconds)
        )

    async def _reload_after(self, seconds: float) -> None:
        # Once fired, a refresh runs to completion even if the subscriber closes
        try:
            await self.load()
        finally:
            self._refresh = None
            self._reload_in(seconds)
