"""In-memory cache store implementation."""

import logging
import math
import time
from collections.abc import Callable
from typing import Any

from cachetools import Cache  # type: ignore[import-untyped]

from fetchcache.core.entities.cache_entry import CacheEntry
from fetchcache.core.entities.listener import Listener, ListenerRegistration

logger = logging.getLogger(__name__)


class InMemoryCacheStore:
    """In-memory store for cache entries and invalidation listeners.

    Entries live in an unbounded cachetools ``Cache``: nothing is ever
    evicted for size, entries only go away through ``invalidate`` or
    ``clear``. Freshness is judged by the coordinator from each entry's
    ``inserted_at``, not by the store.
    """

    def __init__(self, timer: Callable[[], float] = time.monotonic) -> None:
        """Initialize the in-memory store.

        Args:
            timer: Clock used to stamp entries, in seconds.
        """
        self._timer = timer
        self._entries: Cache[str, CacheEntry] = Cache(maxsize=math.inf)
        self._listeners: dict[str, list[ListenerRegistration]] = {}

    def timer(self) -> float:
        """Return the current time used to stamp entries."""
        return self._timer()

    def get(self, key: str) -> CacheEntry | None:
        """Retrieve the entry for a key, or None if absent."""
        return self._entries.get(key)

    def set(self, key: str, value: Any) -> CacheEntry:
        """Store a value, overwriting any existing entry.

        Args:
            key: The cache key.
            value: The value to store.

        Returns:
            The new entry.
        """
        entry = CacheEntry.create(key=key, value=value, inserted_at=self._timer())
        self._entries[key] = entry
        logger.debug("%s being set at %.3f", key, entry.inserted_at)
        return entry

    def register_listener(self, key: str, callback: Listener) -> ListenerRegistration:
        """Append a listener to the key's listener list.

        The same callback may be registered several times; each call
        returns its own registration.
        """
        registration = ListenerRegistration(key=key, callback=callback, _registry=self)
        self._listeners.setdefault(key, []).append(registration)
        return registration

    def remove_listener(self, registration: ListenerRegistration) -> bool:
        """Remove a previously registered listener.

        Returns:
            True if the listener was registered, False otherwise.
        """
        listeners = self._listeners.get(registration.key)
        if not listeners or registration not in listeners:
            return False

        listeners.remove(registration)
        registration.active = False
        if not listeners:
            del self._listeners[registration.key]
        return True

    def listeners(self, key: str) -> tuple[ListenerRegistration, ...]:
        """Return a snapshot of the listeners for a key, in order."""
        return tuple(self._listeners.get(key, ()))

    def invalidate(self, key: str) -> tuple[ListenerRegistration, ...]:
        """Remove the entry for a key and return its listeners.

        Removing an absent key is a no-op.
        """
        self._entries.pop(key, None)
        return self.listeners(key)

    def clear(self) -> None:
        """Remove all entries. Listener registrations are kept."""
        self._entries.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        """Return the number of entries in the store."""
        return len(self._entries)
