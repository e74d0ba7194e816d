"""Cache store interface."""

from typing import Any, Protocol

from fetchcache.core.entities.cache_entry import CacheEntry
from fetchcache.core.entities.listener import Listener, ListenerRegistration


class ICacheStore(Protocol):
    """Contract for cache stores.

    A store owns two maps: key to CacheEntry and key to the ordered
    list of listener registrations. All methods are synchronous and
    each mutation is a single step, so no partially written state is
    ever observable between awaits.
    """

    def timer(self) -> float:
        """Return the current time used to stamp entries."""
        ...

    def get(self, key: str) -> CacheEntry | None:
        """Retrieve the entry for a key.

        Args:
            key: The cache key to retrieve.

        Returns:
            The CacheEntry, or None if absent.
        """
        ...

    def set(self, key: str, value: Any) -> CacheEntry:
        """Store a value, overwriting any existing entry.

        Args:
            key: The cache key.
            value: The value to store.

        Returns:
            The new entry, stamped with the current time.
        """
        ...

    def register_listener(self, key: str, callback: Listener) -> ListenerRegistration:
        """Append a listener to the key's listener list.

        Args:
            key: The cache key to listen on.
            callback: Coroutine function receiving a RefreshEvent.

        Returns:
            A registration that can be used to remove the listener.
        """
        ...

    def remove_listener(self, registration: ListenerRegistration) -> bool:
        """Remove a previously registered listener.

        Args:
            registration: The registration returned by register_listener.

        Returns:
            True if the listener was registered, False otherwise.
        """
        ...

    def listeners(self, key: str) -> tuple[ListenerRegistration, ...]:
        """Return a snapshot of the listeners for a key, in order."""
        ...

    def invalidate(self, key: str) -> tuple[ListenerRegistration, ...]:
        """Remove the entry for a key and return its listeners.

        Args:
            key: The cache key to invalidate.

        Returns:
            Snapshot of the key's listeners, empty if there are none.
        """
        ...

    def clear(self) -> None:
        """Remove all entries."""
        ...
