"""Listener entities for invalidation notifications."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol


class RefreshEvent(Enum):
    """Events delivered to registered listeners.

    REFETCH: The entry for the listener's key was invalidated.
    """

    REFETCH = "refetch"


Listener = Callable[[RefreshEvent], Awaitable[None]]


class _ListenerRegistry(Protocol):
    def remove_listener(self, registration: "ListenerRegistration") -> bool: ...


@dataclass(eq=False)
class ListenerRegistration:
    """Handle for a listener registered against a key.

    Returned by ``register_listener``. Identity-compared, so the same
    callback registered twice yields two distinct registrations.
    """

    key: str
    callback: Listener
    _registry: _ListenerRegistry = field(repr=False)
    active: bool = True

    async def __call__(self, event: RefreshEvent) -> None:
        await self.callback(event)

    def remove(self) -> bool:
        """Detach this listener from its registry.

        Returns:
            True if the listener was registered, False if already removed.
        """
        return self._registry.remove_listener(self)
