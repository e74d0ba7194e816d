"""Domain services for fetchcache."""

from fetchcache.core.services.fetch_coordinator import FetchCoordinator

__all__ = [
    "FetchCoordinator",
]
