"""Pytest configuration for fetchcache tests."""

import pytest

from fetchcache import CacheConfig, FetchCoordinator, InMemoryCacheStore


class FakeClock:
    """Manually advanced clock for deterministic TTL checks."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    """Create a fake clock."""
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> InMemoryCacheStore:
    """Create a store stamped by the fake clock."""
    return InMemoryCacheStore(timer=clock)


@pytest.fixture
def coordinator(store: InMemoryCacheStore) -> FetchCoordinator:
    """Create a coordinator over the fake-clock store."""
    return FetchCoordinator(store=store, config=CacheConfig())
