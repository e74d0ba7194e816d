"""Tests for FetchCoordinator fetch, retry and TTL handling."""

import asyncio
import gc
import logging

import pytest

from fetchcache import (
    CacheConfig,
    FetchCoordinator,
    FetchExhausted,
    FetchPolicy,
    InMemoryCacheStore,
)


class CountingOperation:
    """Fetch operation that fails a given number of times, then succeeds."""

    def __init__(self, value: object = "value", failures: int = 0) -> None:
        self.value = value
        self.failures = failures
        self.calls = 0

    async def __call__(self) -> object:
        self.calls += 1
        if self.calls <= self.failures:
            raise ConnectionError(f"attempt {self.calls} failed")
        return self.value


class TestFreshness:
    """Tests for serving fresh entries."""

    @pytest.mark.asyncio
    async def test_fresh_entry_skips_operation(
        self, coordinator: FetchCoordinator
    ) -> None:
        """Test a stored value is returned without calling the operation."""
        coordinator.set("user:1", {"name": "Ann"})
        operation = CountingOperation()

        result = await coordinator.fetch(
            "user:1", operation, FetchPolicy(ttl_seconds=300)
        )

        assert result == {"name": "Ann"}
        assert operation.calls == 0

    @pytest.mark.asyncio
    async def test_missing_entry_fetches_and_stores(
        self, coordinator: FetchCoordinator, clock
    ) -> None:
        """Test a cache miss calls the operation and stores its result."""
        operation = CountingOperation(value=[1, 2, 3])

        result = await coordinator.fetch("items", operation)

        assert result == [1, 2, 3]
        assert operation.calls == 1
        entry = coordinator.get("items")
        assert entry.value == [1, 2, 3]
        assert entry.inserted_at == clock.now

    @pytest.mark.asyncio
    async def test_second_fetch_is_cached(self, coordinator: FetchCoordinator) -> None:
        """Test that a fetched value is served from cache afterwards."""
        operation = CountingOperation()

        await coordinator.fetch("key", operation)
        await coordinator.fetch("key", operation)

        assert operation.calls == 1

    @pytest.mark.asyncio
    async def test_stale_entry_refetches_once(
        self, coordinator: FetchCoordinator, clock
    ) -> None:
        """Test an entry at or past its TTL triggers exactly one fetch."""
        coordinator.set("key", "old")
        clock.advance(300)
        operation = CountingOperation(value="new")

        result = await coordinator.fetch("key", operation, FetchPolicy(ttl_seconds=300))

        assert result == "new"
        assert operation.calls == 1
        assert coordinator.get("key").value == "new"

    @pytest.mark.asyncio
    async def test_just_before_ttl_is_fresh(
        self, coordinator: FetchCoordinator, clock
    ) -> None:
        """Test an entry just younger than its TTL is still served."""
        coordinator.set("key", "old")
        clock.advance(299.5)
        operation = CountingOperation(value="new")

        assert await coordinator.fetch("key", operation) == "old"
        assert operation.calls == 0

    @pytest.mark.asyncio
    async def test_ttl_is_per_call(self, coordinator: FetchCoordinator, clock) -> None:
        """Test the same entry can be fresh for one caller and stale for another."""
        coordinator.set("key", "old")
        clock.advance(30)
        operation = CountingOperation(value="new")

        assert await coordinator.fetch("key", operation, FetchPolicy(ttl_seconds=60)) == "old"
        assert await coordinator.fetch("key", operation, FetchPolicy(ttl_seconds=10)) == "new"
        assert operation.calls == 1

    @pytest.mark.asyncio
    async def test_config_default_ttl(self, store: InMemoryCacheStore, clock) -> None:
        """Test the configured TTL applies when no policy is given."""
        coordinator = FetchCoordinator(
            store=store, config=CacheConfig(default_ttl_seconds=5)
        )
        coordinator.set("key", "old")
        clock.advance(5)

        assert await coordinator.fetch("key", CountingOperation(value="new")) == "new"

    @pytest.mark.asyncio
    async def test_timeout_is_advisory(self, coordinator: FetchCoordinator) -> None:
        """Test timeout_in_seconds does not bound the operation."""

        async def slow() -> str:
            await asyncio.sleep(0.02)
            return "done"

        policy = FetchPolicy(timeout_in_seconds=0.001)
        assert await coordinator.fetch("slow", slow, policy) == "done"


class TestRetries:
    """Tests for retrying failed operations."""

    @pytest.mark.asyncio
    async def test_retry_ceiling(self, coordinator: FetchCoordinator) -> None:
        """Test an always-failing operation runs max_retries + 1 times."""
        operation = CountingOperation(failures=100)

        with pytest.raises(FetchExhausted) as exc_info:
            await coordinator.fetch("key", operation, FetchPolicy(max_retries=3))

        assert operation.calls == 4
        assert exc_info.value.key == "key"
        assert exc_info.value.attempts == 4
        assert "key" in str(exc_info.value)
        assert isinstance(exc_info.value.__cause__, ConnectionError)

    @pytest.mark.asyncio
    async def test_recovers_on_third_attempt(
        self, coordinator: FetchCoordinator, clock
    ) -> None:
        """Test two failures followed by a success yield the value."""
        operation = CountingOperation(value="ok", failures=2)

        result = await coordinator.fetch("key", operation)

        assert result == "ok"
        assert operation.calls == 3
        assert coordinator.get("key").inserted_at == clock.now
        assert coordinator.stats["retries"] == 2

    @pytest.mark.asyncio
    async def test_zero_retries(self, coordinator: FetchCoordinator) -> None:
        """Test max_retries=0 allows a single attempt."""
        operation = CountingOperation(failures=1)

        with pytest.raises(FetchExhausted):
            await coordinator.fetch("key", operation, FetchPolicy(max_retries=0))

        assert operation.calls == 1

    @pytest.mark.asyncio
    async def test_starting_attempt_counts_toward_ceiling(
        self, coordinator: FetchCoordinator
    ) -> None:
        """Test that attempts already made reduce the remaining budget."""
        operation = CountingOperation(failures=100)

        with pytest.raises(FetchExhausted):
            await coordinator.fetch(
                "key", operation, FetchPolicy(max_retries=3), attempt=2
            )

        assert operation.calls == 2

    @pytest.mark.asyncio
    async def test_exhaustion_leaves_store_unchanged(
        self, coordinator: FetchCoordinator, clock
    ) -> None:
        """Test a failed fetch does not write or remove anything."""
        coordinator.set("key", "old")
        original = coordinator.get("key")
        clock.advance(1000)

        async def noop(event) -> None:
            pass

        registration = coordinator.register_listener("key", noop)

        with pytest.raises(FetchExhausted):
            await coordinator.fetch("key", CountingOperation(failures=100))

        assert coordinator.get("key") is original
        assert coordinator.store.listeners("key") == (registration,)

    @pytest.mark.asyncio
    async def test_exhaustion_on_missing_key_writes_nothing(
        self, coordinator: FetchCoordinator
    ) -> None:
        with pytest.raises(FetchExhausted):
            await coordinator.fetch("key", CountingOperation(failures=100))

        assert coordinator.get("key") is None

    @pytest.mark.asyncio
    async def test_concurrent_write_stops_retries(
        self, coordinator: FetchCoordinator
    ) -> None:
        """Test a value written by another caller short-circuits the retry loop."""
        calls = 0

        async def failing() -> str:
            nonlocal calls
            calls += 1
            coordinator.set("key", "from elsewhere")
            raise ConnectionError("boom")

        result = await coordinator.fetch("key", failing)

        assert result == "from elsewhere"
        assert calls == 1

    @pytest.mark.asyncio
    async def test_failed_attempts_are_logged(
        self, coordinator: FetchCoordinator, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Test that transient failures are logged as warnings."""
        with caplog.at_level(logging.WARNING, logger="fetchcache"):
            await coordinator.fetch("key", CountingOperation(failures=1))

        assert any(
            record.levelno == logging.WARNING and "key" in record.getMessage()
            for record in caplog.records
        )

    @pytest.mark.asyncio
    async def test_cancellation_is_not_retried(
        self, coordinator: FetchCoordinator
    ) -> None:
        """Test that cancelling the caller is not treated as a failed attempt."""
        started = asyncio.Event()
        calls = 0

        async def hang() -> str:
            nonlocal calls
            calls += 1
            started.set()
            await asyncio.sleep(10)
            return "never"

        task = asyncio.create_task(coordinator.fetch("key", hang))
        await started.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert calls == 1


class TestConcurrentFetches:
    """Tests for concurrent stale lookups of the same key."""

    @pytest.mark.asyncio
    async def test_no_single_flight_by_default(
        self, coordinator: FetchCoordinator
    ) -> None:
        """Test each concurrent stale lookup runs its own operation."""
        calls = 0

        async def operation() -> int:
            nonlocal calls
            calls += 1
            await asyncio.sleep(0)
            return calls

        await asyncio.gather(
            coordinator.fetch("key", operation),
            coordinator.fetch("key", operation),
        )

        assert calls == 2

    @pytest.mark.asyncio
    async def test_single_flight_shares_fetch(self, store: InMemoryCacheStore) -> None:
        """Test opt-in single-flight lets late arrivals await the first fetch."""
        coordinator = FetchCoordinator(store=store, config=CacheConfig(single_flight=True))
        calls = 0

        async def operation() -> str:
            nonlocal calls
            calls += 1
            await asyncio.sleep(0.01)
            return "shared"

        results = await asyncio.gather(
            coordinator.fetch("key", operation),
            coordinator.fetch("key", operation),
            coordinator.fetch("key", operation),
        )

        assert results == ["shared", "shared", "shared"]
        assert calls == 1

    @pytest.mark.asyncio
    async def test_single_flight_propagates_exhaustion(
        self, store: InMemoryCacheStore
    ) -> None:
        """Test every waiter sees the shared failure."""
        coordinator = FetchCoordinator(
            store=store, config=CacheConfig(single_flight=True, max_retries=1)
        )
        operation = CountingOperation(failures=100)

        results = await asyncio.gather(
            coordinator.fetch("key", operation),
            coordinator.fetch("key", operation),
            return_exceptions=True,
        )

        assert all(isinstance(result, FetchExhausted) for result in results)
        assert operation.calls == 2


    @pytest.mark.asyncio
    async def test_single_flight_failure_without_waiters(
        self, store: InMemoryCacheStore
    ) -> None:
        """Test a shared fetch failing after every waiter left is not reported as unretrieved."""
        coordinator = FetchCoordinator(
            store=store, config=CacheConfig(single_flight=True, max_retries=0)
        )
        release = asyncio.Event()

        async def operation() -> str:
            await release.wait()
            raise ConnectionError("down")

        loop = asyncio.get_running_loop()
        reported: list[dict] = []
        previous_handler = loop.get_exception_handler()
        loop.set_exception_handler(lambda _loop, context: reported.append(context))
        try:
            waiter = asyncio.create_task(coordinator.fetch("key", operation))
            await asyncio.sleep(0)
            waiter.cancel()
            with pytest.raises(asyncio.CancelledError):
                await waiter

            release.set()
            for _ in range(5):
                await asyncio.sleep(0)

            del waiter
            gc.collect()
        finally:
            loop.set_exception_handler(previous_handler)

        assert reported == []
        assert coordinator.stats["failures"] == 1
        assert coordinator.get("key") is None


class TestStats:
    """Tests for coordinator statistics."""

    @pytest.mark.asyncio
    async def test_hits_and_misses(self, coordinator: FetchCoordinator) -> None:
        """Test cache statistics tracking."""
        assert coordinator.stats["total"] == 0

        await coordinator.fetch("key", CountingOperation())
        assert coordinator.stats["misses"] == 1

        await coordinator.fetch("key", CountingOperation())
        assert coordinator.stats["hits"] == 1
        assert coordinator.stats["total"] == 2

    @pytest.mark.asyncio
    async def test_failures_and_reset(self, coordinator: FetchCoordinator) -> None:
        with pytest.raises(FetchExhausted):
            await coordinator.fetch("key", CountingOperation(failures=100))

        assert coordinator.stats["failures"] == 1
        assert coordinator.stats["retries"] == 3

        coordinator.reset_stats()
        assert coordinator.stats == {
            "hits": 0,
            "misses": 0,
            "retries": 0,
            "failures": 0,
            "total": 0,
        }


class TestLifecycle:
    """Tests for constructing and closing coordinators."""

    def test_default_store(self) -> None:
        """Test a coordinator creates its own in-memory store."""
        coordinator = FetchCoordinator()

        assert isinstance(coordinator.store, InMemoryCacheStore)
        assert coordinator.config.default_ttl_seconds == 300

    def test_separate_coordinators_do_not_share(self) -> None:
        """Test each coordinator is an isolated cache scope."""
        first = FetchCoordinator()
        second = FetchCoordinator()

        first.set("key", "value")

        assert second.get("key") is None

    @pytest.mark.asyncio
    async def test_context_manager_clears_store(self) -> None:
        async with FetchCoordinator() as coordinator:
            coordinator.set("key", "value")

        assert coordinator.get("key") is None
