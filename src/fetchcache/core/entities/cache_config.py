"""Cache configuration entities."""

from dataclasses import dataclass

DEFAULT_TTL_SECONDS = 300.0
DEFAULT_MAX_RETRIES = 3


@dataclass
class CacheConfig:
    """Coordinator-wide configuration.

    Provides the defaults applied to every fetch that does not carry
    its own FetchPolicy.

    Single-flight:
        When single_flight=True, concurrent stale lookups for the same
        key share one in-flight fetch. Off by default, in which case
        every stale lookup runs its own operation.
    """

    default_ttl_seconds: float = DEFAULT_TTL_SECONDS
    max_retries: int = DEFAULT_MAX_RETRIES
    single_flight: bool = False

    def __post_init__(self) -> None:
        """Validate configured limits."""
        if self.default_ttl_seconds <= 0:
            raise ValueError("default_ttl_seconds must be positive")
        if self.max_retries < 0:
            raise ValueError("max_retries must not be negative")

    def policy(self) -> "FetchPolicy":
        """Build the default fetch policy for this configuration."""
        return FetchPolicy(
            ttl_seconds=self.default_ttl_seconds,
            max_retries=self.max_retries,
        )


@dataclass(frozen=True)
class FetchPolicy:
    """Per-call fetch options.

    Attributes:
        ttl_seconds: How long a stored entry is served without refetching.
        max_retries: Attempts allowed after the first one fails.
        timeout_in_seconds: Advisory only. Carried along for callers
            that want to document an expected bound; never enforced.
    """

    ttl_seconds: float = DEFAULT_TTL_SECONDS
    max_retries: int = DEFAULT_MAX_RETRIES
    timeout_in_seconds: float | None = None

    def __post_init__(self) -> None:
        if self.ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        if self.max_retries < 0:
            raise ValueError("max_retries must not be negative")
