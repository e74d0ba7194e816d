"""Exceptions raised by fetchcache."""


class FetchCacheError(Exception):
    """Base class for fetchcache errors."""

    pass


class FetchExhausted(FetchCacheError):
    """Raised when a fetch operation failed on every allowed attempt.

    The last operation error is chained as ``__cause__``.
    """

    def __init__(self, key: str, attempts: int) -> None:
        super().__init__(
            f"Was not able to fetch key {key!r} after {attempts} attempt(s). "
            "Not retrying"
        )
        self.key = key
        self.attempts = attempts
