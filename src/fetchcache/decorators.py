"""Cache decorators for coroutine functions.

``cached`` routes a coroutine function through a FetchCoordinator, and
``invalidates`` invalidates a key once a mutating coroutine succeeds.
Both take the coordinator explicitly.
"""

import functools
import inspect
import re
from collections.abc import Callable
from typing import Any, TypeVar

from fetchcache.core.entities.cache_config import FetchPolicy
from fetchcache.core.services.fetch_coordinator import FetchCoordinator

F = TypeVar("F", bound=Callable[..., Any])

KeySpec = str | Callable[..., str]


def cached(
    coordinator: FetchCoordinator,
    key: KeySpec,
    ttl_seconds: float | None = None,
    max_retries: int | None = None,
) -> Callable[[F], F]:
    """Decorator for caching coroutine results under a key.

    Calls go through ``coordinator.fetch``, so results are served from
    the cache while fresh and failures are retried.

    Args:
        coordinator: The coordinator owning the cache.
        key: Cache key. If string, supports {arg_name} interpolation.
            If callable, receives (*args, **kwargs) and returns the key.
        ttl_seconds: TTL for the cached result. Uses config default if None.
        max_retries: Retry ceiling. Uses config default if None.

    Returns:
        Decorated function.

    Example:
        @cached(coordinator, key="user:{user_id}", ttl_seconds=60)
        async def get_user(user_id: str) -> dict:
            return await api.get_user(user_id)
    """
    config = coordinator.config
    policy = FetchPolicy(
        ttl_seconds=ttl_seconds if ttl_seconds is not None else config.default_ttl_seconds,
        max_retries=max_retries if max_retries is not None else config.max_retries,
    )

    def decorator(func: F) -> F:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            cache_key = _resolve_key(func, key, args, kwargs)
            return await coordinator.fetch(
                cache_key,
                lambda: func(*args, **kwargs),
                policy,
            )

        return wrapper  # type: ignore

    return decorator


def invalidates(
    coordinator: FetchCoordinator,
    key: KeySpec,
) -> Callable[[F], F]:
    """Decorator for invalidating a key after a mutation.

    Executes the decorated coroutine and, if it returns normally,
    invalidates the key before returning its result. The primary
    listener's refetch has completed by the time the result is returned.

    Args:
        coordinator: The coordinator owning the cache.
        key: Key to invalidate. Supports {arg_name} interpolation.

    Returns:
        Decorated function.

    Example:
        @invalidates(coordinator, key="user:{user_id}")
        async def rename_user(user_id: str, name: str) -> dict:
            return await api.patch_user(user_id, name=name)
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            result = await func(*args, **kwargs)
            await coordinator.invalidate(_resolve_key(func, key, args, kwargs))
            return result

        return wrapper  # type: ignore

    return decorator


def _resolve_key(
    func: Callable[..., Any],
    key: KeySpec,
    args: tuple[Any, ...],
    kwargs: dict[str, Any],
) -> str:
    """Build the cache key for a function call.

    Args:
        func: The decorated function.
        key: Key template or key builder function.
        args: Positional arguments.
        kwargs: Keyword arguments.

    Returns:
        The cache key string.
    """
    if callable(key):
        return key(*args, **kwargs)
    return _interpolate_string(key, _bind_arguments(func, args, kwargs))


def _bind_arguments(
    func: Callable[..., Any],
    args: tuple[Any, ...],
    kwargs: dict[str, Any],
) -> dict[str, Any]:
    """Map the call's arguments to parameter names, defaults applied."""
    try:
        bound = inspect.signature(func).bind(*args, **kwargs)
    except (TypeError, ValueError):
        return dict(kwargs)
    bound.apply_defaults()
    return dict(bound.arguments)


def _interpolate_string(template: str, arguments: dict[str, Any]) -> str:
    """Interpolate {arg_name} placeholders in string.

    Args:
        template: String with {arg_name} placeholders.
        arguments: Argument values by parameter name.

    Returns:
        Interpolated string. Unknown placeholders are kept as-is.
    """
    pattern = r"\{(\w+)\}"

    def replacer(match: re.Match[str]) -> str:
        name = match.group(1)
        if name in arguments:
            return str(arguments[name])
        return match.group(0)

    return re.sub(pattern, replacer, template)
