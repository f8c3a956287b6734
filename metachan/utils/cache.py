"""Cache Utilities Module."""

from collections.abc import Callable, Mapping
from functools import wraps
from typing import Any

import aiocache

__all__ = ["gattl_cache", "generic_hash"]


def gattl_cache(ttl: int = 60, key: Callable[..., Any] | None = None):
    """Decorator for async functions to cache results in process with a TTL.

    The cache key is computed with `generic_hash`, so arguments do not need to be
    hashable. Pass `key` to build the key from a subset of the arguments.

    Args:
        ttl (int): Time-to-live for cached items in seconds. Defaults to 60.
        key (Callable[..., Any] | None): Optional key builder receiving the
            decorated function's arguments.
    """

    def decorator(func):
        cache_alias = f"gattl_{func.__module__}.{func.__qualname__}_{id(func)}"
        aiocache.caches.add(cache_alias, {"cache": aiocache.Cache.MEMORY, "ttl": ttl})

        def build_key(_func, *args, **kwargs) -> int:
            if key is None:
                return generic_hash(*args, **kwargs)
            return generic_hash(key(*args, **kwargs))

        @wraps(func)
        @aiocache.cached(alias=cache_alias, key_builder=build_key)
        async def wrapper(*args, **kwargs):
            return await func(*args, **kwargs)

        return wrapper

    return decorator


def generic_hash(*args, **kwargs) -> int:
    """Hash any Python object(s), including unhashable containers.

    Lists, sets, mappings and plain objects are frozen into hashable values
    first; mappings hash the same regardless of key order.
    """
    if not kwargs and len(args) == 1:
        return hash(_freeze(args[0], set()))
    return hash((_freeze(args, set()), _freeze(kwargs, set())))


def _freeze(obj: Any, seen: set[int]) -> Any:
    try:
        hash(obj)
    except TypeError:
        pass
    else:
        return obj

    if id(obj) in seen:
        return "<cycle>"
    seen.add(id(obj))
    try:
        if isinstance(obj, Mapping):
            return frozenset((_freeze(k, seen), _freeze(v, seen)) for k, v in obj.items())
        if isinstance(obj, set | frozenset):
            return frozenset(_freeze(item, seen) for item in obj)
        if isinstance(obj, list | tuple):
            return tuple(_freeze(item, seen) for item in obj)
        if hasattr(obj, "__dict__"):
            return (type(obj).__qualname__, _freeze(vars(obj), seen))
        return str(obj)
    finally:
        seen.discard(id(obj))
