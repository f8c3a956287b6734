"""Tests for caching utilities."""

import aiocache
import pytest

from metachan.utils.cache import gattl_cache, generic_hash


def test_generic_hash_order_insensitive_for_dicts():
    """Test that generic_hash produces the same hash for dicts in different orders."""
    data_one = {"b": [1, 2], "a": {"x": 1}}
    data_two = {"a": {"x": 1}, "b": [1, 2]}

    assert generic_hash(data_one) == generic_hash(data_two)


def test_generic_hash_handles_cycles():
    """Test that generic_hash can handle cyclic data structures."""
    cyclic = []
    cyclic.append(cyclic)

    assert isinstance(generic_hash(cyclic), int)


@pytest.mark.asyncio
async def test_gattl_cache_caches_async_functions():
    """Test that gattl_cache caches async results with unhashable arguments."""
    call_count = 0

    @gattl_cache(ttl=60)
    async def fetch(value):
        nonlocal call_count
        call_count += 1
        return value

    assert await fetch(["a", "b"]) == ["a", "b"]
    assert await fetch(["a", "b"]) == ["a", "b"]
    assert call_count == 1

    aiocache.caches._caches.clear()


@pytest.mark.asyncio
async def test_gattl_cache_custom_key_ignores_other_arguments():
    """A custom key builder decides which arguments distinguish cache entries."""
    call_count = 0

    @gattl_cache(ttl=60, key=lambda owner, query: query)
    async def search(owner, query):
        nonlocal call_count
        call_count += 1
        return f"{query}-{call_count}"

    assert await search(object(), {"q": "naruto"}) == "{'q': 'naruto'}-1"
    assert await search(object(), {"q": "naruto"}) == "{'q': 'naruto'}-1"
    assert await search(object(), {"q": "bleach"}) == "{'q': 'bleach'}-2"
    assert call_count == 2

    aiocache.caches._caches.clear()
