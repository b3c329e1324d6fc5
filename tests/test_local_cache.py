import json

import pytest

from fanstream_backend.core.result import ErrorKind, Result


def _fetch(result):
    async def fetch():
        return result
    return fetch


@pytest.mark.asyncio
async def test_fresh_result_is_stored(local_cache, redis):
    result = await local_cache.read_through("k", _fetch(Result.success([1, 2])), list, list)

    assert result.value == [1, 2]
    assert not result.stale
    assert json.loads(redis.store["test:k"]) == [1, 2]


@pytest.mark.asyncio
async def test_network_failure_serves_stored_copy(local_cache):
    await local_cache.set_json("k", {"id": "x"})

    result = await local_cache.read_through(
        "k", _fetch(Result.failure(ErrorKind.NETWORK_UNAVAILABLE, "offline")), dict, dict,
    )

    assert result.is_ok
    assert result.stale
    assert result.value == {"id": "x"}


@pytest.mark.asyncio
async def test_network_failure_without_copy_is_returned(local_cache):
    failure = Result.failure(ErrorKind.NETWORK_UNAVAILABLE, "offline")

    result = await local_cache.read_through("missing", _fetch(failure), dict, dict)

    assert result is failure


@pytest.mark.asyncio
async def test_other_failures_do_not_use_copy(local_cache):
    await local_cache.set_json("k", {"id": "x"})
    failure = Result.failure(ErrorKind.PERMISSION_DENIED, "nope")

    result = await local_cache.read_through("k", _fetch(failure), dict, dict)

    assert result is failure


@pytest.mark.asyncio
async def test_broken_redis_is_a_miss(local_cache, redis):
    redis.broken = True

    assert await local_cache.get_json("k") is None
    await local_cache.set_json("k", 1)
    result = await local_cache.read_through("k", _fetch(Result.success(3)), int, int)
    assert result.value == 3
