import json
import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

from redis.asyncio import Redis

from fanstream_backend.core.config import settings
from fanstream_backend.core.result import ErrorKind, Result

log = logging.getLogger(__name__)

T = TypeVar("T")


class LocalCache:
    """Last-known-good JSON copies of remote reads, kept in Redis."""

    def __init__(self, redis: Redis, prefix: Optional[str] = None, ttl: Optional[int] = None):
        self.redis = redis
        self.prefix = prefix if prefix is not None else settings.local_cache_prefix
        self.ttl = int(ttl if ttl is not None else settings.local_cache_ttl)

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    async def get_json(self, key: str) -> Optional[Any]:
        try:
            data = await self.redis.get(self._key(key))
            if data:
                return json.loads(data)
        except Exception as e:
            log.error(f"Failed to read local copy {key}: {e}")
        return None

    async def set_json(self, key: str, value: Any) -> None:
        try:
            await self.redis.set(self._key(key), json.dumps(value), ex=self.ttl)
        except Exception as e:
            log.error(f"Failed to store local copy {key}: {e}")

    async def read_through(
            self,
            key: str,
            fetch: Callable[[], Awaitable[Result[T]]],
            encode: Callable[[T], Any],
            decode: Callable[[Any], T],
    ) -> Result[T]:
        """Fetch fresh data and remember it; serve the stored copy when the backend is unreachable."""
        result = await fetch()
        if result.is_ok:
            await self.set_json(key, encode(result.value))
            return result

        if result.error.kind != ErrorKind.NETWORK_UNAVAILABLE:
            return result

        cached = await self.get_json(key)
        if cached is None:
            return result
        log.warning("Backend unavailable, serving local copy for %s", key)
        try:
            return Result.success(decode(cached), stale=True)
        except Exception as e:
            log.error(f"Discarding unreadable local copy {key}: {e}")
            return result
