"""Redis-backed counter store.

Increment, conditional expiry and TTL read run as one server-side Lua
script, so concurrent first requests for a key cannot both observe a
count of 1 and the window start is set exactly once.
"""

import asyncio

from redis.exceptions import RedisError

from storegate.stores.models import WindowCounter
from storegate.stores.store import CounterStore, StoreError

# KEYS[1] = counter key, ARGV[1] = window seconds.
# A TTL of -1 means a counter exists without expiry (e.g. an earlier
# EXPIRE was lost); give it one so it cannot block forever.
INCREMENT_SCRIPT = """
local count = redis.call('INCR', KEYS[1])
local ttl = redis.call('TTL', KEYS[1])
if count == 1 or ttl == -1 then
    redis.call('EXPIRE', KEYS[1], ARGV[1])
    ttl = tonumber(ARGV[1])
end
return {count, ttl}
"""

READ_SCRIPT = """
return {redis.call('GET', KEYS[1]), redis.call('TTL', KEYS[1])}
"""

DELETE_BATCH_SIZE = 500


def _escape_glob(value: str) -> str:
    """Escape Redis MATCH pattern metacharacters."""
    for char in ("\\", "*", "?", "[", "]"):
        value = value.replace(char, "\\" + char)
    return value


class RedisCounterStore(CounterStore):
    """Fixed-window counters in Redis using redis.asyncio."""

    def __init__(
        self,
        url: str,
        socket_timeout: float = 2.0,
        connect_timeout: float = 2.0,
        client=None,
    ):
        self._url = url
        self._socket_timeout = socket_timeout
        self._connect_timeout = connect_timeout
        self._client = client
        self._increment_script = None
        self._read_script = None

    def _get_client(self):
        """Lazy-init the redis.asyncio client (connection pool)."""
        if self._client is None:
            import redis.asyncio as redis

            self._client = redis.from_url(
                self._url,
                decode_responses=True,
                socket_timeout=self._socket_timeout,
                socket_connect_timeout=self._connect_timeout,
            )
        return self._client

    def _scripts(self):
        client = self._get_client()
        if self._increment_script is None:
            self._increment_script = client.register_script(INCREMENT_SCRIPT)
            self._read_script = client.register_script(READ_SCRIPT)
        return self._increment_script, self._read_script

    async def increment(self, key: str, window_seconds: int) -> WindowCounter:
        increment_script, _ = self._scripts()
        try:
            count, ttl = await increment_script(keys=[key], args=[window_seconds])
        except (RedisError, OSError, asyncio.TimeoutError) as e:
            raise StoreError(f"increment failed for {key}: {e}") from e
        return WindowCounter(count=int(count), ttl=int(ttl))

    async def get(self, key: str) -> WindowCounter | None:
        _, read_script = self._scripts()
        try:
            value, ttl = await read_script(keys=[key])
        except (RedisError, OSError, asyncio.TimeoutError) as e:
            raise StoreError(f"read failed for {key}: {e}") from e

        if value is None:
            return None
        return WindowCounter(count=int(value), ttl=int(ttl))

    async def delete(self, key: str) -> None:
        try:
            await self._get_client().delete(key)
        except (RedisError, OSError, asyncio.TimeoutError) as e:
            raise StoreError(f"delete failed for {key}: {e}") from e

    async def delete_prefix(self, prefix: str) -> int:
        """SCAN-based prefix delete; never uses KEYS on a shared instance."""
        client = self._get_client()
        deleted = 0
        batch: list[str] = []
        try:
            async for key in client.scan_iter(match=f"{_escape_glob(prefix)}*", count=DELETE_BATCH_SIZE):
                batch.append(key)
                if len(batch) >= DELETE_BATCH_SIZE:
                    deleted += await client.delete(*batch)
                    batch = []
            if batch:
                deleted += await client.delete(*batch)
        except (RedisError, OSError, asyncio.TimeoutError) as e:
            raise StoreError(f"prefix delete failed for {prefix}: {e}") from e
        return deleted

    async def ping(self) -> bool:
        try:
            return bool(await self._get_client().ping())
        except (RedisError, OSError, asyncio.TimeoutError):
            return False

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            self._increment_script = None
            self._read_script = None
