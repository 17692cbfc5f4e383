"""Redis implementation of KeyValueStore.

Every command is wrapped in asyncio.wait_for with the configured timeout.
Timeouts map to StoreTimeoutError and every other redis failure to
StoreUnavailableError, so callers can fail closed without guessing.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from errors import StoreTimeoutError, StoreUnavailableError
from shared.logging import get_logger

log = get_logger(__name__)


class RedisKeyValueStore:
    def __init__(self, redis_client: aioredis.Redis, timeout_seconds: float = 2.0) -> None:
        self._redis = redis_client
        self.timeout_seconds = timeout_seconds

    async def _call(self, op: str, awaitable: Awaitable[Any]) -> Any:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout_seconds)
        except (asyncio.TimeoutError, RedisTimeoutError) as e:
            log.error("store_timeout", op=op, timeout_seconds=self.timeout_seconds)
            raise StoreTimeoutError(f"Store operation '{op}' timed out") from e
        except RedisError as e:
            log.error(
                "store_unavailable", op=op, error=str(e), error_type=type(e).__name__
            )
            raise StoreUnavailableError(f"Store operation '{op}' failed") from e

    async def get(self, key: str) -> Optional[str]:
        return await self._call("get", self._redis.get(key))

    async def mget(self, keys: list[str]) -> list[Optional[str]]:
        if not keys:
            return []
        return list(await self._call("mget", self._redis.mget(keys)))

    async def set(
        self,
        key: str,
        value: str,
        *,
        ttl_seconds: int,
        only_if_absent: bool = False,
    ) -> bool:
        result = await self._call(
            "set",
            self._redis.set(key, value, ex=max(1, int(ttl_seconds)), nx=only_if_absent),
        )
        return bool(result)

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        return int(await self._call("delete", self._redis.delete(*keys)))

    async def expire(self, key: str, ttl_seconds: int) -> bool:
        return bool(
            await self._call("expire", self._redis.expire(key, max(1, int(ttl_seconds))))
        )

    async def ttl(self, key: str) -> Optional[int]:
        # -2: missing key, -1: key without expiry
        result = int(await self._call("ttl", self._redis.ttl(key)))
        if result == -2:
            return None
        return result

    async def sadd(self, key: str, *members: str) -> int:
        if not members:
            return 0
        return int(await self._call("sadd", self._redis.sadd(key, *members)))

    async def srem(self, key: str, *members: str) -> int:
        if not members:
            return 0
        return int(await self._call("srem", self._redis.srem(key, *members)))

    async def smembers(self, key: str) -> set[str]:
        return set(await self._call("smembers", self._redis.smembers(key)))

    async def ping(self) -> bool:
        return bool(await self._call("ping", self._redis.ping()))


async def create_redis_client(redis_uri: str, timeout_seconds: float) -> aioredis.Redis:
    """Connect to Redis and verify the connection.

    Unlike optional caches, the session store is mandatory: a failed ping at
    startup raises StoreUnavailableError instead of degrading.
    """
    client: aioredis.Redis = aioredis.from_url(
        redis_uri,
        encoding="utf-8",
        decode_responses=True,
        socket_timeout=timeout_seconds,
        socket_connect_timeout=timeout_seconds,
    )
    try:
        await client.ping()
    except RedisError as e:
        log.error(
            "redis_connection_failed", error=str(e), error_type=type(e).__name__
        )
        await client.aclose()
        raise StoreUnavailableError("Session store is unreachable") from e
    log.info("redis_connected", uri=redis_uri.split("@")[-1])  # mask credentials
    return client
