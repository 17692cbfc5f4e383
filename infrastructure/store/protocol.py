"""KeyValueStore protocol — services depend on this, not the concrete implementation.

Implementations raise errors.StoreUnavailableError / StoreTimeoutError on
any backend failure. They never swallow errors: a missing record and an
unreachable store must stay distinguishable.
"""

from __future__ import annotations

from typing import Optional, Protocol


class KeyValueStore(Protocol):
    async def get(self, key: str) -> Optional[str]: ...

    async def mget(self, keys: list[str]) -> list[Optional[str]]: ...

    async def set(
        self,
        key: str,
        value: str,
        *,
        ttl_seconds: int,
        only_if_absent: bool = False,
    ) -> bool: ...

    async def delete(self, *keys: str) -> int: ...

    async def expire(self, key: str, ttl_seconds: int) -> bool: ...

    async def ttl(self, key: str) -> Optional[int]: ...

    async def sadd(self, key: str, *members: str) -> int: ...

    async def srem(self, key: str, *members: str) -> int: ...

    async def smembers(self, key: str) -> set[str]: ...

    async def ping(self) -> bool: ...
