"""In-memory implementation of KeyValueStore.

Single-process only: for local development (SESSION_STORE=memory) and
tests. Expiry is evaluated lazily against an injectable clock, mirroring how
Redis hides expired keys from readers.
"""

from __future__ import annotations

import math
from typing import Optional, Union

from shared.clock import Clock, utc_now

_Value = Union[str, set]


class MemoryKeyValueStore:
    def __init__(self, clock: Clock = utc_now) -> None:
        self._clock = clock
        self._data: dict[str, _Value] = {}
        self._expires_at: dict[str, float] = {}

    def _now(self) -> float:
        return self._clock().timestamp()

    def _alive(self, key: str) -> bool:
        deadline = self._expires_at.get(key)
        if deadline is not None and deadline <= self._now():
            self._data.pop(key, None)
            self._expires_at.pop(key, None)
        return key in self._data

    def _string(self, key: str) -> Optional[str]:
        if not self._alive(key):
            return None
        value = self._data[key]
        if not isinstance(value, str):
            raise TypeError(f"Key '{key}' does not hold a string")
        return value

    def _set_members(self, key: str) -> set:
        if not self._alive(key):
            return set()
        value = self._data[key]
        if not isinstance(value, set):
            raise TypeError(f"Key '{key}' does not hold a set")
        return value

    async def get(self, key: str) -> Optional[str]:
        return self._string(key)

    async def mget(self, keys: list[str]) -> list[Optional[str]]:
        return [self._string(key) for key in keys]

    async def set(
        self,
        key: str,
        value: str,
        *,
        ttl_seconds: int,
        only_if_absent: bool = False,
    ) -> bool:
        if only_if_absent and self._alive(key):
            return False
        self._data[key] = value
        self._expires_at[key] = self._now() + max(1, int(ttl_seconds))
        return True

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self._alive(key):
                removed += 1
            self._data.pop(key, None)
            self._expires_at.pop(key, None)
        return removed

    async def expire(self, key: str, ttl_seconds: int) -> bool:
        if not self._alive(key):
            return False
        self._expires_at[key] = self._now() + max(1, int(ttl_seconds))
        return True

    async def ttl(self, key: str) -> Optional[int]:
        if not self._alive(key):
            return None
        deadline = self._expires_at.get(key)
        if deadline is None:
            return -1
        return math.ceil(deadline - self._now())

    async def sadd(self, key: str, *members: str) -> int:
        current = self._set_members(key)
        if key not in self._data:
            self._data[key] = current
        added = len(set(members) - current)
        current.update(members)
        return added

    async def srem(self, key: str, *members: str) -> int:
        current = self._set_members(key)
        removed = len(current & set(members))
        current.difference_update(members)
        if key in self._data and not current:
            # Redis drops empty sets
            self._data.pop(key, None)
            self._expires_at.pop(key, None)
        return removed

    async def smembers(self, key: str) -> set[str]:
        return set(self._set_members(key))

    async def ping(self) -> bool:
        return True

    def keys(self) -> list[str]:
        """Live keys; test and debugging helper."""
        return [key for key in list(self._data) if self._alive(key)]
