"""
Key-value backends the session store persists into.

Both backends expose the same two coroutines:

- ``get(key) -> str | None``
- ``set(key, value, ttl_seconds, only_if_absent=False) -> bool``

`set` returns False only when `only_if_absent` is requested and the key
already holds a live value.
"""

from __future__ import annotations

import time
from typing import Callable, Dict, Optional, Protocol, Tuple

from redis.asyncio import Redis


class SessionBackend(Protocol):
    async def get(self, key: str) -> Optional[str]: ...

    async def set(
        self, key: str, value: str, ttl_seconds: int, *, only_if_absent: bool = False
    ) -> bool: ...


class RedisSessionBackend:
    """
    Sessions stored as Redis strings; expiry is delegated to Redis (SET EX).
    """

    def __init__(self, redis: Redis) -> None:
        self._redis = redis

    async def get(self, key: str) -> Optional[str]:
        raw = await self._redis.get(key)
        if isinstance(raw, bytes):
            return raw.decode("utf-8")
        return raw

    async def set(
        self, key: str, value: str, ttl_seconds: int, *, only_if_absent: bool = False
    ) -> bool:
        result = await self._redis.set(key, value, ex=ttl_seconds, nx=only_if_absent)
        return bool(result)


class MemorySessionBackend:
    """
    Process-local bounded cache with TTL.

    Entries expire lazily when read. When the cache is full, expired entries
    are purged first and then the entry closest to expiry is evicted.
    """

    def __init__(
        self,
        *,
        max_entries: int = 10_000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self._max_entries = max_entries
        self._clock = clock
        self._entries: Dict[str, Tuple[str, float]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def _live(self, key: str) -> Optional[str]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    def _make_room(self) -> None:
        now = self._clock()
        for key in [k for k, (_, exp) in self._entries.items() if now >= exp]:
            del self._entries[key]
        while len(self._entries) >= self._max_entries:
            soonest = min(self._entries, key=lambda k: self._entries[k][1])
            del self._entries[soonest]

    async def get(self, key: str) -> Optional[str]:
        return self._live(key)

    async def set(
        self, key: str, value: str, ttl_seconds: int, *, only_if_absent: bool = False
    ) -> bool:
        if only_if_absent and self._live(key) is not None:
            return False
        if key not in self._entries:
            self._make_room()
        self._entries[key] = (value, self._clock() + ttl_seconds)
        return True


__all__ = ["SessionBackend", "RedisSessionBackend", "MemorySessionBackend"]
