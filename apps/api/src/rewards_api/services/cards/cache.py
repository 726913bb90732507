"""Expiring cache for loyalty card listings."""

from __future__ import annotations

import json
import time
from typing import Any, Callable, Protocol

from loguru import logger
from redis.asyncio import Redis


class CardCache(Protocol):
    """get/set/invalidate with a per-entry TTL."""

    async def get(self, key: str) -> Any | None:
        ...

    async def set(self, key: str, value: Any, *, ttl_seconds: int) -> None:
        ...

    async def invalidate(self, key: str) -> None:
        ...


class InMemoryCardCache:
    """Process-local cache; entries expire lazily on read."""

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[float, Any]] = {}

    async def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            self._entries.pop(key, None)
            return None
        return value

    async def set(self, key: str, value: Any, *, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            self._entries.pop(key, None)
            return
        self._entries[key] = (self._clock() + ttl_seconds, value)

    async def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)

    def __len__(self) -> int:
        return len(self._entries)


class RedisCardCache:
    """Shared cache storing JSON payloads under prefixed keys."""

    def __init__(self, redis_client: Redis, *, key_prefix: str = "loyalty_cards") -> None:
        self._redis = redis_client
        self._prefix = key_prefix

    def _key(self, key: str) -> str:
        return f"{self._prefix}:{key}"

    async def get(self, key: str) -> Any | None:
        raw = await self._redis.get(self._key(key))
        if not raw:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Discarding undecodable card cache entry", key=key)
            await self.invalidate(key)
            return None

    async def set(self, key: str, value: Any, *, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            await self.invalidate(key)
            return
        await self._redis.set(self._key(key), json.dumps(value, default=str), ex=ttl_seconds)

    async def invalidate(self, key: str) -> None:
        await self._redis.delete(self._key(key))


def customer_cards_key(customer_id: object) -> str:
    return f"customer:{customer_id}"


__all__ = ["CardCache", "InMemoryCardCache", "RedisCardCache", "customer_cards_key"]
