"""
Redis implementation of CacheRepository.

Uses ``redis.asyncio`` with ``decode_responses=True`` so values round-trip
as ``str``. Pattern operations iterate with ``SCAN`` rather than ``KEYS``
to avoid blocking the server on large keyspaces.
"""

import logging
from typing import List, Optional

from redis.asyncio import Redis

from storyline.repositories.cache import CacheRepository

logger = logging.getLogger(__name__)


class RedisCacheRepository(CacheRepository):
    def __init__(self, client: Redis) -> None:
        self.client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisCacheRepository":
        client = Redis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        logger.info("Redis cache configured")
        return cls(client)

    async def get(self, key: str) -> Optional[str]:
        return await self.client.get(key)

    async def set(
        self, key: str, value: str, ttl_seconds: Optional[int] = None
    ) -> None:
        if ttl_seconds:
            await self.client.setex(key, ttl_seconds, value)
        else:
            await self.client.set(key, value)

    async def delete_pattern(self, pattern: str) -> int:
        matched = await self.keys(pattern)
        if not matched:
            return 0
        deleted = await self.client.delete(*matched)
        logger.debug(
            "Deleted cache keys",
            extra={"pattern": pattern, "deleted": deleted},
        )
        return int(deleted)

    async def keys(self, pattern: str) -> List[str]:
        return [key async for key in self.client.scan_iter(match=pattern)]

    async def close(self) -> None:
        await self.client.aclose()
