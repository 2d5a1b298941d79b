"""
Memory implementation of CacheRepository.

Values expire lazily: an expired entry is dropped the next time it is read
or enumerated. The clock is injectable so tests can move time forward.
"""

import fnmatch
import logging
import time
from typing import Callable, Dict, List, Optional, Tuple

from storyline.repositories.cache import CacheRepository

logger = logging.getLogger(__name__)


class MemoryCacheRepository(CacheRepository):
    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self.clock = clock
        self.storage_dict: Dict[str, Tuple[str, Optional[float]]] = {}

    def _live(self, key: str) -> Optional[str]:
        entry = self.storage_dict.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and expires_at <= self.clock():
            del self.storage_dict[key]
            return None
        return value

    async def get(self, key: str) -> Optional[str]:
        return self._live(key)

    async def set(
        self, key: str, value: str, ttl_seconds: Optional[int] = None
    ) -> None:
        expires_at = self.clock() + ttl_seconds if ttl_seconds else None
        self.storage_dict[key] = (value, expires_at)

    async def delete_pattern(self, pattern: str) -> int:
        matched = await self.keys(pattern)
        for key in matched:
            del self.storage_dict[key]
        logger.debug(
            "Deleted cache keys",
            extra={"pattern": pattern, "deleted": len(matched)},
        )
        return len(matched)

    async def keys(self, pattern: str) -> List[str]:
        return [
            key
            for key in list(self.storage_dict)
            if fnmatch.fnmatchcase(key, pattern)
            and self._live(key) is not None
        ]
