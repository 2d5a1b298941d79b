"""
Read-through cache for story listings.

Keys have the form ``{prefix}:list:{role}:{user_id}:{digest}`` where the
digest is a SHA-256 over the sorted normalized query, the user id and the
role. Putting role and user id in clear text lets writes invalidate
exactly the listings they can affect:

- every listing of the story owner (``{prefix}:list:*:{owner_id}:*``)
- every listing of a privileged role (``{prefix}:list:{role}:*``), since
  privileged callers may see any story

Non-privileged callers only ever list their own stories, so no other keys
can contain a written story. Any cache port failure is logged and treated
as a miss (reads) or a no-op (writes and invalidation).
"""

import hashlib
import json
import logging
from typing import Any, Dict, Optional

from storyline.domain import StoryListQuery, User
from storyline.repositories import CacheRepository
from storyline.settings import CacheSettings, SecuritySettings

logger = logging.getLogger(__name__)


class StoryCacheGateway:
    def __init__(
        self,
        cache: Optional[CacheRepository],
        settings: Optional[CacheSettings] = None,
        security: Optional[SecuritySettings] = None,
    ) -> None:
        self.cache = cache
        self.settings = settings or CacheSettings()
        self.security = security or SecuritySettings()

    @property
    def enabled(self) -> bool:
        return self.cache is not None and self.settings.enabled

    def should_bypass(self, query: StoryListQuery) -> bool:
        """Whether this listing must skip the cache entirely."""
        return (
            not self.enabled
            or query.no_cache
            or (self.settings.bypass_on_search_term and bool(query.term))
            or (self.settings.bypass_on_stats and "stats" in query.include)
            or query.limit > self.settings.bypass_limit
        )

    def list_key(self, query: StoryListQuery, user: User) -> str:
        role = getattr(user.role, "value", user.role)
        material = json.dumps(
            {
                "query": query.cache_fingerprint(),
                "user_id": user.id,
                "role": role,
            },
            sort_keys=True,
            separators=(",", ":"),
        )
        digest = hashlib.sha256(material.encode("utf-8")).hexdigest()
        return f"{self.settings.key_prefix}:list:{role}:{user.id}:{digest}"

    async def get_json(self, key: str) -> Optional[Any]:
        if not self.enabled:
            return None
        assert self.cache is not None
        try:
            raw = await self.cache.get(key)
            if raw is None:
                return None
            logger.debug("Cache hit", extra={"cache_key": key})
            return json.loads(raw)
        except Exception as e:
            logger.warning(
                "Cache read failed",
                extra={"cache_key": key, "error_message": str(e)},
            )
            return None

    async def set_json(
        self, key: str, value: Any, ttl_seconds: Optional[int] = None
    ) -> None:
        if not self.enabled:
            return
        assert self.cache is not None
        try:
            await self.cache.set(
                key,
                json.dumps(value, default=str),
                ttl_seconds or self.settings.ttl,
            )
        except Exception as e:
            logger.warning(
                "Cache write failed",
                extra={"cache_key": key, "error_message": str(e)},
            )

    async def invalidate(self, owner_id: str) -> int:
        """Drop every cached listing that may contain the owner's stories."""
        if self.cache is None:
            return 0
        prefix = self.settings.key_prefix
        patterns = [f"{prefix}:list:*:{owner_id}:*"] + [
            f"{prefix}:list:{role}:*"
            for role in self.security.privileged_roles
        ]
        deleted = 0
        for pattern in patterns:
            try:
                deleted += await self.cache.delete_pattern(pattern)
            except Exception as e:
                logger.warning(
                    "Cache invalidation failed",
                    extra={"pattern": pattern, "error_message": str(e)},
                )
        logger.debug(
            "Invalidated story caches",
            extra={"owner_id": owner_id, "deleted": deleted},
        )
        return deleted

    async def stats(self) -> Dict[str, Any]:
        prefix = self.settings.key_prefix
        result: Dict[str, Any] = {
            "enabled": self.enabled,
            "available": False,
            "ttl_seconds": self.settings.ttl,
            "total_keys": 0,
            "list_keys": 0,
        }
        if self.cache is None:
            return result
        try:
            keys = await self.cache.keys(f"{prefix}:*")
        except Exception as e:
            logger.warning(
                "Cache stats unavailable", extra={"error_message": str(e)}
            )
            return result
        result.update(
            available=True,
            total_keys=len(keys),
            list_keys=sum(1 for k in keys if k.startswith(f"{prefix}:list:")),
        )
        return result
