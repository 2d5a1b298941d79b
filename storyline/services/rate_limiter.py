"""
Per-user story creation rate limiting.

The counter for a user lives in the cache under
``{key_prefix}:{user_id}`` as JSON ``{"count": n, "window_started": ts}``.
The window is fixed: it starts with the first creation and every later
write keeps the remaining time-to-live, so the counter resets exactly
``window_seconds`` after the first creation.

Read and write happen in two round trips, so concurrent creations can
overshoot the ceiling by the number of in-flight requests. Cache failures
degrade to "unlimited".
"""

import json
import logging
import time
from typing import Callable, Optional

from storyline.domain import AccessPolicy, User
from storyline.domain.events import STORY_RATE_LIMITED
from storyline.errors import RateLimitExceeded
from storyline.repositories import CacheRepository, EventPublisher
from storyline.settings import RateLimitSettings

from .events import publish_event

logger = logging.getLogger(__name__)


class CreationRateLimiter:
    def __init__(
        self,
        cache: Optional[CacheRepository],
        settings: Optional[RateLimitSettings] = None,
        policy: Optional[AccessPolicy] = None,
        publisher: Optional[EventPublisher] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.cache = cache
        self.settings = settings or RateLimitSettings()
        self.policy = policy or AccessPolicy()
        self.publisher = publisher
        self.clock = clock

    def key(self, user_id: str) -> str:
        return f"{self.settings.key_prefix}:{user_id}"

    def limit_for(self, user: User) -> int:
        if self.policy.is_privileged(user):
            return self.settings.privileged_max_creations
        return self.settings.max_creations

    async def check_and_increment(self, user: User) -> int:
        """Count one creation for ``user``.

        Returns:
            The new count, or 0 when no cache is available

        Raises:
            RateLimitExceeded: The user already reached the ceiling
        """
        if self.cache is None:
            return 0
        key = self.key(user.id)
        now = self.clock()

        try:
            raw = await self.cache.get(key)
        except Exception as e:
            logger.warning(
                "Rate limit check unavailable",
                extra={"user_id": user.id, "error_message": str(e)},
            )
            return 0

        count, window_started = 0, now
        if raw:
            try:
                state = json.loads(raw)
                count = int(state["count"])
                window_started = float(state["window_started"])
            except (ValueError, KeyError, TypeError):
                logger.warning(
                    "Discarding malformed rate limit counter",
                    extra={"user_id": user.id, "cache_key": key},
                )
                count, window_started = 0, now

        remaining = int(window_started + self.settings.window_seconds - now)
        if remaining <= 0:
            count, window_started = 0, now
            remaining = self.settings.window_seconds

        limit = self.limit_for(user)
        if count >= limit:
            logger.info(
                "Story creation rate limited",
                extra={"user_id": user.id, "count": count, "limit": limit},
            )
            await publish_event(
                self.publisher,
                STORY_RATE_LIMITED,
                {"user_id": user.id, "count": count, "limit": limit},
            )
            raise RateLimitExceeded(
                f"Rate limit exceeded. Maximum {limit} stories per "
                f"{self.settings.window_seconds} seconds.",
                details={
                    "limit": limit,
                    "window_seconds": self.settings.window_seconds,
                    "retry_after": remaining,
                },
            )

        try:
            await self.cache.set(
                key,
                json.dumps(
                    {"count": count + 1, "window_started": window_started}
                ),
                remaining,
            )
        except Exception as e:
            logger.warning(
                "Rate limit counter update failed",
                extra={"user_id": user.id, "error_message": str(e)},
            )
        return count + 1
