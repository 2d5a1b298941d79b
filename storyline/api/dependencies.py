"""
Dependency injection for FastAPI endpoints.

The container builds one set of adapters per process, chosen by
``STORYLINE_BACKEND`` (``memory`` or ``postgresql``). A cache is attached
when ``REDIS_URL`` is set; the memory backend falls back to an in-process
cache so listings and rate limits still behave as in production.
"""

import logging
import os
from typing import Any, Awaitable, Callable, Dict, Optional

import asyncpg
from fastapi import Depends, Header

from storyline.domain import User, UserRole
from storyline.errors import NotFound
from storyline.repositories import (
    CacheRepository,
    EventPublisher,
    UserRepository,
)
from storyline.repositories.log import LogEventPublisher
from storyline.repositories.memory import (
    MemoryAttachmentRepository,
    MemoryCacheRepository,
    MemoryEventPublisher,
    MemoryStoryRepository,
    MemoryTagRepository,
    MemoryUserRepository,
)
from storyline.repositories.postgresql import (
    PostgreSQLAttachmentRepository,
    PostgreSQLStoryRepository,
    PostgreSQLTagRepository,
    PostgreSQLUserRepository,
    create_schema,
)
from storyline.repositories.redis import RedisCacheRepository
from storyline.services import StoryCacheGateway
from storyline.settings import StoryServiceSettings
from storyline.use_cases import StoryAttachmentUseCase, StoryLifecycleUseCase

logger = logging.getLogger(__name__)


def parse_seed_users(raw: Optional[str]) -> Dict[str, User]:
    """Parse ``id:role,id:role`` into users for the memory backend."""
    users: Dict[str, User] = {}
    for item in (raw or "").split(","):
        item = item.strip()
        if not item:
            continue
        user_id, _, role = item.partition(":")
        users[user_id.strip()] = User(
            id=user_id, role=UserRole(role.strip() or UserRole.USER.value)
        )
    return users


class DependencyContainer:
    """
    Dependency injection container with singleton lifecycle management.
    Always creates real clients; mocks are provided by test overrides.
    """

    def __init__(self) -> None:
        self._instances: Dict[str, Any] = {}

    async def get_or_create(
        self, key: str, factory: Callable[[], Awaitable[Any]]
    ) -> Any:
        """Get or create a singleton instance."""
        if key not in self._instances:
            self._instances[key] = await factory()
        return self._instances[key]

    @property
    def backend(self) -> str:
        return os.environ.get("STORYLINE_BACKEND", "memory").strip().lower()

    async def get_settings(self) -> StoryServiceSettings:
        return await self.get_or_create("settings", self._create_settings)

    async def _create_settings(self) -> StoryServiceSettings:
        return StoryServiceSettings.from_env()

    async def get_repositories(self) -> Dict[str, Any]:
        return await self.get_or_create(
            "repositories", self._create_repositories
        )

    async def _create_repositories(self) -> Dict[str, Any]:
        if self.backend == "postgresql":
            pool = await self.get_or_create("pg_pool", self._create_pool)
            return {
                "story": PostgreSQLStoryRepository(pool),
                "tag": PostgreSQLTagRepository(pool),
                "attachment": PostgreSQLAttachmentRepository(pool),
                "user": PostgreSQLUserRepository(pool),
            }
        if self.backend != "memory":
            raise ValueError(
                f"STORYLINE_BACKEND must be 'memory' or 'postgresql', "
                f"got {self.backend!r}"
            )

        tags = MemoryTagRepository()
        attachments = MemoryAttachmentRepository()
        users = MemoryUserRepository()
        for user in parse_seed_users(
            os.environ.get("STORYLINE_SEED_USERS")
        ).values():
            users.add(user)
        logger.debug(
            "Created memory repositories",
            extra={"seeded_users": len(users.storage_dict)},
        )
        return {
            "story": MemoryStoryRepository(tags, attachments),
            "tag": tags,
            "attachment": attachments,
            "user": users,
        }

    async def _create_pool(self) -> asyncpg.Pool:
        dsn = os.environ.get(
            "DATABASE_URL", "postgresql://localhost:5432/storyline"
        )
        logger.debug("Creating PostgreSQL pool")
        pool = await asyncpg.create_pool(dsn, min_size=1, max_size=10)
        await create_schema(pool)
        return pool

    async def get_cache(self) -> Optional[CacheRepository]:
        return await self.get_or_create("cache", self._create_cache)

    async def _create_cache(self) -> Optional[CacheRepository]:
        redis_url = os.environ.get("REDIS_URL")
        if redis_url:
            return RedisCacheRepository.from_url(redis_url)
        if self.backend == "memory":
            return MemoryCacheRepository()
        logger.warning("REDIS_URL not set; listing cache and rate limit off")
        return None

    async def get_publisher(self) -> EventPublisher:
        return await self.get_or_create("publisher", self._create_publisher)

    async def _create_publisher(self) -> EventPublisher:
        # Only the memory backend keeps events around for inspection
        if self.backend == "memory":
            return MemoryEventPublisher()
        return LogEventPublisher()

    async def get_lifecycle_use_case(self) -> StoryLifecycleUseCase:
        return await self.get_or_create(
            "lifecycle", self._create_lifecycle_use_case
        )

    async def _create_lifecycle_use_case(self) -> StoryLifecycleUseCase:
        repos = await self.get_repositories()
        return StoryLifecycleUseCase(
            story_repo=repos["story"],
            tag_repo=repos["tag"],
            attachment_repo=repos["attachment"],
            user_repo=repos["user"],
            cache=await self.get_cache(),
            publisher=await self.get_publisher(),
            settings=await self.get_settings(),
        )

    async def close(self) -> None:
        """Release pooled connections and clients."""
        cache = self._instances.get("cache")
        if isinstance(cache, RedisCacheRepository):
            await cache.close()
        pool = self._instances.get("pg_pool")
        if pool is not None:
            await pool.close()
        self._instances.clear()


# Global container instance
_container = DependencyContainer()


def get_container() -> DependencyContainer:
    return _container


async def get_user_repository() -> UserRepository:
    """FastAPI dependency for UserRepository."""
    repos = await _container.get_repositories()
    return repos["user"]  # type: ignore[no-any-return]


async def get_lifecycle_use_case() -> StoryLifecycleUseCase:
    """FastAPI dependency for StoryLifecycleUseCase."""
    return await _container.get_lifecycle_use_case()


async def get_attachment_use_case(
    lifecycle: StoryLifecycleUseCase = Depends(get_lifecycle_use_case),
) -> StoryAttachmentUseCase:
    """FastAPI dependency for StoryAttachmentUseCase."""
    return lifecycle.attachment_graph


async def get_cache_gateway(
    lifecycle: StoryLifecycleUseCase = Depends(get_lifecycle_use_case),
) -> StoryCacheGateway:
    return lifecycle.cache_gateway


async def get_current_user(
    x_user_id: Optional[str] = Header(default=None),
    user_repo: UserRepository = Depends(get_user_repository),
) -> User:
    """Resolve the caller from the ``X-User-Id`` header.

    Authentication happens upstream; this only maps the asserted id onto
    an active user record.
    """
    if not x_user_id or not x_user_id.strip():
        raise NotFound(
            "Missing X-User-Id header",
            code="USER_NOT_FOUND",
            status_code=401,
        )
    user = await user_repo.get(x_user_id.strip())
    if user is None or not user.is_active:
        raise NotFound(
            "User not found or inactive",
            code="USER_NOT_FOUND",
            status_code=401,
        )
    return user
