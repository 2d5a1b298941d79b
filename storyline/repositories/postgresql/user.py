"""
PostgreSQL implementation of UserRepository.
"""

import logging
from typing import Optional

from asyncpg import Pool

from storyline.domain import User
from storyline.repositories.user import UserRepository

logger = logging.getLogger(__name__)


class PostgreSQLUserRepository(UserRepository):
    def __init__(self, pool: Pool):
        self.pool = pool
        logger.debug("Initialized PostgreSQLUserRepository")

    async def get(self, user_id: str) -> Optional[User]:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                "SELECT id, name, email, role, is_active FROM users "
                "WHERE id = $1",
                user_id,
            )
        if row is None:
            logger.debug("User not found", extra={"user_id": user_id})
            return None
        return User.model_validate(dict(row))
