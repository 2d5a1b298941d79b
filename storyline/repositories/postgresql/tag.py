"""
PostgreSQL implementation of TagRepository.
"""

import logging
from typing import List, Optional, Sequence

from asyncpg import Pool

from storyline.domain import Tag
from storyline.repositories.story import Transaction
from storyline.repositories.tag import TagRepository

from .transaction import connection_for

logger = logging.getLogger(__name__)


class PostgreSQLTagRepository(TagRepository):
    """
    PostgreSQL implementation of TagRepository.
    Tag names are unique; minting relies on ``ON CONFLICT (name)`` so
    concurrent creations of the same tag converge on one row.
    """

    def __init__(self, pool: Pool):
        self.pool = pool
        logger.debug("Initialized PostgreSQLTagRepository")

    async def prepare_story_tags(
        self, names: Sequence[str], user_id: str, tx: Transaction
    ) -> List[Tag]:
        if not names:
            return []
        async with connection_for(self.pool, tx) as conn:
            await conn.executemany(
                """
                INSERT INTO tags (name, created_by) VALUES ($1, $2)
                ON CONFLICT (name) DO NOTHING
                """,
                [(name, user_id) for name in names],
            )
            rows = await conn.fetch(
                """
                SELECT id, name, created_by, created_at FROM tags
                WHERE name = ANY($1::text[])
                """,
                list(names),
            )

        by_name = {row["name"]: Tag.model_validate(dict(row)) for row in rows}
        logger.debug(
            "Prepared story tags",
            extra={"requested": len(names), "user_id": user_id},
        )
        return [by_name[name] for name in names if name in by_name]

    async def get_by_name(self, name: str) -> Optional[Tag]:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                "SELECT id, name, created_by, created_at FROM tags "
                "WHERE name = $1",
                name,
            )
        return Tag.model_validate(dict(row)) if row else None
