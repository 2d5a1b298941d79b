"""
PostgreSQL implementation of AttachmentRepository.
"""

import logging
from typing import List, Optional, Sequence

from asyncpg import Pool

from storyline.domain import Attachment
from storyline.repositories.attachment import AttachmentRepository
from storyline.repositories.story import Transaction

from .transaction import connection_for

logger = logging.getLogger(__name__)


class PostgreSQLAttachmentRepository(AttachmentRepository):
    def __init__(self, pool: Pool):
        self.pool = pool
        logger.debug("Initialized PostgreSQLAttachmentRepository")

    async def get(self, attachment_id: int) -> Optional[Attachment]:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                "SELECT * FROM attachments WHERE id = $1", attachment_id
            )
        return Attachment.model_validate(dict(row)) if row else None

    async def get_many(
        self, attachment_ids: Sequence[int], tx: Optional[Transaction] = None
    ) -> List[Attachment]:
        """Retrieves attachments by their IDs; unknown ids are skipped."""
        if not attachment_ids:
            return []
        async with connection_for(self.pool, tx) as conn:
            rows = await conn.fetch(
                "SELECT * FROM attachments WHERE id = ANY($1::int[])",
                list(attachment_ids),
            )
        logger.debug(
            "Loaded attachments",
            extra={"requested": len(attachment_ids), "found": len(rows)},
        )
        return [Attachment.model_validate(dict(row)) for row in rows]
