"""Memory implementation of AttachmentRepository."""

import logging
from typing import Dict, List, Optional, Sequence

from storyline.domain import Attachment
from storyline.repositories.attachment import AttachmentRepository
from storyline.repositories.story import Transaction

logger = logging.getLogger(__name__)


class MemoryAttachmentRepository(AttachmentRepository):
    def __init__(self) -> None:
        self.storage_dict: Dict[int, Attachment] = {}

    def add(self, attachment: Attachment) -> Attachment:
        """Register an attachment uploaded elsewhere."""
        self.storage_dict[attachment.id] = attachment
        return attachment

    async def get(self, attachment_id: int) -> Optional[Attachment]:
        return self.storage_dict.get(attachment_id)

    async def get_many(
        self, attachment_ids: Sequence[int], tx: Optional[Transaction] = None
    ) -> List[Attachment]:
        found = [
            self.storage_dict[attachment_id]
            for attachment_id in dict.fromkeys(attachment_ids)
            if attachment_id in self.storage_dict
        ]
        logger.debug(
            "Loaded attachments",
            extra={"requested": len(attachment_ids), "found": len(found)},
        )
        return found
