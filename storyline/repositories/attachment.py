"""
Attachment repository interface defined as Protocol.

Attachments are uploaded and owned outside the story lifecycle; this port
only reads them so that stories can reference them by id.
"""

from typing import List, Optional, Protocol, Sequence, runtime_checkable

from storyline.domain import Attachment

from .story import Transaction


@runtime_checkable
class AttachmentRepository(Protocol):
    async def get(self, attachment_id: int) -> Optional[Attachment]:
        ...

    async def get_many(
        self, attachment_ids: Sequence[int], tx: Optional[Transaction] = None
    ) -> List[Attachment]:
        """Return the attachments that exist among ``attachment_ids``.

        Missing ids are silently absent from the result; callers compare
        lengths to detect them.
        """
        ...
