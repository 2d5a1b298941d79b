"""
Tag repository interface defined as Protocol.

Tags are shared by name across stories. ``prepare_story_tags`` mints the
tags that do not exist yet inside the caller's transaction, so a rolled
back story creation leaves no new tags behind.
"""

from typing import List, Optional, Protocol, Sequence, runtime_checkable

from storyline.domain import Tag

from .story import Transaction


@runtime_checkable
class TagRepository(Protocol):
    async def prepare_story_tags(
        self, names: Sequence[str], user_id: str, tx: Transaction
    ) -> List[Tag]:
        """Return a Tag for every name, creating missing ones.

        Args:
            names: Normalized, de-duplicated tag names
            user_id: Recorded as ``created_by`` on newly minted tags
            tx: Active transaction

        Returns:
            Tags in the order of ``names``
        """
        ...

    async def get_by_name(self, name: str) -> Optional[Tag]:
        ...
