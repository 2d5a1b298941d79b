"""
Memory implementation of TagRepository.

Tags live in a dictionary keyed by id with a name index. Tags minted during
a transaction are removed again if that transaction rolls back.
"""

import itertools
import logging
from typing import Dict, Iterable, List, Optional, Sequence

from storyline.domain import Tag
from storyline.repositories.story import Transaction
from storyline.repositories.tag import TagRepository

from .transaction import record_write

logger = logging.getLogger(__name__)


class MemoryTagRepository(TagRepository):
    def __init__(self) -> None:
        self.storage_dict: Dict[int, Tag] = {}
        self._by_name: Dict[str, int] = {}
        self._ids = itertools.count(1)

    async def prepare_story_tags(
        self, names: Sequence[str], user_id: str, tx: Transaction
    ) -> List[Tag]:
        tags: List[Tag] = []
        for name in names:
            existing = self._by_name.get(name)
            if existing is not None:
                tags.append(self.storage_dict[existing])
                continue

            tag = Tag(id=next(self._ids), name=name, created_by=user_id)
            self.storage_dict[tag.id] = tag
            self._by_name[name] = tag.id
            record_write(tx, self._forget(tag))
            logger.debug(
                "Minted tag",
                extra={"tag_id": tag.id, "tag_name": name, "user_id": user_id},
            )
            tags.append(tag)
        return tags

    async def get_by_name(self, name: str) -> Optional[Tag]:
        tag_id = self._by_name.get(name)
        return self.storage_dict.get(tag_id) if tag_id is not None else None

    def get_many(self, tag_ids: Iterable[int]) -> List[Tag]:
        return [
            self.storage_dict[tag_id]
            for tag_id in tag_ids
            if tag_id in self.storage_dict
        ]

    def _forget(self, tag: Tag):
        def undo() -> None:
            self.storage_dict.pop(tag.id, None)
            self._by_name.pop(tag.name, None)

        return undo
