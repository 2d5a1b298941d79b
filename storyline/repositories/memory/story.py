"""
Memory implementation of StoryRepository.

Story rows are kept in a dictionary keyed by id without their relations;
join rows live in per-relation dictionaries mapping a story id to the
ordered list of related ids. Relations are hydrated from the tag and
attachment repositories on read.

Every write snapshots the rows it is about to touch and registers a
restore callback on the transaction. The version predicate in ``update``
reads, compares and writes without awaiting, so it is atomic with respect
to other coroutines on the event loop.
"""

import itertools
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from storyline.domain import OrderBy, Story, StoryFilter, StoryPage
from storyline.repositories.story import (
    ATTACHMENTS,
    RELATIONS,
    TAGS,
    StoryRepository,
    Transaction,
)

from .attachment import MemoryAttachmentRepository
from .tag import MemoryTagRepository
from .transaction import MemoryTransaction, record_write

logger = logging.getLogger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class MemoryStoryRepository(StoryRepository):
    """
    Memory implementation of StoryRepository using Python dictionaries.

    - Stories: dictionary keyed by story id holding relation-free rows
    - Links: ``{"tags": {story_id: [tag_id, ...]}, "attachments": {...}}``
    """

    def __init__(
        self,
        tag_repo: Optional[MemoryTagRepository] = None,
        attachment_repo: Optional[MemoryAttachmentRepository] = None,
    ) -> None:
        self.tag_repo = tag_repo or MemoryTagRepository()
        self.attachment_repo = attachment_repo or MemoryAttachmentRepository()
        self.storage_dict: Dict[int, Story] = {}
        self.links: Dict[str, Dict[int, List[int]]] = {
            relation: {} for relation in RELATIONS
        }
        self._ids = itertools.count(1)
        self.find_calls = 0
        self.query_calls = 0

        logger.debug("Initializing MemoryStoryRepository")

    async def start_transaction(self) -> Transaction:
        return MemoryTransaction()

    async def find_by_id(
        self,
        story_id: int,
        relations: Sequence[str] = RELATIONS,
        include_deleted: bool = False,
    ) -> Optional[Story]:
        self.find_calls += 1
        row = self.storage_dict.get(story_id)
        if row is None or (row.is_deleted and not include_deleted):
            return None
        return self._hydrate(row, relations)

    async def query(
        self,
        story_filter: StoryFilter,
        order_by: OrderBy,
        page: int,
        limit: int,
    ) -> StoryPage:
        self.query_calls += 1
        matches = [
            row
            for row in self.storage_dict.values()
            if self._matches(row, story_filter)
        ]
        matches.sort(key=lambda row: row.id or 0)
        matches.sort(
            key=lambda row: _sort_key(getattr(row, order_by.field, None)),
            reverse=order_by.direction == "desc",
        )
        offset = (page - 1) * limit
        rows = [
            self._hydrate(row, RELATIONS)
            for row in matches[offset : offset + limit]
        ]
        logger.debug(
            "Queried stories",
            extra={"total": len(matches), "page": page, "limit": limit},
        )
        return StoryPage(rows=rows, total=len(matches))

    async def insert(
        self,
        story: Story,
        tag_ids: Sequence[int],
        attachment_ids: Sequence[int],
        tx: Transaction,
    ) -> Story:
        story_id = next(self._ids)
        self._snapshot(story_id, tx)
        self.storage_dict[story_id] = _strip(story).model_copy(
            update={"id": story_id}
        )
        self._replace_links(story_id, TAGS, tag_ids)
        self._replace_links(story_id, ATTACHMENTS, attachment_ids)
        logger.debug(
            "Inserted story",
            extra={"story_id": story_id, "user_id": story.user_id},
        )
        return self._hydrate(self.storage_dict[story_id], RELATIONS)

    async def update(
        self,
        story: Story,
        tx: Transaction,
        expected_version: int,
        tag_ids: Optional[Sequence[int]] = None,
        attachment_ids: Optional[Sequence[int]] = None,
    ) -> Optional[Story]:
        assert story.id is not None
        current = self.storage_dict.get(story.id)
        if current is None or current.version != expected_version:
            logger.debug(
                "Version predicate matched zero rows",
                extra={
                    "story_id": story.id,
                    "expected_version": expected_version,
                    "stored_version": current.version if current else None,
                },
            )
            return None

        self._snapshot(story.id, tx)
        self.storage_dict[story.id] = _strip(story)
        if tag_ids is not None:
            self._replace_links(story.id, TAGS, tag_ids)
        if attachment_ids is not None:
            self._replace_links(story.id, ATTACHMENTS, attachment_ids)
        return self._hydrate(self.storage_dict[story.id], RELATIONS)

    async def delete(self, story_id: int, tx: Transaction) -> int:
        if story_id not in self.storage_dict:
            return 0
        self._snapshot(story_id, tx)
        del self.storage_dict[story_id]
        return 1

    async def delete_relations(
        self, story_id: int, relation: str, tx: Transaction
    ) -> int:
        existing = self.links[relation].get(story_id, [])
        if not existing:
            return 0
        self._snapshot(story_id, tx)
        return len(self.links[relation].pop(story_id))

    async def is_related(
        self, story_id: int, relation: str, related_id: int
    ) -> bool:
        return related_id in self.links[relation].get(story_id, [])

    async def relate(
        self,
        story_id: int,
        relation: str,
        related_id: int,
        tx: Optional[Transaction] = None,
    ) -> None:
        if await self.is_related(story_id, relation, related_id):
            return
        self._snapshot(story_id, tx)
        self.links[relation].setdefault(story_id, []).append(related_id)

    async def unrelate(
        self,
        story_id: int,
        relation: str,
        related_id: int,
        tx: Optional[Transaction] = None,
    ) -> int:
        if not await self.is_related(story_id, relation, related_id):
            return 0
        self._snapshot(story_id, tx)
        self.links[relation][story_id].remove(related_id)
        return 1

    async def find_recent_duplicate(
        self, user_id: str, title: str, since: datetime
    ) -> Optional[Story]:
        for row in self.storage_dict.values():
            if (
                row.user_id == user_id
                and row.title == title
                and not row.is_deleted
                and row.created_at > since
            ):
                return row
        return None

    async def has_children(self, story_id: int) -> bool:
        return any(
            row.parent_id == story_id and not row.is_deleted
            for row in self.storage_dict.values()
        )

    def _snapshot(self, story_id: int, tx: Optional[Transaction]) -> None:
        row = self.storage_dict.get(story_id)
        links = {
            relation: list(self.links[relation].get(story_id, []))
            for relation in RELATIONS
        }

        def restore() -> None:
            if row is None:
                self.storage_dict.pop(story_id, None)
            else:
                self.storage_dict[story_id] = row
            for relation, ids in links.items():
                if ids:
                    self.links[relation][story_id] = ids
                else:
                    self.links[relation].pop(story_id, None)

        record_write(tx, restore)

    def _replace_links(
        self, story_id: int, relation: str, related_ids: Sequence[int]
    ) -> None:
        ids = list(dict.fromkeys(related_ids))
        if ids:
            self.links[relation][story_id] = ids
        else:
            self.links[relation].pop(story_id, None)

    def _hydrate(self, row: Story, relations: Sequence[str]) -> Story:
        assert row.id is not None
        update: Dict[str, Any] = {}
        if TAGS in relations:
            update["tags"] = self.tag_repo.get_many(
                self.links[TAGS].get(row.id, [])
            )
        if ATTACHMENTS in relations:
            update["attachments"] = [
                self.attachment_repo.storage_dict[attachment_id]
                for attachment_id in self.links[ATTACHMENTS].get(row.id, [])
                if attachment_id in self.attachment_repo.storage_dict
            ]
        return row.model_copy(update=update, deep=True)

    def _matches(self, row: Story, story_filter: StoryFilter) -> bool:
        if row.is_deleted and not story_filter.include_deleted:
            return False
        if (
            story_filter.statuses
            and row.status.value not in story_filter.statuses
        ):
            return False
        if story_filter.types and row.type.value not in story_filter.types:
            return False
        if (
            story_filter.priorities
            and row.priority.value not in story_filter.priorities
        ):
            return False
        if story_filter.user_id and row.user_id != story_filter.user_id:
            return False
        if (
            story_filter.country_id is not None
            and row.country_id != story_filter.country_id
        ):
            return False
        created_from, created_to = (
            story_filter.created_from,
            story_filter.created_to,
        )
        if created_from and row.created_at < created_from:
            return False
        if created_to and row.created_at > created_to:
            return False
        if story_filter.term:
            term = story_filter.term.lower()
            haystack = f"{row.title} {row.details or ''}".lower()
            if term not in haystack:
                return False
        if story_filter.tags:
            assert row.id is not None
            names = {
                tag.name
                for tag in self.tag_repo.get_many(
                    self.links[TAGS].get(row.id, [])
                )
            }
            if not names.intersection(story_filter.tags):
                return False
        return True


def _strip(story: Story) -> Story:
    return story.model_copy(update={"tags": [], "attachments": []}, deep=True)


def _sort_key(value: Any) -> tuple:
    # None sorts before any value in ascending order
    if value is None:
        return (0, _EPOCH)
    if hasattr(value, "value"):
        return (1, value.value)
    return (1, value)
