"""
Story repository interface defined as Protocol.

All repository operations in this module follow these principles:

- **Atomic version predicate**: ``update`` must compare the stored version
  with ``expected_version`` and write in one atomic step. A mismatch is
  reported as "zero rows affected" by returning ``None``; the repository
  never raises domain errors for it.

- **Transactions**: write methods take a ``Transaction`` obtained from
  ``start_transaction()``. Writes become durable on ``commit()``;
  ``rollback()`` discards every row the transaction touched (story rows
  and join rows alike).

- **Relations by identifier**: tag and attachment associations are join
  rows addressed by id. Removing a relation never removes the related Tag
  or Attachment record.

- **Domain Objects**: Methods accept and return domain objects or
  primitives, never driver-specific types.
"""

from datetime import datetime
from typing import Optional, Protocol, Sequence, runtime_checkable

from storyline.domain import OrderBy, Story, StoryFilter, StoryPage

TAGS = "tags"
ATTACHMENTS = "attachments"
RELATIONS = (TAGS, ATTACHMENTS)


@runtime_checkable
class Transaction(Protocol):
    """Unit of work handle returned by ``start_transaction``."""

    async def commit(self) -> None:
        """Make every write performed through this transaction durable."""
        ...

    async def rollback(self) -> None:
        """Discard every write performed through this transaction.

        Implementation Notes:
        - Must be safe to call after a failed write
        """
        ...


@runtime_checkable
class StoryRepository(Protocol):
    """Persistence port for stories and their join-table relations."""

    async def start_transaction(self) -> Transaction:
        """Open a new transaction."""
        ...

    async def find_by_id(
        self,
        story_id: int,
        relations: Sequence[str] = RELATIONS,
        include_deleted: bool = False,
    ) -> Optional[Story]:
        """Retrieve a story by id.

        Args:
            story_id: Story identifier
            relations: Relation names to load (``tags``, ``attachments``)
            include_deleted: Return soft-deleted stories as well

        Returns:
            Story if found (and visible under ``include_deleted``), None
            otherwise
        """
        ...

    async def query(
        self,
        story_filter: StoryFilter,
        order_by: OrderBy,
        page: int,
        limit: int,
    ) -> StoryPage:
        """Return one page of stories matching the filter and the total."""
        ...

    async def insert(
        self,
        story: Story,
        tag_ids: Sequence[int],
        attachment_ids: Sequence[int],
        tx: Transaction,
    ) -> Story:
        """Insert a story together with its join rows.

        Returns:
            The stored story with its assigned id and loaded relations
        """
        ...

    async def update(
        self,
        story: Story,
        tx: Transaction,
        expected_version: int,
        tag_ids: Optional[Sequence[int]] = None,
        attachment_ids: Optional[Sequence[int]] = None,
    ) -> Optional[Story]:
        """Replace a stored story if its version equals ``expected_version``.

        Args:
            story: Merged record to persist (already carrying the new
                version)
            tx: Active transaction
            expected_version: Version the stored row must have
            tag_ids: Replacement tag set, or None to leave tags untouched
            attachment_ids: Replacement attachment set, or None to leave
                attachments untouched

        Returns:
            The stored story, or None when zero rows matched the predicate
        """
        ...

    async def delete(self, story_id: int, tx: Transaction) -> int:
        """Delete the story row. Returns the number of rows removed."""
        ...

    async def delete_relations(
        self, story_id: int, relation: str, tx: Transaction
    ) -> int:
        """Remove every join row of ``relation`` for the story."""
        ...

    async def is_related(
        self, story_id: int, relation: str, related_id: int
    ) -> bool:
        ...

    async def relate(
        self,
        story_id: int,
        relation: str,
        related_id: int,
        tx: Optional[Transaction] = None,
    ) -> None:
        """Insert one join row. Idempotent."""
        ...

    async def unrelate(
        self,
        story_id: int,
        relation: str,
        related_id: int,
        tx: Optional[Transaction] = None,
    ) -> int:
        """Remove one join row. Returns the number of rows removed."""
        ...

    async def find_recent_duplicate(
        self, user_id: str, title: str, since: datetime
    ) -> Optional[Story]:
        """Find a non-deleted story of ``user_id`` with ``title`` created
        after ``since``."""
        ...

    async def has_children(self, story_id: int) -> bool:
        """Whether any non-deleted story references this one as parent."""
        ...
