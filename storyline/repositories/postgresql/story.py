"""
PostgreSQL implementation of StoryRepository.

Stories live in the ``stories`` table; tags and attachments are linked
through the ``story_tags`` and ``story_attachments`` join tables. The
optimistic lock is the ``WHERE id = $1 AND version = $2`` predicate on
``UPDATE``: PostgreSQL evaluates it atomically under the row lock, so a
command tag of ``UPDATE 0`` means another writer got there first.
"""

import json
import logging
from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from asyncpg import Connection, Pool, Record

from storyline.domain import (
    Attachment,
    OrderBy,
    Story,
    StoryFilter,
    StoryPage,
    Tag,
)
from storyline.repositories.story import (
    ATTACHMENTS,
    RELATIONS,
    TAGS,
    StoryRepository,
    Transaction,
)

from .transaction import PostgreSQLTransaction, affected_rows, connection_for

logger = logging.getLogger(__name__)

# Writable columns, in insert order
STORY_COLUMNS = (
    "title",
    "details",
    "type",
    "status",
    "priority",
    "user_id",
    "last_modified_by",
    "parent_id",
    "country_id",
    "is_private",
    "from_time",
    "to_time",
    "latitude",
    "longitude",
    "address",
    "city",
    "region",
    "metadata",
    "internal_notes",
    "version",
    "deleted_at",
    "deleted_by",
    "deletion_reason",
    "created_at",
    "updated_at",
)

# relation name -> (join table, related id column)
JOIN_TABLES = {
    TAGS: ("story_tags", "tag_id"),
    ATTACHMENTS: ("story_attachments", "attachment_id"),
}

SORTABLE_COLUMNS = frozenset(
    {
        "id",
        "created_at",
        "updated_at",
        "title",
        "status",
        "priority",
        "to_time",
        "from_time",
    }
)


def _story_values(story: Story) -> List[Any]:
    values = []
    for column in STORY_COLUMNS:
        value = getattr(story, column)
        if column == "metadata":
            value = json.dumps(value or {})
        elif hasattr(value, "value"):
            value = value.value
        values.append(value)
    return values


def _story_from_row(
    row: Record,
    tags: Optional[List[Tag]] = None,
    attachments: Optional[List[Attachment]] = None,
) -> Story:
    data = dict(row)
    metadata = data.get("metadata")
    if isinstance(metadata, str):
        data["metadata"] = json.loads(metadata)
    elif metadata is None:
        data["metadata"] = {}
    data["tags"] = tags or []
    data["attachments"] = attachments or []
    return Story.model_validate(data)


def _escape_like(term: str) -> str:
    return (
        term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    )


def build_where(story_filter: StoryFilter) -> Tuple[str, List[Any]]:
    """Translate a StoryFilter into a WHERE clause and its parameters."""
    clauses: List[str] = []
    params: List[Any] = []

    def param(value: Any) -> str:
        params.append(value)
        return f"${len(params)}"

    if not story_filter.include_deleted:
        clauses.append("s.deleted_at IS NULL")
    if story_filter.statuses:
        clauses.append(
            f"s.status = ANY({param(list(story_filter.statuses))}::text[])"
        )
    if story_filter.types:
        clauses.append(
            f"s.type = ANY({param(list(story_filter.types))}::text[])"
        )
    if story_filter.priorities:
        clauses.append(
            f"s.priority = ANY({param(list(story_filter.priorities))}::text[])"
        )
    if story_filter.user_id:
        clauses.append(f"s.user_id = {param(story_filter.user_id)}")
    if story_filter.country_id is not None:
        clauses.append(f"s.country_id = {param(story_filter.country_id)}")
    if story_filter.created_from:
        clauses.append(f"s.created_at >= {param(story_filter.created_from)}")
    if story_filter.created_to:
        clauses.append(f"s.created_at <= {param(story_filter.created_to)}")
    if story_filter.term:
        placeholder = param(f"%{_escape_like(story_filter.term)}%")
        clauses.append(
            f"(s.title ILIKE {placeholder} OR s.details ILIKE {placeholder})"
        )
    if story_filter.tags:
        clauses.append(
            "EXISTS (SELECT 1 FROM story_tags st "
            "JOIN tags t ON t.id = st.tag_id "
            "WHERE st.story_id = s.id "
            f"AND t.name = ANY({param(list(story_filter.tags))}::text[]))"
        )

    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    return where, params


class PostgreSQLStoryRepository(StoryRepository):
    """
    PostgreSQL implementation of StoryRepository.
    Uses PostgreSQL for persistence of stories and their join rows.
    """

    def __init__(self, pool: Pool):
        """
        Initialize with an asyncpg connection pool.

        Args:
            pool: asyncpg connection pool for database operations
        """
        self.pool = pool
        logger.debug("Initialized PostgreSQLStoryRepository")

    async def start_transaction(self) -> Transaction:
        return await PostgreSQLTransaction.begin(self.pool)

    async def find_by_id(
        self,
        story_id: int,
        relations: Sequence[str] = RELATIONS,
        include_deleted: bool = False,
    ) -> Optional[Story]:
        async with self.pool.acquire() as conn:
            return await self._fetch(
                conn, story_id, relations, include_deleted
            )

    async def query(
        self,
        story_filter: StoryFilter,
        order_by: OrderBy,
        page: int,
        limit: int,
    ) -> StoryPage:
        where, params = build_where(story_filter)
        column = (
            order_by.field
            if order_by.field in SORTABLE_COLUMNS
            else "created_at"
        )
        direction = "ASC" if order_by.direction == "asc" else "DESC"
        offset = (page - 1) * limit

        async with self.pool.acquire() as conn:
            total = await conn.fetchval(
                f"SELECT COUNT(*) FROM stories s {where}", *params
            )
            rows = await conn.fetch(
                f"""
                SELECT s.* FROM stories s {where}
                ORDER BY s.{column} {direction} NULLS LAST, s.id {direction}
                LIMIT ${len(params) + 1} OFFSET ${len(params) + 2}
                """,
                *params,
                limit,
                offset,
            )
            ids = [row["id"] for row in rows]
            tags = await self._load_tags(conn, ids)
            attachments = await self._load_attachments(conn, ids)

        stories = [
            _story_from_row(row, tags[row["id"]], attachments[row["id"]])
            for row in rows
        ]
        logger.debug(
            "Queried stories",
            extra={"total": total, "page": page, "limit": limit},
        )
        return StoryPage(rows=stories, total=total or 0)

    async def insert(
        self,
        story: Story,
        tag_ids: Sequence[int],
        attachment_ids: Sequence[int],
        tx: Transaction,
    ) -> Story:
        placeholders = ", ".join(
            f"${i}" for i in range(1, len(STORY_COLUMNS) + 1)
        )
        query = f"""
            INSERT INTO stories ({", ".join(STORY_COLUMNS)})
            VALUES ({placeholders})
            RETURNING id
        """
        async with connection_for(self.pool, tx) as conn:
            story_id = await conn.fetchval(query, *_story_values(story))
            await self._link(conn, story_id, TAGS, tag_ids)
            await self._link(conn, story_id, ATTACHMENTS, attachment_ids)
            created = await self._fetch(conn, story_id, RELATIONS, True)

        logger.info(
            "Inserted story into PostgreSQL",
            extra={"story_id": story_id, "user_id": story.user_id},
        )
        assert created is not None
        return created

    async def update(
        self,
        story: Story,
        tx: Transaction,
        expected_version: int,
        tag_ids: Optional[Sequence[int]] = None,
        attachment_ids: Optional[Sequence[int]] = None,
    ) -> Optional[Story]:
        assignments = ", ".join(
            f"{column} = ${i}" for i, column in enumerate(STORY_COLUMNS, 3)
        )
        query = f"""
            UPDATE stories SET {assignments}
            WHERE id = $1 AND version = $2
        """
        async with connection_for(self.pool, tx) as conn:
            status = await conn.execute(
                query, story.id, expected_version, *_story_values(story)
            )
            if affected_rows(status) == 0:
                logger.debug(
                    "Version predicate matched zero rows",
                    extra={
                        "story_id": story.id,
                        "expected_version": expected_version,
                    },
                )
                return None

            assert story.id is not None
            if tag_ids is not None:
                await self._unlink_all(conn, story.id, TAGS)
                await self._link(conn, story.id, TAGS, tag_ids)
            if attachment_ids is not None:
                await self._unlink_all(conn, story.id, ATTACHMENTS)
                await self._link(conn, story.id, ATTACHMENTS, attachment_ids)
            return await self._fetch(conn, story.id, RELATIONS, True)

    async def delete(self, story_id: int, tx: Transaction) -> int:
        async with connection_for(self.pool, tx) as conn:
            status = await conn.execute(
                "DELETE FROM stories WHERE id = $1", story_id
            )
        return affected_rows(status)

    async def delete_relations(
        self, story_id: int, relation: str, tx: Transaction
    ) -> int:
        async with connection_for(self.pool, tx) as conn:
            return await self._unlink_all(conn, story_id, relation)

    async def is_related(
        self, story_id: int, relation: str, related_id: int
    ) -> bool:
        table, column = JOIN_TABLES[relation]
        async with self.pool.acquire() as conn:
            return bool(
                await conn.fetchval(
                    f"SELECT EXISTS (SELECT 1 FROM {table} "
                    f"WHERE story_id = $1 AND {column} = $2)",
                    story_id,
                    related_id,
                )
            )

    async def relate(
        self,
        story_id: int,
        relation: str,
        related_id: int,
        tx: Optional[Transaction] = None,
    ) -> None:
        async with connection_for(self.pool, tx) as conn:
            await self._link(conn, story_id, relation, [related_id])

    async def unrelate(
        self,
        story_id: int,
        relation: str,
        related_id: int,
        tx: Optional[Transaction] = None,
    ) -> int:
        table, column = JOIN_TABLES[relation]
        async with connection_for(self.pool, tx) as conn:
            status = await conn.execute(
                f"DELETE FROM {table} WHERE story_id = $1 AND {column} = $2",
                story_id,
                related_id,
            )
        return affected_rows(status)

    async def find_recent_duplicate(
        self, user_id: str, title: str, since: datetime
    ) -> Optional[Story]:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                SELECT * FROM stories
                WHERE user_id = $1 AND title = $2
                  AND deleted_at IS NULL AND created_at > $3
                ORDER BY created_at DESC
                LIMIT 1
                """,
                user_id,
                title,
                since,
            )
        return _story_from_row(row) if row else None

    async def has_children(self, story_id: int) -> bool:
        async with self.pool.acquire() as conn:
            return bool(
                await conn.fetchval(
                    "SELECT EXISTS (SELECT 1 FROM stories "
                    "WHERE parent_id = $1 AND deleted_at IS NULL)",
                    story_id,
                )
            )

    async def _fetch(
        self,
        conn: Connection,
        story_id: int,
        relations: Sequence[str],
        include_deleted: bool,
    ) -> Optional[Story]:
        query = "SELECT * FROM stories WHERE id = $1"
        if not include_deleted:
            query += " AND deleted_at IS NULL"
        row = await conn.fetchrow(query, story_id)
        if row is None:
            return None
        tags = (
            (await self._load_tags(conn, [story_id]))[story_id]
            if TAGS in relations
            else []
        )
        attachments = (
            (await self._load_attachments(conn, [story_id]))[story_id]
            if ATTACHMENTS in relations
            else []
        )
        return _story_from_row(row, tags, attachments)

    async def _load_tags(
        self, conn: Connection, story_ids: List[int]
    ) -> Dict[int, List[Tag]]:
        result: Dict[int, List[Tag]] = defaultdict(list)
        if not story_ids:
            return result
        rows = await conn.fetch(
            """
            SELECT st.story_id, t.id, t.name, t.created_by, t.created_at
            FROM story_tags st JOIN tags t ON t.id = st.tag_id
            WHERE st.story_id = ANY($1::int[])
            ORDER BY st.id
            """,
            story_ids,
        )
        for row in rows:
            data = dict(row)
            result[data.pop("story_id")].append(Tag.model_validate(data))
        return result

    async def _load_attachments(
        self, conn: Connection, story_ids: List[int]
    ) -> Dict[int, List[Attachment]]:
        result: Dict[int, List[Attachment]] = defaultdict(list)
        if not story_ids:
            return result
        rows = await conn.fetch(
            """
            SELECT sa.story_id, a.*
            FROM story_attachments sa
            JOIN attachments a ON a.id = sa.attachment_id
            WHERE sa.story_id = ANY($1::int[])
            ORDER BY sa.id
            """,
            story_ids,
        )
        for row in rows:
            data = dict(row)
            result[data.pop("story_id")].append(
                Attachment.model_validate(data)
            )
        return result

    async def _link(
        self,
        conn: Connection,
        story_id: int,
        relation: str,
        related_ids: Sequence[int],
    ) -> None:
        if not related_ids:
            return
        table, column = JOIN_TABLES[relation]
        await conn.executemany(
            f"INSERT INTO {table} (story_id, {column}) VALUES ($1, $2) "
            f"ON CONFLICT (story_id, {column}) DO NOTHING",
            [(story_id, related_id) for related_id in related_ids],
        )

    async def _unlink_all(
        self, conn: Connection, story_id: int, relation: str
    ) -> int:
        table, _ = JOIN_TABLES[relation]
        status = await conn.execute(
            f"DELETE FROM {table} WHERE story_id = $1", story_id
        )
        return affected_rows(status)
