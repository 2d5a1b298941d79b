"""
Table definitions for the PostgreSQL repositories.

``create_schema`` is idempotent and intended for development databases and
integration tests; production databases are migrated out of band.
"""

import logging

from asyncpg import Pool

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    name TEXT,
    email TEXT,
    role VARCHAR(32) NOT NULL DEFAULT 'user',
    is_active BOOLEAN NOT NULL DEFAULT TRUE
);

CREATE TABLE IF NOT EXISTS tags (
    id SERIAL PRIMARY KEY,
    name VARCHAR(200) NOT NULL UNIQUE,
    created_by TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now()
);

CREATE TABLE IF NOT EXISTS attachments (
    id SERIAL PRIMARY KEY,
    user_id TEXT,
    original_name TEXT NOT NULL,
    mime_type TEXT NOT NULL,
    size BIGINT NOT NULL DEFAULT 0,
    path TEXT NOT NULL,
    category VARCHAR(50),
    is_public BOOLEAN NOT NULL DEFAULT FALSE,
    security_status VARCHAR(32) NOT NULL DEFAULT 'pending',
    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
);

CREATE TABLE IF NOT EXISTS stories (
    id SERIAL PRIMARY KEY,
    title VARCHAR(500) NOT NULL,
    details TEXT,
    type VARCHAR(50) NOT NULL DEFAULT 'STORY',
    status VARCHAR(50) NOT NULL DEFAULT 'DRAFT',
    priority VARCHAR(16) NOT NULL DEFAULT 'NORMAL',
    user_id TEXT NOT NULL,
    last_modified_by TEXT,
    parent_id INTEGER REFERENCES stories (id) ON DELETE SET NULL,
    country_id INTEGER,
    is_private BOOLEAN NOT NULL DEFAULT FALSE,
    from_time TIMESTAMPTZ,
    to_time TIMESTAMPTZ,
    latitude DOUBLE PRECISION,
    longitude DOUBLE PRECISION,
    address VARCHAR(255),
    city VARCHAR(100),
    region VARCHAR(100),
    metadata JSONB NOT NULL DEFAULT '{}'::jsonb,
    internal_notes TEXT,
    version INTEGER NOT NULL DEFAULT 1,
    deleted_at TIMESTAMPTZ,
    deleted_by TEXT,
    deletion_reason VARCHAR(255),
    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
);

CREATE INDEX IF NOT EXISTS stories_user_id_idx ON stories (user_id);
CREATE INDEX IF NOT EXISTS stories_status_idx ON stories (status);
CREATE INDEX IF NOT EXISTS stories_deleted_at_idx ON stories (deleted_at);
CREATE INDEX IF NOT EXISTS stories_parent_id_idx ON stories (parent_id);

CREATE TABLE IF NOT EXISTS story_tags (
    id BIGSERIAL PRIMARY KEY,
    story_id INTEGER NOT NULL REFERENCES stories (id) ON DELETE CASCADE,
    tag_id INTEGER NOT NULL REFERENCES tags (id) ON DELETE CASCADE,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    UNIQUE (story_id, tag_id)
);

CREATE TABLE IF NOT EXISTS story_attachments (
    id BIGSERIAL PRIMARY KEY,
    story_id INTEGER NOT NULL REFERENCES stories (id) ON DELETE CASCADE,
    attachment_id INTEGER NOT NULL
        REFERENCES attachments (id) ON DELETE CASCADE,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    UNIQUE (story_id, attachment_id)
);
"""


async def create_schema(pool: Pool) -> None:
    """Create every table and index used by the PostgreSQL repositories."""
    async with pool.acquire() as conn:
        await conn.execute(SCHEMA_SQL)
    logger.info("Ensured storyline database schema")
