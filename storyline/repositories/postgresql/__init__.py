"""PostgreSQL implementations of storyline repositories."""

from .attachment import PostgreSQLAttachmentRepository
from .schema import create_schema
from .story import PostgreSQLStoryRepository
from .tag import PostgreSQLTagRepository
from .transaction import PostgreSQLTransaction
from .user import PostgreSQLUserRepository

__all__ = [
    "PostgreSQLAttachmentRepository",
    "PostgreSQLStoryRepository",
    "PostgreSQLTagRepository",
    "PostgreSQLTransaction",
    "PostgreSQLUserRepository",
    "create_schema",
]
