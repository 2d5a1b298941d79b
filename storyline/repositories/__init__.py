"""
Repository ports for storyline.

Each port is a ``@runtime_checkable`` Protocol. Adapters live in the
``memory``, ``postgresql`` and ``redis`` subpackages.
"""

from .attachment import AttachmentRepository
from .cache import CacheRepository
from .events import EventPublisher
from .story import (
    ATTACHMENTS,
    RELATIONS,
    TAGS,
    StoryRepository,
    Transaction,
)
from .tag import TagRepository
from .user import UserRepository

__all__ = [
    "ATTACHMENTS",
    "AttachmentRepository",
    "CacheRepository",
    "EventPublisher",
    "RELATIONS",
    "StoryRepository",
    "TAGS",
    "TagRepository",
    "Transaction",
    "UserRepository",
]
