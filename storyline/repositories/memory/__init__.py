"""
Memory repository implementations for storyline.

Dictionary-backed adapters for every repository port. They keep the async
interfaces of the production adapters and are used by the test suite and
by the API when ``STORYLINE_BACKEND=memory``.
"""

from .attachment import MemoryAttachmentRepository
from .cache import MemoryCacheRepository
from .events import MemoryEventPublisher
from .story import MemoryStoryRepository
from .tag import MemoryTagRepository
from .transaction import MemoryTransaction
from .user import MemoryUserRepository

__all__ = [
    "MemoryAttachmentRepository",
    "MemoryCacheRepository",
    "MemoryEventPublisher",
    "MemoryStoryRepository",
    "MemoryTagRepository",
    "MemoryTransaction",
    "MemoryUserRepository",
]
