"""
Domain layer for storyline.

Framework-independent entities, the status workflow, the access policy and
the business rules for stories. Nothing here performs I/O.
"""

from .events import DomainEvent
from .policy import AccessPolicy
from .query import StoryListQuery, normalize_list_query
from .requests import (
    CreateStoryRequest,
    GetStoryQuery,
    RemoveStoryQuery,
    UpdateStoryRequest,
)
from .story import (
    Attachment,
    OrderBy,
    Story,
    StoryFilter,
    StoryLocation,
    StoryPage,
    StoryPriority,
    StoryStatus,
    StoryType,
    Tag,
    User,
    UserRole,
)

__all__ = [
    "AccessPolicy",
    "Attachment",
    "CreateStoryRequest",
    "DomainEvent",
    "GetStoryQuery",
    "OrderBy",
    "RemoveStoryQuery",
    "Story",
    "StoryFilter",
    "StoryListQuery",
    "StoryLocation",
    "StoryPage",
    "StoryPriority",
    "StoryStatus",
    "StoryType",
    "Tag",
    "UpdateStoryRequest",
    "User",
    "UserRole",
    "normalize_list_query",
]
