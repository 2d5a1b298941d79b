"""
Story domain models.

A Story is the central entity of the lifecycle: user-submitted content that
moves through an editorial workflow. Tags and attachments are independently
owned records related to stories through join tables; users are external
identities referenced by id.

All domain models use Pydantic BaseModel for validation, serialization,
and type safety.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes as UTC so that all stored times compare."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class StoryStatus(str, Enum):
    """Workflow status of a story."""

    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    ASSIGNED = "ASSIGNED"
    IN_PROGRESS = "IN_PROGRESS"
    FOR_REVIEW_SE = "FOR_REVIEW_SE"  # Senior editor review
    APPROVED = "APPROVED"
    PUBLISHED = "PUBLISHED"
    REJECTED = "REJECTED"
    ARCHIVED = "ARCHIVED"
    DELETED = "DELETED"  # Set by soft delete only


class StoryType(str, Enum):
    STORY = "STORY"
    REPORT = "REPORT"
    INTERNAL = "INTERNAL"


class StoryPriority(str, Enum):
    LOW = "LOW"
    NORMAL = "NORMAL"
    HIGH = "HIGH"
    URGENT = "URGENT"


class UserRole(str, Enum):
    SUPERADMIN = "superadmin"
    ADMIN = "admin"
    EDITOR = "editor"
    USER = "user"
    ANONYMOUS = "anonymous"


class User(BaseModel):
    """Acting user as seen by the story lifecycle."""

    id: str
    name: Optional[str] = None
    email: Optional[str] = None
    role: UserRole = UserRole.USER
    is_active: bool = True

    @field_validator("id")
    @classmethod
    def id_must_not_be_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("User id cannot be empty")
        return v.strip()


class Tag(BaseModel):
    id: int
    name: str
    created_by: Optional[str] = None
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )


class Attachment(BaseModel):
    """File record owned by a user and linkable to any number of stories."""

    id: int
    user_id: Optional[str] = None
    original_name: str
    mime_type: str
    size: int = Field(ge=0)
    path: str
    category: Optional[str] = None
    is_public: bool = False
    security_status: str = "pending"
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )


class StoryLocation(BaseModel):
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    address: Optional[str] = None
    city: Optional[str] = None
    region: Optional[str] = None


class Story(BaseModel):
    """Complete story entity including loaded tag and attachment relations.

    ``version`` is the optimistic-lock token: it starts at 1 and grows by
    exactly one per successful mutation. ``deleted_at`` marks a soft
    delete; such stories stay in storage until permanently removed.
    """

    id: Optional[int] = None
    title: str
    details: Optional[str] = None
    type: StoryType = StoryType.STORY
    status: StoryStatus = StoryStatus.DRAFT
    priority: StoryPriority = StoryPriority.NORMAL

    # Ownership
    user_id: str
    last_modified_by: Optional[str] = None

    # Linkage and visibility
    parent_id: Optional[int] = None
    country_id: Optional[int] = None
    is_private: bool = False
    from_time: Optional[datetime] = None
    to_time: Optional[datetime] = None

    # Location
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    address: Optional[str] = None
    city: Optional[str] = None
    region: Optional[str] = None

    metadata: Dict[str, Any] = Field(default_factory=dict)
    internal_notes: Optional[str] = None

    # Concurrency and soft lifecycle
    version: int = Field(default=1, ge=1)
    deleted_at: Optional[datetime] = None
    deleted_by: Optional[str] = None
    deletion_reason: Optional[str] = None

    # Relations
    tags: List[Tag] = Field(default_factory=list)
    attachments: List[Attachment] = Field(default_factory=list)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    @field_validator(
        "from_time", "to_time", "deleted_at", "created_at", "updated_at"
    )
    @classmethod
    def times_are_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v)

    @field_validator("title")
    @classmethod
    def title_must_not_be_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Story title cannot be empty")
        return v

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def tag_ids(self) -> List[int]:
        return [tag.id for tag in self.tags]

    @property
    def attachment_ids(self) -> List[int]:
        return [attachment.id for attachment in self.attachments]

    def apply_location(self, location: StoryLocation) -> None:
        """Copy the supplied location fields onto the flat columns.

        Fields the caller left out keep their stored values; an explicit
        null clears them.
        """
        for name in location.model_fields_set:
            setattr(self, name, getattr(location, name))


class StoryPage(BaseModel):
    """One page of stories plus the total match count."""

    rows: List[Story]
    total: int = Field(ge=0)


class OrderBy(BaseModel):
    field: str = "created_at"
    direction: str = "desc"


class StoryFilter(BaseModel):
    """Resolved persistence filter for story listings.

    List-valued fields match any of their values; ``None`` means the field
    is unconstrained.
    """

    statuses: Optional[List[str]] = None
    types: Optional[List[str]] = None
    priorities: Optional[List[str]] = None
    tags: Optional[List[str]] = None
    country_id: Optional[int] = None
    user_id: Optional[str] = None
    created_from: Optional[datetime] = None
    created_to: Optional[datetime] = None
    term: Optional[str] = None
    include_deleted: bool = False

    @property
    def applied_count(self) -> int:
        return sum(
            1
            for name, value in self
            if name != "include_deleted" and value is not None
        )
