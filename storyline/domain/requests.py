"""
Request models for story operations.

These carry caller intent into the use cases. Free-text fields are not
length-constrained here: the lifecycle trims and caps them during
sanitization rather than rejecting the request. Attachment ids and
``expected_version`` are accepted loosely and normalized by the use cases
so that malformed values surface as classified ``InvalidArgument`` errors.
"""

from datetime import datetime
from typing import Any, List, Optional, Union

from pydantic import BaseModel, Field, field_validator

from .query import normalize_to_array, parse_boolean
from .story import (
    StoryLocation,
    StoryPriority,
    StoryStatus,
    StoryType,
    ensure_utc,
)


class CreateStoryRequest(BaseModel):
    """Payload for creating a story."""

    title: str
    details: Optional[str] = None
    type: Optional[StoryType] = None
    status: Optional[StoryStatus] = None
    priority: Optional[StoryPriority] = None
    parent_id: Optional[int] = None
    country_id: Optional[int] = None
    is_private: bool = False
    from_time: Optional[datetime] = None
    to_time: Optional[datetime] = None
    location: Optional[StoryLocation] = None
    tags: List[str] = Field(default_factory=list)
    attachments: List[Union[int, str]] = Field(default_factory=list)
    metadata: Optional[dict] = None

    @field_validator("from_time", "to_time")
    @classmethod
    def times_are_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v)


class UpdateStoryRequest(BaseModel):
    """Partial update of a story.

    Only fields explicitly supplied by the caller (``model_fields_set``)
    are applied. Supplying ``tags`` or ``attachments`` replaces the whole
    association set; an empty list clears it.
    """

    title: Optional[str] = None
    details: Optional[str] = None
    type: Optional[StoryType] = None
    status: Optional[StoryStatus] = None
    priority: Optional[StoryPriority] = None
    parent_id: Optional[int] = None
    country_id: Optional[int] = None
    is_private: Optional[bool] = None
    from_time: Optional[datetime] = None
    to_time: Optional[datetime] = None
    location: Optional[StoryLocation] = None
    tags: Optional[List[str]] = None
    attachments: Optional[List[Union[int, str]]] = None
    metadata: Optional[dict] = None
    expected_version: Optional[Any] = None

    @field_validator("from_time", "to_time")
    @classmethod
    def times_are_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v)

    def supplied(self) -> dict:
        """Return only the fields the caller explicitly set."""
        return {name: getattr(self, name) for name in self.model_fields_set}


class GetStoryQuery(BaseModel):
    include_deleted: bool = False
    include_private: bool = False
    format: str = "full"
    include: List[str] = Field(default_factory=list)

    @field_validator("include_deleted", "include_private", mode="before")
    @classmethod
    def parse_flags(cls, v: Any) -> bool:
        return parse_boolean(v)

    @field_validator("format", mode="before")
    @classmethod
    def normalize_format(cls, v: Any) -> str:
        value = str(v or "full").strip().lower()
        return value if value in ("minimal", "summary", "full") else "full"

    @field_validator("include", mode="before")
    @classmethod
    def normalize_include(cls, v: Any) -> List[str]:
        return normalize_to_array(v)


class RemoveStoryQuery(BaseModel):
    permanent: bool = False
    reason: Optional[str] = None

    @field_validator("permanent", mode="before")
    @classmethod
    def parse_permanent(cls, v: Any) -> bool:
        return parse_boolean(v)

    @field_validator("reason")
    @classmethod
    def strip_reason(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()[:255]
        return v or None
