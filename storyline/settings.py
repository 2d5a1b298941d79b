"""
Configuration for the story lifecycle.

Settings are plain pydantic models with defaults matching production
behaviour. ``StoryServiceSettings.from_env()`` overlays ``STORYLINE_*``
environment variables and fails fast on malformed values.
"""

import os
from typing import List, Optional

from pydantic import BaseModel, Field


class ListSettings(BaseModel):
    default_page: int = 1
    default_limit: int = 20
    max_limit: int = 100
    default_order_field: str = "created_at"
    default_order_direction: str = "desc"
    orderable_fields: List[str] = Field(
        default_factory=lambda: [
            "id",
            "created_at",
            "updated_at",
            "title",
            "status",
            "priority",
            "to_time",
            "from_time",
        ]
    )
    max_term_length: int = 100


class CacheSettings(BaseModel):
    enabled: bool = True
    ttl: int = 300
    bypass_on_stats: bool = True
    bypass_on_search_term: bool = True
    bypass_limit: int = 50
    key_prefix: str = "stories"


class SecuritySettings(BaseModel):
    restricted_types: List[str] = Field(
        default_factory=lambda: ["REPORT", "INTERNAL"]
    )
    restricted_statuses: List[str] = Field(
        default_factory=lambda: ["PUBLISHED", "APPROVED"]
    )
    privileged_roles: List[str] = Field(
        default_factory=lambda: ["superadmin"]
    )


class RateLimitSettings(BaseModel):
    max_creations: int = 10
    privileged_max_creations: int = 100
    window_seconds: int = 3600
    key_prefix: str = "story_create_rate"


class DeletionSettings(BaseModel):
    deletable_statuses: List[str] = Field(
        default_factory=lambda: ["DRAFT", "REJECTED", "DELETED"]
    )
    default_reason: str = "User requested deletion"


class StoryServiceSettings(BaseModel):
    """Top-level settings consumed by the story use cases."""

    listing: ListSettings = Field(default_factory=ListSettings)
    caching: CacheSettings = Field(default_factory=CacheSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    deletion: DeletionSettings = Field(default_factory=DeletionSettings)
    duplicate_window_hours: int = 24
    title_max_length: int = 500
    details_max_length: int = 10000

    @classmethod
    def from_env(cls) -> "StoryServiceSettings":
        settings = cls()
        settings.caching.enabled = _get_env_bool(
            "STORYLINE_CACHE_ENABLED", settings.caching.enabled
        )
        settings.caching.ttl = _get_env_int(
            "STORYLINE_CACHE_TTL", settings.caching.ttl, minimum=1
        )
        settings.caching.bypass_limit = _get_env_int(
            "STORYLINE_CACHE_BYPASS_LIMIT",
            settings.caching.bypass_limit,
            minimum=1,
        )
        settings.listing.max_limit = _get_env_int(
            "STORYLINE_LIST_MAX_LIMIT", settings.listing.max_limit, minimum=1
        )
        settings.rate_limit.max_creations = _get_env_int(
            "STORYLINE_RATE_LIMIT_MAX",
            settings.rate_limit.max_creations,
            minimum=1,
        )
        settings.rate_limit.privileged_max_creations = _get_env_int(
            "STORYLINE_RATE_LIMIT_PRIVILEGED_MAX",
            settings.rate_limit.privileged_max_creations,
            minimum=1,
        )
        settings.rate_limit.window_seconds = _get_env_int(
            "STORYLINE_RATE_LIMIT_WINDOW",
            settings.rate_limit.window_seconds,
            minimum=1,
        )
        settings.duplicate_window_hours = _get_env_int(
            "STORYLINE_DUPLICATE_WINDOW_HOURS",
            settings.duplicate_window_hours,
            minimum=1,
        )
        return settings


def _get_env_int(
    name: str, default: int, minimum: Optional[int] = None
) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e
    if minimum is not None and value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {value}")
    return value


def _get_env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    normalized = raw.strip().lower()
    if normalized in ("1", "true", "yes", "y", "on"):
        return True
    if normalized in ("0", "false", "no", "n", "off"):
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")
