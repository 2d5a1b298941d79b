"""
Domain events emitted by the story lifecycle.

Events are published after a successful commit through the injected
``EventPublisher`` port. Delivery is fire-and-forget.
"""

from datetime import datetime, timezone
from typing import Any, Dict

from pydantic import BaseModel, Field

STORY_CREATED = "story.created"
STORY_UPDATED = "story.updated"
STORY_DELETED = "story.deleted"
STORY_RATE_LIMITED = "story.rate_limited"
STORY_DUPLICATE_DETECTED = "story.duplicate_detected"


class DomainEvent(BaseModel):
    name: str
    payload: Dict[str, Any] = Field(default_factory=dict)
    occurred_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
