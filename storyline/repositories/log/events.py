"""EventPublisher that writes each domain event to the application log."""

import logging

from storyline.domain import DomainEvent
from storyline.repositories.events import EventPublisher

logger = logging.getLogger(__name__)


class LogEventPublisher(EventPublisher):
    def __init__(self, level: int = logging.INFO) -> None:
        self.level = level

    async def publish(self, event: DomainEvent) -> None:
        logger.log(
            self.level,
            "Domain event published",
            extra={
                "event_name": event.name,
                "event_payload": event.payload,
                "occurred_at": event.occurred_at.isoformat(),
            },
        )
