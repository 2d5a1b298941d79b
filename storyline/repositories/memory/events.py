"""Memory implementation of EventPublisher that records published events."""

from typing import List

from storyline.domain import DomainEvent
from storyline.repositories.events import EventPublisher


class MemoryEventPublisher(EventPublisher):
    def __init__(self) -> None:
        self.events: List[DomainEvent] = []

    async def publish(self, event: DomainEvent) -> None:
        self.events.append(event)

    def names(self) -> List[str]:
        return [event.name for event in self.events]
