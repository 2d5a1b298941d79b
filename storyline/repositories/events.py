"""Event publisher interface defined as Protocol."""

from typing import Protocol, runtime_checkable

from storyline.domain import DomainEvent


@runtime_checkable
class EventPublisher(Protocol):
    async def publish(self, event: DomainEvent) -> None:
        """Deliver an event to subscribers.

        Implementation Notes:
        - Callers treat delivery as fire-and-forget; a raised exception
          is logged by the caller and otherwise ignored
        """
        ...
