"""
Fire-and-forget publication of domain events.

Publishing happens after the state change it describes has been committed,
so a failing publisher must never turn a successful operation into an
error. Failures are logged at WARNING and swallowed here, in one place.
"""

import logging
from typing import Any, Dict, Optional

from storyline.domain import DomainEvent
from storyline.repositories import EventPublisher

logger = logging.getLogger(__name__)


async def publish_event(
    publisher: Optional[EventPublisher], name: str, payload: Dict[str, Any]
) -> None:
    if publisher is None:
        return
    event = DomainEvent(name=name, payload=payload)
    try:
        await publisher.publish(event)
    except Exception as e:
        logger.warning(
            "Event publishing failed",
            extra={
                "event_name": name,
                "error_type": type(e).__name__,
                "error_message": str(e),
            },
        )
