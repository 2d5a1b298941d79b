"""
Log-backed adapters.

Used where no message broker is configured: events end up in the
application log instead of being held in memory.
"""

from .events import LogEventPublisher

__all__ = ["LogEventPublisher"]
