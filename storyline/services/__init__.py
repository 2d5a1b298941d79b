"""Application services shared by the story use cases."""

from .cache_gateway import StoryCacheGateway
from .events import publish_event
from .rate_limiter import CreationRateLimiter

__all__ = ["CreationRateLimiter", "StoryCacheGateway", "publish_event"]
