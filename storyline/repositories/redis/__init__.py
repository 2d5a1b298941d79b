"""Redis adapters for storyline."""

from .cache import RedisCacheRepository

__all__ = ["RedisCacheRepository"]
