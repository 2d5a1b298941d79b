"""
Cache repository interface defined as Protocol.

A string key/value store with per-key expiry and glob-style pattern
operations (``*`` and ``?`` wildcards, Redis ``MATCH`` semantics). Values
are opaque strings; callers serialize themselves.
"""

from typing import List, Optional, Protocol, runtime_checkable


@runtime_checkable
class CacheRepository(Protocol):
    async def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None when missing or expired."""
        ...

    async def set(
        self, key: str, value: str, ttl_seconds: Optional[int] = None
    ) -> None:
        """Store ``value`` under ``key``, expiring after ``ttl_seconds``."""
        ...

    async def delete_pattern(self, pattern: str) -> int:
        """Delete all keys matching ``pattern``. Returns the count."""
        ...

    async def keys(self, pattern: str) -> List[str]:
        ...
