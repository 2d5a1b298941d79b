"""User repository interface defined as Protocol."""

from typing import Optional, Protocol, runtime_checkable

from storyline.domain import User


@runtime_checkable
class UserRepository(Protocol):
    async def get(self, user_id: str) -> Optional[User]:
        """Retrieve a user by id, or None if unknown."""
        ...
