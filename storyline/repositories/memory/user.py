"""Memory implementation of UserRepository."""

from typing import Dict, Optional

from storyline.domain import User
from storyline.repositories.user import UserRepository


class MemoryUserRepository(UserRepository):
    def __init__(self) -> None:
        self.storage_dict: Dict[str, User] = {}

    def add(self, user: User) -> User:
        self.storage_dict[user.id] = user
        return user

    async def get(self, user_id: str) -> Optional[User]:
        return self.storage_dict.get(user_id)
