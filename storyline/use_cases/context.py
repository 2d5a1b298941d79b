"""Call context passed to every story operation."""

from typing import Optional

from pydantic import BaseModel, ConfigDict

from storyline.domain import User
from storyline.repositories import Transaction


class StoryContext(BaseModel):
    """The authenticated caller plus an optional caller-owned transaction.

    When ``transaction`` is set, write operations run inside it and leave
    commit and rollback to the caller.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    current_user: User
    transaction: Optional[Transaction] = None
