"""
Access policy for stories.

Decides whether a user may view or mutate a story based on ownership,
role, the story's visibility flags and the configured restricted types and
statuses. All checks raise ``PermissionDenied`` on refusal and return
``None`` otherwise, so callers can chain them before opening a
transaction.
"""

import logging
from typing import Optional, Union

from storyline.errors import PermissionDenied
from storyline.settings import SecuritySettings

from .story import Story, StoryStatus, User

logger = logging.getLogger(__name__)


def _value(item: Union[str, object]) -> str:
    return str(getattr(item, "value", item))


class AccessPolicy:
    """Ownership and role checks for the story lifecycle."""

    def __init__(self, settings: Optional[SecuritySettings] = None) -> None:
        self.settings = settings or SecuritySettings()

    def is_privileged(self, user: User) -> bool:
        return _value(user.role) in self.settings.privileged_roles

    def is_owner(self, story: Story, user: User) -> bool:
        return story.user_id == user.id

    def is_restricted_type(self, story_type: object) -> bool:
        return _value(story_type) in self.settings.restricted_types

    def is_restricted_status(self, status: object) -> bool:
        return _value(status) in self.settings.restricted_statuses

    def owner_policy(self, story: Story, user: User) -> None:
        """Allow the owner and privileged roles."""
        if self.is_privileged(user) or self.is_owner(story, user):
            return
        logger.info(
            "Owner policy denied access",
            extra={"story_id": story.id, "user_id": user.id},
        )
        raise PermissionDenied("Access denied", code="ACCESS_DENIED")

    def is_owner_policy(self, story: Story, user: User) -> None:
        """Ownership gate used by deletion flows."""
        self.owner_policy(story, user)

    def check_view_access(
        self, story: Story, user: User, include_private: bool = False
    ) -> None:
        requires_ownership = (
            self.is_restricted_type(story.type)
            or story.status == StoryStatus.DRAFT
            or story.is_private
            or include_private
        )
        if requires_ownership:
            self.owner_policy(story, user)

        privileged = self.is_privileged(user)
        if story.status == StoryStatus.DELETED and not privileged:
            raise PermissionDenied(
                "Access denied to deleted story", code="STORY_ACCESS_DENIED"
            )

        restricted = self.is_restricted_type(
            story.type
        ) or self.is_restricted_status(story.status)
        if restricted and not privileged and not self.is_owner(story, user):
            raise PermissionDenied(
                "Access denied to this story", code="STORY_ACCESS_DENIED"
            )

    def check_creation(
        self, user: User, story_type: object, status: object
    ) -> None:
        if self.is_privileged(user):
            return
        if story_type is not None and self.is_restricted_type(story_type):
            raise PermissionDenied(
                f"Cannot create stories of type {_value(story_type)}"
            )
        if status is not None and self.is_restricted_status(status):
            raise PermissionDenied(
                f"Cannot create stories with status {_value(status)}"
            )

    def check_update(
        self, story: Story, user: User, changes: dict
    ) -> None:
        """Ownership plus restricted-field and restricted-status checks."""
        self.owner_policy(story, user)
        if self.is_privileged(user):
            return
        if "type" in changes or "parent_id" in changes:
            raise PermissionDenied("Cannot update restricted fields")
        status = changes.get("status")
        if status is not None and self.is_restricted_status(status):
            raise PermissionDenied(f"Cannot set status to {_value(status)}")

    def check_deletion(
        self, story: Story, user: User, permanent: bool
    ) -> None:
        self.is_owner_policy(story, user)
        if permanent and not self.is_privileged(user):
            raise PermissionDenied(
                "Only super admins can permanently delete stories"
            )
