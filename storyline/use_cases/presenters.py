"""
API-safe shaping of stories.

``sanitize_for_api`` strips fields the caller may not see;
``present_story`` applies the ``minimal`` / ``summary`` / ``full`` response
formats on top of it. Output is JSON-ready (datetimes as ISO strings,
enums as values) so it can be cached as-is.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from storyline.domain import AccessPolicy, Story, StoryStatus, User
from storyline.settings import DeletionSettings

PRIVILEGED_ONLY_FIELDS = ("internal_notes",)
OWNER_ONLY_FIELDS = ("deleted_by", "deletion_reason")
MINIMAL_FIELDS = (
    "id",
    "title",
    "status",
    "type",
    "priority",
    "created_at",
    "updated_at",
)
SUMMARY_DETAILS_LENGTH = 200
NOT_EDITABLE = (StoryStatus.ARCHIVED, StoryStatus.DELETED)


def format_attachment(attachment: Any) -> Dict[str, Any]:
    return attachment.model_dump(
        mode="json",
        include={
            "id",
            "original_name",
            "mime_type",
            "size",
            "path",
            "category",
            "security_status",
            "created_at",
            "updated_at",
        },
    )


def sanitize_for_api(
    story: Story, user: User, policy: AccessPolicy
) -> Dict[str, Any]:
    data = story.model_dump(mode="json", exclude={"tags", "attachments"})
    privileged = policy.is_privileged(user)
    if not privileged:
        for field in PRIVILEGED_ONLY_FIELDS:
            data.pop(field, None)
        if not policy.is_owner(story, user):
            for field in OWNER_ONLY_FIELDS:
                data.pop(field, None)
    data["tags"] = [tag.name for tag in story.tags]
    data["attachments"] = [format_attachment(a) for a in story.attachments]
    return data


def computed_properties(
    story: Story,
    user: User,
    policy: AccessPolicy,
    deletion: Optional[DeletionSettings] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    deletion = deletion or DeletionSettings()
    now = now or datetime.now(timezone.utc)
    privileged = policy.is_privileged(user)
    owner = policy.is_owner(story, user)
    return {
        "age_in_days": (now - story.created_at).days,
        "days_since_update": (now - story.updated_at).days,
        "can_edit": (owner or privileged)
        and not story.is_deleted
        and story.status not in NOT_EDITABLE,
        "can_delete": privileged
        or (owner and story.status.value in deletion.deletable_statuses),
    }


def present_story(
    story: Story,
    user: User,
    policy: AccessPolicy,
    fmt: str = "full",
    deletion: Optional[DeletionSettings] = None,
) -> Dict[str, Any]:
    data = sanitize_for_api(story, user, policy)

    if fmt == "minimal":
        return {field: data[field] for field in MINIMAL_FIELDS}

    if fmt == "summary":
        summary = {field: data[field] for field in MINIMAL_FIELDS}
        details = story.details or ""
        if len(details) > SUMMARY_DETAILS_LENGTH:
            details = details[:SUMMARY_DETAILS_LENGTH] + "..."
        summary.update(
            details=details,
            user_id=story.user_id,
            tags_count=len(story.tags),
            attachments_count=len(story.attachments),
        )
        return summary

    data.update(computed_properties(story, user, policy, deletion))
    return data
