"""
Business rules evaluated against a merged story record.

Used by updates after the payload has been applied to the stored story, so
that the rules see the record exactly as it would be persisted.
"""

from typing import List

from .story import Story, StoryStatus

STATUSES_REQUIRING_DETAILS = (StoryStatus.APPROVED, StoryStatus.PUBLISHED)


def validate_business_rules(story: Story) -> List[str]:
    """Return the list of violated rules; empty means the record is valid."""
    errors: List[str] = []

    if not story.title or not story.title.strip():
        errors.append("title is required")

    if story.status in STATUSES_REQUIRING_DETAILS and not (
        story.details and story.details.strip()
    ):
        errors.append(f"details are required for status {story.status.value}")

    if (story.latitude is None) != (story.longitude is None):
        errors.append("latitude and longitude must be provided together")
    if story.latitude is not None and not -90 <= story.latitude <= 90:
        errors.append("latitude must be between -90 and 90")
    if story.longitude is not None and not -180 <= story.longitude <= 180:
        errors.append("longitude must be between -180 and 180")

    if story.from_time and story.to_time and story.from_time >= story.to_time:
        errors.append("from_time must be before to_time")

    if story.parent_id is not None and story.parent_id == story.id:
        errors.append("a story cannot be its own parent")

    return errors
