"""
Story attachment links API router.

Routes (mounted with the ``/stories`` prefix):
- PUT /{story_id}/attachments/{attachment_id} - Link an attachment
- DELETE /{story_id}/attachments/{attachment_id} - Unlink an attachment
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends

from storyline.api.dependencies import (
    get_attachment_use_case,
    get_current_user,
)
from storyline.domain import User
from storyline.use_cases import StoryAttachmentUseCase, StoryContext

router = APIRouter()


@router.put("/{story_id}/attachments/{attachment_id}")
async def assign_attachment(
    story_id: str,
    attachment_id: str,
    user: User = Depends(get_current_user),
    use_case: StoryAttachmentUseCase = Depends(get_attachment_use_case),
) -> Dict[str, Any]:
    result = await use_case.assign_story_attachment(
        story_id, attachment_id, StoryContext(current_user=user)
    )
    return {"data": result}


@router.delete("/{story_id}/attachments/{attachment_id}")
async def remove_attachment(
    story_id: str,
    attachment_id: str,
    user: User = Depends(get_current_user),
    use_case: StoryAttachmentUseCase = Depends(get_attachment_use_case),
) -> Dict[str, Any]:
    result = await use_case.remove_story_attachment(
        story_id, attachment_id, StoryContext(current_user=user)
    )
    return {"data": result}
