"""
Stories API router.

Routes:
- GET /stories - List stories visible to the caller
- GET /stories/{story_id} - Retrieve one story
- POST /stories - Create a story
- PATCH /stories/{story_id} - Partial update under optimistic locking
- DELETE /stories/{story_id} - Soft or permanent (``permanent=true``) delete

Classified ``StoryError``s raised by the use case propagate to the
application's exception handler.
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request, status

from storyline.api.dependencies import (
    get_current_user,
    get_lifecycle_use_case,
)
from storyline.domain import CreateStoryRequest, UpdateStoryRequest, User
from storyline.use_cases import StoryContext, StoryLifecycleUseCase

logger = logging.getLogger(__name__)

router = APIRouter()


def query_dict(request: Request) -> Dict[str, Any]:
    """Flatten query parameters; repeated keys become lists."""
    params: Dict[str, Any] = {}
    for key in request.query_params.keys():
        values = request.query_params.getlist(key)
        params[key] = values if len(values) > 1 else values[0]
    return params


@router.get("")
async def list_stories(
    request: Request,
    user: User = Depends(get_current_user),
    use_case: StoryLifecycleUseCase = Depends(get_lifecycle_use_case),
) -> Dict[str, Any]:
    return await use_case.list_stories(
        query_dict(request), StoryContext(current_user=user)
    )


@router.get("/{story_id}")
async def get_story(
    story_id: str,
    request: Request,
    user: User = Depends(get_current_user),
    use_case: StoryLifecycleUseCase = Depends(get_lifecycle_use_case),
) -> Dict[str, Any]:
    story = await use_case.get_story_by_id(
        story_id, query_dict(request), StoryContext(current_user=user)
    )
    return {"data": story}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_story(
    payload: CreateStoryRequest,
    user: User = Depends(get_current_user),
    use_case: StoryLifecycleUseCase = Depends(get_lifecycle_use_case),
) -> Dict[str, Any]:
    logger.info(
        "Story creation requested",
        extra={"user_id": user.id},
    )
    story = await use_case.create_story(
        payload, StoryContext(current_user=user)
    )
    return {"data": story}


@router.patch("/{story_id}")
async def update_story(
    story_id: str,
    payload: UpdateStoryRequest,
    user: User = Depends(get_current_user),
    use_case: StoryLifecycleUseCase = Depends(get_lifecycle_use_case),
) -> Dict[str, Any]:
    story = await use_case.update_story(
        story_id, payload, StoryContext(current_user=user)
    )
    return {"data": story}


@router.delete("/{story_id}")
async def remove_story(
    story_id: str,
    request: Request,
    user: User = Depends(get_current_user),
    use_case: StoryLifecycleUseCase = Depends(get_lifecycle_use_case),
) -> Dict[str, Any]:
    result = await use_case.remove_story(
        story_id, query_dict(request), StoryContext(current_user=user)
    )
    return {"data": result}
