"""
Attachment graph validation and single-attachment link management.

Stories reference attachments by id through the ``story_attachments`` join
table. Before any join row is written the whole id list is validated: one
malformed or unknown id rejects the entire list.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from storyline.domain import AccessPolicy, User
from storyline.errors import InvalidArgument, NotFound, PermissionDenied
from storyline.repositories import (
    ATTACHMENTS,
    AttachmentRepository,
    StoryRepository,
    Transaction,
)
from storyline.services import StoryCacheGateway
from storyline.validation import ensure_repository_protocol

from .context import StoryContext

logger = logging.getLogger(__name__)


def normalize_id(
    value: Any, name: str = "id", code: Optional[str] = None
) -> int:
    """Return ``value`` as a positive integer or raise InvalidArgument."""
    message = f"{name} must be a positive integer"
    if isinstance(value, bool):
        raise InvalidArgument(message, code=code, details={name: value})
    if isinstance(value, int):
        parsed = value
    else:
        text = str(value).strip()
        if not (text.isascii() and text.isdigit()):
            raise InvalidArgument(message, code=code, details={name: value})
        parsed = int(text)
    if parsed < 1:
        raise InvalidArgument(message, code=code, details={name: value})
    return parsed


class StoryAttachmentUseCase:
    """
    Use case for validating and linking attachments to stories.

    The lifecycle manager uses ``prepare_attachment_graph`` while creating
    or updating a story; the HTTP layer exposes
    ``assign_story_attachment`` and ``remove_story_attachment`` for
    single-link edits.
    """

    def __init__(
        self,
        story_repo: StoryRepository,
        attachment_repo: AttachmentRepository,
        cache_gateway: Optional[StoryCacheGateway] = None,
        policy: Optional[AccessPolicy] = None,
    ) -> None:
        self.story_repo = ensure_repository_protocol(
            story_repo, StoryRepository  # type: ignore[type-abstract]
        )
        self.attachment_repo = ensure_repository_protocol(
            attachment_repo, AttachmentRepository  # type: ignore[type-abstract]
        )
        self.cache_gateway = cache_gateway or StoryCacheGateway(None)
        self.policy = policy or AccessPolicy()

    async def validate_attachment_ids(
        self,
        attachment_ids: Sequence[Any],
        tx: Optional[Transaction] = None,
        owner: Optional[User] = None,
    ) -> List[int]:
        """Normalize ids and confirm every one names a usable attachment.

        Args:
            attachment_ids: Raw ids (ints or digit strings)
            tx: Transaction to read through, if any
            owner: When given and not privileged, only attachments owned
                by this user or marked public are accepted

        Raises:
            InvalidArgument: Any id is malformed or unknown
            PermissionDenied: Any attachment belongs to someone else
        """
        normalized = [
            normalize_id(value, "attachment_id", code="INVALID_ATTACHMENT_IDS")
            for value in attachment_ids
        ]
        unique = list(dict.fromkeys(normalized))

        existing = await self.attachment_repo.get_many(unique, tx)
        if len(existing) != len(unique):
            missing = sorted(set(unique) - {a.id for a in existing})
            raise InvalidArgument(
                "One or more attachment IDs are invalid",
                code="INVALID_ATTACHMENT_IDS",
                details={"missing": missing},
            )

        if owner is not None and not self.policy.is_privileged(owner):
            foreign = sorted(
                a.id
                for a in existing
                if a.user_id != owner.id and not a.is_public
            )
            if foreign:
                raise PermissionDenied(
                    "Cannot link attachments owned by another user",
                    details={"attachment_ids": foreign},
                )
        return unique

    async def prepare_attachment_graph(
        self,
        attachment_ids: Optional[Sequence[Any]],
        tx: Optional[Transaction] = None,
        owner: Optional[User] = None,
    ) -> List[int]:
        """Return the join-row payload (validated ids) for a story write."""
        if not attachment_ids:
            return []
        return await self.validate_attachment_ids(attachment_ids, tx, owner)

    async def assign_story_attachment(
        self, story_id: Any, attachment_id: Any, context: StoryContext
    ) -> Dict[str, Any]:
        user = context.current_user
        normalized_story_id = normalize_id(story_id, "story_id")
        [normalized_id] = await self.validate_attachment_ids(
            [attachment_id], context.transaction, owner=user
        )

        story = await self.story_repo.find_by_id(
            normalized_story_id, relations=()
        )
        if story is None:
            raise NotFound("Story not found")
        self.policy.owner_policy(story, user)

        if await self.story_repo.is_related(
            normalized_story_id, ATTACHMENTS, normalized_id
        ):
            return {
                "story_id": normalized_story_id,
                "attachment_id": normalized_id,
                "assigned": False,
                "reason": "Attachment already linked to story",
            }

        await self.story_repo.relate(
            normalized_story_id,
            ATTACHMENTS,
            normalized_id,
            context.transaction,
        )
        await self.cache_gateway.invalidate(story.user_id)
        logger.info(
            "Attachment linked to story",
            extra={
                "story_id": normalized_story_id,
                "attachment_id": normalized_id,
                "user_id": user.id,
            },
        )
        return {
            "story_id": normalized_story_id,
            "attachment_id": normalized_id,
            "assigned": True,
            "updated_by": user.id,
        }

    async def remove_story_attachment(
        self, story_id: Any, attachment_id: Any, context: StoryContext
    ) -> Dict[str, Any]:
        user = context.current_user
        normalized_story_id = normalize_id(story_id, "story_id")
        normalized_id = normalize_id(attachment_id, "attachment_id")

        story = await self.story_repo.find_by_id(
            normalized_story_id, relations=()
        )
        if story is None:
            raise NotFound("Story not found")
        self.policy.owner_policy(story, user)

        removed = await self.story_repo.unrelate(
            normalized_story_id,
            ATTACHMENTS,
            normalized_id,
            context.transaction,
        )
        if removed == 0:
            raise NotFound(
                "Attachment not linked to story",
                code="ATTACHMENT_NOT_LINKED",
            )

        await self.cache_gateway.invalidate(story.user_id)
        logger.info(
            "Attachment unlinked from story",
            extra={
                "story_id": normalized_story_id,
                "attachment_id": normalized_id,
                "user_id": user.id,
            },
        )
        return {
            "story_id": normalized_story_id,
            "attachment_id": normalized_id,
            "removed": True,
            "updated_by": user.id,
        }
