"""
Use case logic for the story lifecycle: list, get, create, update and
remove stories.

This module contains the orchestration for every story operation. It
composes the access policy, the status workflow, the attachment graph
validator, the cache gateway and the creation rate limiter around the
story repository's transactions. Dependencies are injected via the
constructor following the Clean Architecture principles.
"""

import logging
import math
from datetime import datetime, timedelta, timezone
from typing import (
    Any,
    Dict,
    List,
    Mapping,
    Optional,
    Tuple,
    Type,
    TypeVar,
    Union,
)

from pydantic import BaseModel, ValidationError

from storyline.domain import (
    AccessPolicy,
    CreateStoryRequest,
    GetStoryQuery,
    RemoveStoryQuery,
    Story,
    StoryFilter,
    StoryListQuery,
    StoryPriority,
    StoryStatus,
    StoryType,
    UpdateStoryRequest,
    User,
    normalize_list_query,
)
from storyline.domain.events import (
    STORY_CREATED,
    STORY_DELETED,
    STORY_DUPLICATE_DETECTED,
    STORY_UPDATED,
)
from storyline.domain.query import normalize_tags, sanitize_text
from storyline.domain.rules import validate_business_rules
from storyline.domain.state_machine import ensure_transition
from storyline.errors import (
    AlreadyDeleted,
    BusinessValidationFailed,
    DuplicateDetected,
    Gone,
    HasDependents,
    InvalidArgument,
    NotFound,
    VersionConflict,
)
from storyline.repositories import (
    ATTACHMENTS,
    RELATIONS,
    TAGS,
    AttachmentRepository,
    CacheRepository,
    EventPublisher,
    StoryRepository,
    TagRepository,
    Transaction,
    UserRepository,
)
from storyline.services import (
    CreationRateLimiter,
    StoryCacheGateway,
    publish_event,
)
from storyline.settings import StoryServiceSettings
from storyline.validation import ensure_repository_protocol

from .attachment_graph import StoryAttachmentUseCase, normalize_id
from .context import StoryContext
from .presenters import computed_properties, present_story, sanitize_for_api

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

# Fields that cannot be cleared through an update; None means "unchanged"
NON_NULLABLE_FIELDS = (
    "title",
    "type",
    "status",
    "priority",
    "is_private",
    "tags",
    "attachments",
    "metadata",
)


def _as_list(value: Union[None, str, List[str]]) -> Optional[List[str]]:
    if value is None:
        return None
    return [value] if isinstance(value, str) else list(value)


def _validate(
    model: Type[M], payload: Union[M, Mapping[str, Any], None]
) -> M:
    if isinstance(payload, model):
        return payload
    try:
        return model.model_validate(payload or {})
    except ValidationError as e:
        errors = [
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in e.errors()
        ]
        raise InvalidArgument(
            "Invalid request payload", code="VALIDATION_FAILED", details=errors
        ) from e


def parse_story_id(value: Any) -> int:
    return normalize_id(value, "story_id", code="INVALID_STORY_ID")


def parse_expected_version(value: Any) -> int:
    """Accept positive integers and digit strings."""
    return normalize_id(value, "expected_version", code="INVALID_VERSION")


class StoryLifecycleUseCase:
    """
    Use case for the full lifecycle of a story.

    Every operation takes a ``StoryContext`` carrying the authenticated
    caller and, optionally, a transaction owned by the caller. When the
    context carries a transaction, writes run inside it and this class
    neither commits nor rolls it back.

    Architectural Notes:
    - Validation and permission errors are raised before a transaction is
      opened
    - Errors raised inside a transaction roll it back before propagating
    - Cache, rate-limit, duplicate-check and event failures are logged and
      never fail the operation; confirmed limit or duplicate hits do
    """

    def __init__(
        self,
        story_repo: StoryRepository,
        tag_repo: TagRepository,
        attachment_repo: AttachmentRepository,
        user_repo: UserRepository,
        cache: Optional[CacheRepository] = None,
        publisher: Optional[EventPublisher] = None,
        settings: Optional[StoryServiceSettings] = None,
        policy: Optional[AccessPolicy] = None,
    ) -> None:
        """Initialize the story lifecycle use case.

        Args:
            story_repo: Repository for stories and their join rows
            tag_repo: Repository minting and resolving tags
            attachment_repo: Read access to attachment records
            user_repo: Resolves the acting user
            cache: Shared key-value store for listings and rate limits;
                None disables both
            publisher: Destination for domain events; None drops them
            settings: Service configuration; defaults when omitted
            policy: Access policy; built from ``settings.security`` when
                omitted
        """
        self.story_repo = ensure_repository_protocol(
            story_repo, StoryRepository  # type: ignore[type-abstract]
        )
        self.tag_repo = ensure_repository_protocol(
            tag_repo, TagRepository  # type: ignore[type-abstract]
        )
        self.user_repo = ensure_repository_protocol(
            user_repo, UserRepository  # type: ignore[type-abstract]
        )
        if cache is not None:
            cache = ensure_repository_protocol(
                cache, CacheRepository  # type: ignore[type-abstract]
            )
        if publisher is not None:
            publisher = ensure_repository_protocol(
                publisher, EventPublisher  # type: ignore[type-abstract]
            )
        self.publisher = publisher
        self.settings = settings or StoryServiceSettings()
        self.policy = policy or AccessPolicy(self.settings.security)
        self.cache_gateway = StoryCacheGateway(
            cache, self.settings.caching, self.settings.security
        )
        self.rate_limiter = CreationRateLimiter(
            cache, self.settings.rate_limit, self.policy, publisher
        )
        self.attachment_graph = StoryAttachmentUseCase(
            story_repo, attachment_repo, self.cache_gateway, self.policy
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list_stories(
        self,
        query: Union[StoryListQuery, Mapping[str, Any], None],
        context: StoryContext,
    ) -> Dict[str, Any]:
        """
        List stories visible to the caller with filtering and pagination.

        Non-privileged callers are always scoped to their own stories.
        Cacheable listings are served from the cache when present and
        stored there when non-empty.

        Returns:
            ``{"data": [...], "pagination": {...}, "meta": {...}}``

        Raises:
            InvalidArgument: Malformed paging, ids or date range
            NotFound: The caller does not exist (status 401)
        """
        normalized = (
            query
            if isinstance(query, StoryListQuery)
            else normalize_list_query(query, self.settings.listing)
        )
        cache_key: Optional[str] = None
        if not self.cache_gateway.should_bypass(normalized):
            cache_key = self.cache_gateway.list_key(
                normalized, context.current_user
            )
            cached = await self.cache_gateway.get_json(cache_key)
            if isinstance(cached, dict):
                cached["meta"] = {**cached.get("meta", {}), "cached": True}
                return cached

        user = await self._resolve_user(context)
        story_filter = self._build_filter(normalized, user)
        page = await self.story_repo.query(
            story_filter,
            normalized.order_by,
            normalized.page,
            normalized.limit,
        )

        with_stats = "stats" in normalized.include
        data = []
        for story in page.rows:
            item = sanitize_for_api(story, user, self.policy)
            if with_stats:
                item["stats"] = computed_properties(
                    story, user, self.policy, self.settings.deletion
                )
            data.append(item)

        total_pages = math.ceil(page.total / normalized.limit)
        response = {
            "data": data,
            "pagination": {
                "page": normalized.page,
                "limit": normalized.limit,
                "total": page.total,
                "total_pages": total_pages,
                "has_next": normalized.page < total_pages,
                "has_prev": normalized.page > 1,
            },
            "meta": {
                "cached": False,
                "order_by": normalized.order_by.model_dump(),
                "filters_applied": story_filter.applied_count,
            },
        }

        if cache_key and data:
            await self.cache_gateway.set_json(cache_key, response)

        logger.debug(
            "Listed stories",
            extra={
                "user_id": user.id,
                "total": page.total,
                "page": normalized.page,
                "cache_key": cache_key,
            },
        )
        return response

    async def get_story_by_id(
        self,
        story_id: Any,
        query: Union[GetStoryQuery, Mapping[str, Any], None],
        context: StoryContext,
    ) -> Dict[str, Any]:
        """
        Retrieve one story shaped as ``minimal``, ``summary`` or ``full``.

        Raises:
            InvalidArgument: ``story_id`` is not a positive integer
            NotFound: Missing, or soft-deleted without ``include_deleted``
            PermissionDenied: The access policy hides the story
        """
        normalized_id = parse_story_id(story_id)
        options = _validate(GetStoryQuery, query)
        user = context.current_user

        relations = [r for r in RELATIONS if r in options.include] or RELATIONS
        story = await self.story_repo.find_by_id(
            normalized_id, relations, include_deleted=options.include_deleted
        )
        if story is None:
            raise NotFound("Story not found")

        self.policy.check_view_access(story, user, options.include_private)
        return present_story(
            story, user, self.policy, options.format, self.settings.deletion
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create_story(
        self,
        payload: Union[CreateStoryRequest, Mapping[str, Any]],
        context: StoryContext,
    ) -> Dict[str, Any]:
        """
        Create a story with its tags and attachments in one transaction.

        The steps run in this order, each able to abort the call:

        1. Resolve the acting user
        2. Sanitize text and apply defaults (owner, ``DRAFT``, version 1)
        3. Check type and status creation permissions
        4. Count the creation against the caller's rate limit
        5. Reject a same-title story created by the caller in the
           duplicate window
        6. Validate the attachment graph
        7. Mint tags and insert story plus join rows, then commit

        Raises:
            NotFound: The caller does not exist (status 401)
            InvalidArgument: Blank title, ``DELETED`` status or bad ids
            PermissionDenied: Restricted type/status or foreign attachment
            RateLimitExceeded: Creation ceiling reached
            DuplicateDetected: Same title within the duplicate window
            BusinessValidationFailed: The new record breaks a rule
        """
        request = _validate(CreateStoryRequest, payload)
        user = await self._resolve_user(context)

        title = sanitize_text(request.title, self.settings.title_max_length)
        if not title:
            raise InvalidArgument(
                "Story title is required", code="INVALID_TITLE"
            )
        if request.status == StoryStatus.DELETED:
            raise InvalidArgument(
                "Stories cannot be created as DELETED", code="INVALID_STATUS"
            )

        now = datetime.now(timezone.utc)
        story = Story(
            title=title,
            details=sanitize_text(
                request.details, self.settings.details_max_length
            )
            or None,
            type=request.type or StoryType.STORY,
            status=request.status or StoryStatus.DRAFT,
            priority=request.priority or StoryPriority.NORMAL,
            user_id=user.id,
            last_modified_by=user.id,
            parent_id=request.parent_id,
            country_id=request.country_id,
            is_private=request.is_private,
            from_time=request.from_time,
            to_time=request.to_time,
            metadata=request.metadata or {},
            version=1,
            created_at=now,
            updated_at=now,
        )
        if request.location is not None:
            story.apply_location(request.location)

        errors = validate_business_rules(story)
        if errors:
            raise BusinessValidationFailed(errors)

        self.policy.check_creation(user, request.type, request.status)
        await self.rate_limiter.check_and_increment(user)
        await self._check_duplicate(user, title, now)

        tag_names = normalize_tags(request.tags)
        attachment_ids = await self.attachment_graph.prepare_attachment_graph(
            request.attachments, context.transaction, owner=user
        )

        tx, external = await self._begin(context)
        try:
            tags = (
                await self.tag_repo.prepare_story_tags(tag_names, user.id, tx)
                if tag_names
                else []
            )
            created = await self.story_repo.insert(
                story, [tag.id for tag in tags], attachment_ids, tx
            )
            if not external:
                await tx.commit()
        except Exception:
            if not external:
                await self._rollback(tx, "create_story", None)
            raise

        await self.cache_gateway.invalidate(user.id)
        logger.info(
            "Story created",
            extra={
                "story_id": created.id,
                "user_id": user.id,
                "status": created.status.value,
                "type": created.type.value,
            },
        )
        await publish_event(
            self.publisher,
            STORY_CREATED,
            {
                "story_id": created.id,
                "user_id": user.id,
                "status": created.status.value,
                "type": created.type.value,
            },
        )
        return sanitize_for_api(created, user, self.policy)

    async def update_story(
        self,
        story_id: Any,
        payload: Union[UpdateStoryRequest, Mapping[str, Any]],
        context: StoryContext,
    ) -> Dict[str, Any]:
        """
        Apply a partial update under optimistic locking.

        The stored record is only written when its version still equals
        ``expected_version`` (or the version read at the start of the call
        when the caller supplied none). The write bumps ``version`` by
        exactly one.

        Raises:
            InvalidArgument: Bad id or ``expected_version``
            NotFound: The story does not exist
            Gone: The story is soft-deleted
            PermissionDenied: Not the owner, restricted field or status
            VersionConflict: ``expected_version`` is stale
            InvalidStatusTransition: Status change not in the workflow
            BusinessValidationFailed: The merged record breaks a rule
        """
        normalized_id = parse_story_id(story_id)
        request = _validate(UpdateStoryRequest, payload)
        user = context.current_user

        existing = await self.story_repo.find_by_id(
            normalized_id, RELATIONS, include_deleted=True
        )
        if existing is None:
            raise NotFound("Story not found")
        if existing.is_deleted:
            raise Gone("Cannot update deleted story")

        changes = request.supplied()
        expected_version = changes.pop("expected_version", None)
        if expected_version is not None:
            expected_version = parse_expected_version(expected_version)
        for name in NON_NULLABLE_FIELDS:
            if name in changes and changes[name] is None:
                del changes[name]

        if "title" in changes:
            changes["title"] = sanitize_text(
                changes["title"], self.settings.title_max_length
            )
            if not changes["title"]:
                raise BusinessValidationFailed(["title is required"])
        if "details" in changes:
            changes["details"] = sanitize_text(
                changes["details"], self.settings.details_max_length
            )

        # Workflow errors take precedence over restricted-status refusals
        self.policy.owner_policy(existing, user)
        if (
            expected_version is not None
            and expected_version != existing.version
        ):
            raise VersionConflict(existing.version, expected_version)
        if "status" in changes:
            ensure_transition(existing.status, changes["status"])
        self.policy.check_update(existing, user, changes)

        version_predicate = (
            expected_version
            if expected_version is not None
            else existing.version
        )

        tx, external = await self._begin(context)
        try:
            tag_ids = None
            if "tags" in changes:
                names = normalize_tags(changes.pop("tags"))
                tags = (
                    await self.tag_repo.prepare_story_tags(names, user.id, tx)
                    if names
                    else []
                )
                tag_ids = [tag.id for tag in tags]

            attachment_ids = None
            if "attachments" in changes:
                attachment_ids = (
                    await self.attachment_graph.prepare_attachment_graph(
                        changes.pop("attachments"), tx, owner=user
                    )
                )

            location = changes.pop("location", None)
            merged_data = existing.model_dump()
            merged_data.update(changes)
            merged_data.update(
                version=existing.version + 1,
                updated_at=datetime.now(timezone.utc),
                last_modified_by=user.id,
            )
            merged = Story.model_validate(merged_data)
            if location is not None:
                merged.apply_location(location)

            errors = validate_business_rules(merged)
            if errors:
                raise BusinessValidationFailed(errors)

            updated = await self.story_repo.update(
                merged, tx, version_predicate, tag_ids, attachment_ids
            )
            if updated is None:
                current = await self.story_repo.find_by_id(
                    normalized_id, relations=(), include_deleted=True
                )
                raise VersionConflict(
                    current.version if current else None, version_predicate
                )
            if not external:
                await tx.commit()
        except Exception:
            if not external:
                await self._rollback(tx, "update_story", normalized_id)
            raise

        if existing.status != updated.status:
            logger.info(
                "Story status changed",
                extra={
                    "story_id": normalized_id,
                    "from_status": existing.status.value,
                    "to_status": updated.status.value,
                    "user_id": user.id,
                },
            )
        await self.cache_gateway.invalidate(existing.user_id)
        await publish_event(
            self.publisher,
            STORY_UPDATED,
            {
                "story_id": normalized_id,
                "user_id": user.id,
                "previous_status": existing.status.value,
                "new_status": updated.status.value,
                "version": updated.version,
            },
        )
        return sanitize_for_api(updated, user, self.policy)

    async def remove_story(
        self,
        story_id: Any,
        query: Union[RemoveStoryQuery, Mapping[str, Any], None],
        context: StoryContext,
    ) -> Dict[str, Any]:
        """
        Soft-delete or permanently delete a story.

        Soft delete marks the row ``DELETED`` through the version-checked
        update path. Permanent delete removes the tag and attachment join
        rows and then the story row; tag and attachment records survive.

        Returns:
            ``{"story_id", "deletion_type", "deleted_at", "can_recover"}``

        Raises:
            NotFound: The story does not exist
            PermissionDenied: Not the owner, or permanent without privilege
            AlreadyDeleted: Soft delete of a soft-deleted story
            BusinessValidationFailed: Status not deletable, or a published
                story without a reason
            HasDependents: Child stories exist (soft delete only)
            VersionConflict: The story changed concurrently
        """
        normalized_id = parse_story_id(story_id)
        options = _validate(RemoveStoryQuery, query)
        user = context.current_user
        permanent = options.permanent

        story = await self.story_repo.find_by_id(
            normalized_id, RELATIONS, include_deleted=True
        )
        if story is None:
            raise NotFound("Story not found")

        self.policy.check_deletion(story, user, permanent)
        if story.is_deleted and not permanent:
            raise AlreadyDeleted("Story is already deleted")
        await self._check_deletion_rules(story, user, options)

        now = datetime.now(timezone.utc)
        tx, external = await self._begin(context)
        try:
            if permanent:
                await self.story_repo.delete_relations(normalized_id, TAGS, tx)
                await self.story_repo.delete_relations(
                    normalized_id, ATTACHMENTS, tx
                )
                await self.story_repo.delete(normalized_id, tx)
            else:
                deleted = story.model_copy(
                    update={
                        "status": StoryStatus.DELETED,
                        "deleted_at": now,
                        "deleted_by": user.id,
                        "deletion_reason": options.reason
                        or self.settings.deletion.default_reason,
                        "version": story.version + 1,
                        "updated_at": now,
                        "last_modified_by": user.id,
                    }
                )
                stored = await self.story_repo.update(
                    deleted, tx, story.version
                )
                if stored is None:
                    current = await self.story_repo.find_by_id(
                        normalized_id, relations=(), include_deleted=True
                    )
                    raise VersionConflict(
                        current.version if current else None, story.version
                    )
            if not external:
                await tx.commit()
        except Exception:
            if not external:
                await self._rollback(tx, "remove_story", normalized_id)
            raise

        deletion_type = "permanent" if permanent else "soft"
        await self.cache_gateway.invalidate(story.user_id)
        logger.info(
            "Story deletion processed",
            extra={
                "story_id": normalized_id,
                "deletion_type": deletion_type,
                "user_id": user.id,
            },
        )
        await publish_event(
            self.publisher,
            STORY_DELETED,
            {
                "story_id": normalized_id,
                "user_id": user.id,
                "deletion_type": deletion_type,
            },
        )
        return {
            "story_id": normalized_id,
            "deletion_type": deletion_type,
            "deleted_at": now.isoformat(),
            "can_recover": not permanent,
        }

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _resolve_user(self, context: StoryContext) -> User:
        user = await self.user_repo.get(context.current_user.id)
        if user is None or not user.is_active:
            raise NotFound(
                "User not found or inactive",
                code="USER_NOT_FOUND",
                status_code=401,
            )
        return user

    def _build_filter(self, query: StoryListQuery, user: User) -> StoryFilter:
        privileged = self.policy.is_privileged(user)
        return StoryFilter(
            statuses=_as_list(query.status),
            types=_as_list(query.type),
            priorities=_as_list(query.priority),
            tags=query.tags or None,
            country_id=query.country_id,
            user_id=query.user_id if privileged else user.id,
            created_from=query.date_from,
            created_to=query.date_to,
            term=query.term,
            include_deleted=query.include_deleted and privileged,
        )

    async def _check_duplicate(
        self, user: User, title: str, now: datetime
    ) -> None:
        since = now - timedelta(hours=self.settings.duplicate_window_hours)
        try:
            existing = await self.story_repo.find_recent_duplicate(
                user.id, title, since
            )
        except Exception as e:
            logger.warning(
                "Story duplicate check failed",
                extra={"user_id": user.id, "error_message": str(e)},
            )
            return
        if existing is None:
            return

        assert existing.id is not None
        await publish_event(
            self.publisher,
            STORY_DUPLICATE_DETECTED,
            {
                "user_id": user.id,
                "existing_story_id": existing.id,
                "title": title,
            },
        )
        raise DuplicateDetected(existing.id)

    async def _check_deletion_rules(
        self, story: Story, user: User, options: RemoveStoryQuery
    ) -> None:
        """Status allow-list, dependent stories and published reason.

        Permanent deletion bypasses all three.
        """
        if options.permanent:
            return

        deletable = self.settings.deletion.deletable_statuses
        if (
            story.status.value not in deletable
            and not self.policy.is_privileged(user)
        ):
            raise BusinessValidationFailed(
                [f"status {story.status.value} is not deletable"],
                code="INVALID_STORY_STATUS",
                message=(
                    f"Cannot delete story with status {story.status.value}. "
                    f"Only {', '.join(deletable)} stories can be deleted."
                ),
            )

        assert story.id is not None
        try:
            has_children = await self.story_repo.has_children(story.id)
        except Exception as e:
            logger.warning(
                "Story dependency check failed",
                extra={"story_id": story.id, "error_message": str(e)},
            )
            has_children = False
        if has_children:
            raise HasDependents(
                "Cannot delete story that has child stories. Delete child "
                "stories first or use permanent deletion.",
                details={"has_child_stories": True},
            )

        if story.status == StoryStatus.PUBLISHED and not options.reason:
            raise BusinessValidationFailed(
                ["deletion reason is required for published stories"],
                code="DELETION_REASON_REQUIRED",
                message="Deletion reason is required for published stories",
            )

    async def _begin(self, context: StoryContext) -> Tuple[Transaction, bool]:
        if context.transaction is not None:
            return context.transaction, True
        return await self.story_repo.start_transaction(), False

    async def _rollback(
        self, tx: Transaction, operation: str, story_id: Optional[int]
    ) -> None:
        try:
            await tx.rollback()
        except Exception as e:
            logger.warning(
                "Rollback failed",
                extra={
                    "operation": operation,
                    "story_id": story_id,
                    "error_message": str(e),
                },
            )
