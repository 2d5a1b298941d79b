"""
Tests for StoryLifecycleUseCase.

The use case is wired to the memory repositories (see ``conftest.py``) so
these tests exercise the real transaction, cache and rate-limit paths.
Mocks are only used to inject infrastructure failures.
"""

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from storyline.domain import StoryStatus, StoryType
from storyline.domain.tests.factories import (
    AttachmentFactory,
    StoryFactory,
    UserFactory,
)
from storyline.errors import (
    AlreadyDeleted,
    BusinessValidationFailed,
    DuplicateDetected,
    Gone,
    HasDependents,
    InvalidArgument,
    InvalidStatusTransition,
    NotFound,
    PermissionDenied,
    RateLimitExceeded,
    VersionConflict,
)
from storyline.repositories import EventPublisher
from storyline.repositories.memory import MemoryTransaction
from storyline.use_cases import StoryLifecycleUseCase

from .conftest import ctx


async def create(use_case, user, **payload):
    payload.setdefault("title", "Flood in X")
    return await use_case.create_story(payload, ctx(user))


class TestCreateStory:
    @pytest.mark.asyncio
    async def test_applies_defaults(self, use_case, backend, owner) -> None:
        created = await create(use_case, owner, details="  River burst  ")

        assert created["status"] == "DRAFT"
        assert created["type"] == "STORY"
        assert created["priority"] == "NORMAL"
        assert created["version"] == 1
        assert created["user_id"] == owner.id
        assert created["details"] == "River burst"
        assert backend.stories.storage_dict[created["id"]].version == 1
        assert backend.events.names() == ["story.created"]

    @pytest.mark.asyncio
    async def test_mints_tags_and_links_attachments(
        self, use_case, backend, owner
    ) -> None:
        attachment = backend.attachments.add(
            AttachmentFactory(user_id=owner.id)
        )

        created = await create(
            use_case,
            owner,
            tags=["Flood", "flood", " weather "],
            attachments=[str(attachment.id)],
        )

        assert created["tags"] == ["flood", "weather"]
        assert [a["id"] for a in created["attachments"]] == [attachment.id]
        assert sorted(t.name for t in backend.tags.storage_dict.values()) == [
            "flood",
            "weather",
        ]

    @pytest.mark.asyncio
    async def test_blank_title_rejected(self, use_case, owner) -> None:
        with pytest.raises(InvalidArgument) as exc_info:
            await create(use_case, owner, title="   ")
        assert exc_info.value.code == "INVALID_TITLE"

    @pytest.mark.asyncio
    async def test_mixed_naive_and_aware_times(
        self, use_case, backend, owner
    ) -> None:
        created = await create(
            use_case,
            owner,
            from_time="2024-01-01T00:00:00",
            to_time="2024-01-02T00:00:00Z",
        )

        stored = backend.stories.storage_dict[created["id"]]
        assert stored.from_time == datetime(2024, 1, 1, tzinfo=timezone.utc)
        with pytest.raises(BusinessValidationFailed):
            await create(
                use_case,
                owner,
                title="Reversed window",
                from_time="2024-01-03T00:00:00",
                to_time="2024-01-02T00:00:00Z",
            )

    @pytest.mark.asyncio
    async def test_deleted_status_rejected(self, use_case, owner) -> None:
        with pytest.raises(InvalidArgument) as exc_info:
            await create(use_case, owner, status="DELETED")
        assert exc_info.value.code == "INVALID_STATUS"

    @pytest.mark.asyncio
    async def test_unknown_user_rejected(self, use_case) -> None:
        with pytest.raises(NotFound) as exc_info:
            await create(use_case, UserFactory())
        assert exc_info.value.code == "USER_NOT_FOUND"
        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_restricted_type_requires_privilege(
        self, use_case, backend, owner, admin
    ) -> None:
        with pytest.raises(PermissionDenied):
            await create(use_case, owner, type="REPORT")

        created = await create(use_case, admin, type="REPORT")
        assert created["type"] == "REPORT"
        assert len(backend.stories.storage_dict) == 1

    @pytest.mark.asyncio
    async def test_duplicate_title_within_window(
        self, use_case, backend, owner, stranger
    ) -> None:
        first = await create(use_case, owner)

        with pytest.raises(DuplicateDetected) as exc_info:
            await create(use_case, owner)

        assert exc_info.value.details == {"existing_story_id": first["id"]}
        assert "story.duplicate_detected" in backend.events.names()
        # Another user may reuse the title
        await create(use_case, stranger)
        assert len(backend.stories.storage_dict) == 2

    @pytest.mark.asyncio
    async def test_eleventh_creation_is_rate_limited(
        self, use_case, backend, owner
    ) -> None:
        for n in range(10):
            await create(use_case, owner, title=f"Report {n}")

        with pytest.raises(RateLimitExceeded) as exc_info:
            await create(use_case, owner, title="Report 10")

        assert exc_info.value.details["limit"] == 10
        assert len(backend.stories.storage_dict) == 10
        assert "story.rate_limited" in backend.events.names()

    @pytest.mark.asyncio
    async def test_unknown_attachment_rejects_whole_create(
        self, use_case, backend, owner
    ) -> None:
        with pytest.raises(InvalidArgument) as exc_info:
            await create(use_case, owner, attachments=[999])

        assert exc_info.value.code == "INVALID_ATTACHMENT_IDS"
        assert backend.stories.storage_dict == {}

    @pytest.mark.asyncio
    async def test_insert_failure_rolls_back_minted_tags(
        self, use_case, backend, owner, monkeypatch
    ) -> None:
        monkeypatch.setattr(
            backend.stories,
            "insert",
            AsyncMock(side_effect=RuntimeError("connection lost")),
        )

        with pytest.raises(RuntimeError, match="connection lost"):
            await create(use_case, owner, tags=["flood"])

        assert backend.tags.storage_dict == {}
        assert backend.events.names() == []

    @pytest.mark.asyncio
    async def test_external_transaction_left_open(
        self, use_case, backend, owner
    ) -> None:
        tx = MemoryTransaction()

        created = await use_case.create_story(
            {"title": "Flood in X", "tags": ["flood"]}, ctx(owner, tx)
        )

        assert tx.is_active
        assert created["id"] in backend.stories.storage_dict

        await tx.rollback()
        assert backend.stories.storage_dict == {}
        assert backend.tags.storage_dict == {}

    @pytest.mark.asyncio
    async def test_publisher_failure_does_not_fail_create(
        self, backend, owner
    ) -> None:
        publisher = MagicMock(spec=EventPublisher)
        publisher.publish = AsyncMock(side_effect=RuntimeError("broker down"))
        use_case = StoryLifecycleUseCase(
            backend.stories,
            backend.tags,
            backend.attachments,
            backend.users,
            publisher=publisher,
        )

        created = await create(use_case, owner)

        assert created["id"] in backend.stories.storage_dict
        publisher.publish.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_cache_failure_does_not_fail_create(
        self, backend, owner, monkeypatch
    ) -> None:
        use_case = StoryLifecycleUseCase(
            backend.stories,
            backend.tags,
            backend.attachments,
            backend.users,
            cache=backend.cache,
        )
        for name in ("get", "set", "delete_pattern"):
            monkeypatch.setattr(
                backend.cache,
                name,
                AsyncMock(side_effect=ConnectionError("redis down")),
            )

        created = await create(use_case, owner)

        assert created["id"] in backend.stories.storage_dict


class TestUpdateStory:
    @pytest.mark.asyncio
    async def test_version_grows_by_one_per_update(
        self, use_case, backend, owner
    ) -> None:
        created = await create(use_case, owner)
        story_id = created["id"]

        for n in range(3):
            updated = await use_case.update_story(
                story_id, {"details": f"revision {n}"}, ctx(owner)
            )

        assert updated["version"] == 4
        assert backend.stories.storage_dict[story_id].version == 4
        assert backend.events.names().count("story.updated") == 3

    @pytest.mark.asyncio
    async def test_stale_expected_version_leaves_record_untouched(
        self, use_case, backend, owner
    ) -> None:
        created = await create(use_case, owner, details="original")
        await use_case.update_story(
            created["id"], {"details": "second"}, ctx(owner)
        )

        with pytest.raises(VersionConflict) as exc_info:
            await use_case.update_story(
                created["id"],
                {"details": "stale", "expected_version": 1},
                ctx(owner),
            )

        assert exc_info.value.details == {
            "current_version": 2,
            "expected_version": 1,
        }
        stored = backend.stories.storage_dict[created["id"]]
        assert stored.details == "second"
        assert stored.version == 2

    @pytest.mark.asyncio
    async def test_predicate_miss_raises_conflict(
        self, use_case, backend, owner, monkeypatch
    ) -> None:
        created = await create(use_case, owner)
        monkeypatch.setattr(
            backend.stories, "update", AsyncMock(return_value=None)
        )

        with pytest.raises(VersionConflict):
            await use_case.update_story(
                created["id"], {"details": "racing"}, ctx(owner)
            )
        assert backend.events.names() == ["story.created"]

    @pytest.mark.asyncio
    async def test_concurrent_updates_on_same_version(
        self, use_case, backend, owner
    ) -> None:
        created = await create(use_case, owner)

        results = await asyncio.gather(
            use_case.update_story(
                created["id"],
                {"details": "first", "expected_version": 1},
                ctx(owner),
            ),
            use_case.update_story(
                created["id"],
                {"details": "second", "expected_version": "1"},
                ctx(owner),
            ),
            return_exceptions=True,
        )

        successes = [r for r in results if isinstance(r, dict)]
        conflicts = [r for r in results if isinstance(r, VersionConflict)]
        assert len(successes) == 1
        assert len(conflicts) == 1
        assert backend.stories.storage_dict[created["id"]].version == 2

    @pytest.mark.asyncio
    async def test_end_to_end_workflow(
        self, use_case, owner, stranger
    ) -> None:
        created = await create(use_case, owner)
        assert created["status"] == "DRAFT"
        assert created["version"] == 1

        submitted = await use_case.update_story(
            created["id"],
            {"status": "SUBMITTED", "expected_version": 1},
            ctx(owner),
        )
        assert submitted["status"] == "SUBMITTED"
        assert submitted["version"] == 2

        with pytest.raises(PermissionDenied):
            await use_case.update_story(
                created["id"],
                {"status": "SUBMITTED", "expected_version": 2},
                ctx(stranger),
            )

        with pytest.raises(InvalidStatusTransition) as exc_info:
            await use_case.update_story(
                created["id"],
                {"status": "PUBLISHED", "expected_version": 2},
                ctx(owner),
            )
        assert exc_info.value.details["allowed_statuses"] == [
            "DRAFT",
            "ASSIGNED",
            "REJECTED",
        ]

    @pytest.mark.asyncio
    async def test_restricted_status_needs_privilege(
        self, use_case, backend, owner, admin
    ) -> None:
        story = StoryFactory(
            user_id=owner.id,
            status=StoryStatus.FOR_REVIEW_SE,
            details="Reviewed copy",
        )
        tx = await backend.stories.start_transaction()
        stored = await backend.stories.insert(story, [], [], tx)

        with pytest.raises(PermissionDenied):
            await use_case.update_story(
                stored.id, {"status": "APPROVED"}, ctx(owner)
            )

        approved = await use_case.update_story(
            stored.id, {"status": "APPROVED"}, ctx(admin)
        )
        assert approved["status"] == "APPROVED"
        assert approved["last_modified_by"] == admin.id

    @pytest.mark.asyncio
    async def test_restricted_fields_need_privilege(
        self, use_case, owner
    ) -> None:
        created = await create(use_case, owner)

        with pytest.raises(PermissionDenied):
            await use_case.update_story(
                created["id"], {"type": "REPORT"}, ctx(owner)
            )

    @pytest.mark.asyncio
    async def test_merged_record_must_satisfy_rules(
        self, use_case, backend, owner
    ) -> None:
        created = await create(use_case, owner)

        with pytest.raises(BusinessValidationFailed):
            await use_case.update_story(
                created["id"],
                {"location": {"latitude": 95.0, "longitude": 10.0}},
                ctx(owner),
            )
        assert backend.stories.storage_dict[created["id"]].version == 1

    @pytest.mark.asyncio
    async def test_partial_location_keeps_other_fields(
        self, use_case, backend, owner
    ) -> None:
        created = await create(
            use_case,
            owner,
            location={"latitude": 1.0, "longitude": 2.0, "city": "Rome"},
        )

        await use_case.update_story(
            created["id"], {"location": {"latitude": 10.0}}, ctx(owner)
        )

        stored = backend.stories.storage_dict[created["id"]]
        assert (stored.latitude, stored.longitude) == (10.0, 2.0)
        assert stored.city == "Rome"

    @pytest.mark.asyncio
    async def test_naive_time_added_to_aware_window(
        self, use_case, backend, owner
    ) -> None:
        created = await create(
            use_case, owner, from_time="2024-01-01T00:00:00Z"
        )

        await use_case.update_story(
            created["id"],
            {"to_time": "2024-01-05T00:00:00", "expected_version": 1},
            ctx(owner),
        )
        with pytest.raises(BusinessValidationFailed):
            await use_case.update_story(
                created["id"], {"to_time": "2023-12-31T00:00:00"}, ctx(owner)
            )

        stored = backend.stories.storage_dict[created["id"]]
        assert stored.to_time == datetime(2024, 1, 5, tzinfo=timezone.utc)
        assert stored.version == 2

    @pytest.mark.asyncio
    async def test_invalid_expected_version(self, use_case, owner) -> None:
        created = await create(use_case, owner)

        with pytest.raises(InvalidArgument) as exc_info:
            await use_case.update_story(
                created["id"],
                {"details": "x", "expected_version": "abc"},
                ctx(owner),
            )
        assert exc_info.value.code == "INVALID_VERSION"

    @pytest.mark.asyncio
    async def test_replaces_tags_and_clears_attachments(
        self, use_case, backend, owner
    ) -> None:
        attachment = backend.attachments.add(
            AttachmentFactory(user_id=owner.id)
        )
        created = await create(
            use_case, owner, tags=["flood"], attachments=[attachment.id]
        )

        updated = await use_case.update_story(
            created["id"],
            {"tags": ["storm", "coast"], "attachments": []},
            ctx(owner),
        )

        assert updated["tags"] == ["storm", "coast"]
        assert updated["attachments"] == []
        assert attachment.id in backend.attachments.storage_dict

    @pytest.mark.asyncio
    async def test_null_title_means_unchanged(self, use_case, owner) -> None:
        created = await create(use_case, owner)

        updated = await use_case.update_story(
            created["id"], {"title": None, "details": "more"}, ctx(owner)
        )

        assert updated["title"] == "Flood in X"
        assert updated["details"] == "more"

    @pytest.mark.asyncio
    async def test_deleted_story_is_gone(self, use_case, owner) -> None:
        created = await create(use_case, owner)
        await use_case.remove_story(created["id"], None, ctx(owner))

        with pytest.raises(Gone):
            await use_case.update_story(
                created["id"], {"details": "late"}, ctx(owner)
            )

    @pytest.mark.asyncio
    async def test_missing_story(self, use_case, owner) -> None:
        with pytest.raises(NotFound):
            await use_case.update_story(42, {"details": "x"}, ctx(owner))


class TestRemoveStory:
    @pytest.mark.asyncio
    async def test_soft_delete_visibility(
        self, use_case, backend, owner, admin
    ) -> None:
        created = await create(use_case, owner)

        result = await use_case.remove_story(
            created["id"], {"reason": "Wrong county"}, ctx(owner)
        )

        assert result["deletion_type"] == "soft"
        assert result["can_recover"] is True
        stored = backend.stories.storage_dict[created["id"]]
        assert stored.status == StoryStatus.DELETED
        assert stored.deleted_by == owner.id
        assert stored.deletion_reason == "Wrong county"
        assert stored.version == 2

        with pytest.raises(NotFound):
            await use_case.get_story_by_id(created["id"], None, ctx(owner))
        with pytest.raises(PermissionDenied):
            await use_case.get_story_by_id(
                created["id"], {"include_deleted": "true"}, ctx(owner)
            )

        seen = await use_case.get_story_by_id(
            created["id"], {"include_deleted": "true"}, ctx(admin)
        )
        assert seen["status"] == "DELETED"

        owner_list = await use_case.list_stories(
            {"include_deleted": "true"}, ctx(owner)
        )
        admin_list = await use_case.list_stories(
            {"include_deleted": "true"}, ctx(admin)
        )
        assert owner_list["data"] == []
        assert [s["id"] for s in admin_list["data"]] == [created["id"]]

    @pytest.mark.asyncio
    async def test_default_reason(self, use_case, backend, owner) -> None:
        created = await create(use_case, owner)
        await use_case.remove_story(created["id"], None, ctx(owner))

        stored = backend.stories.storage_dict[created["id"]]
        assert stored.deletion_reason == "User requested deletion"

    @pytest.mark.asyncio
    async def test_soft_delete_twice(self, use_case, owner) -> None:
        created = await create(use_case, owner)
        await use_case.remove_story(created["id"], None, ctx(owner))

        with pytest.raises(AlreadyDeleted):
            await use_case.remove_story(created["id"], None, ctx(owner))

    @pytest.mark.asyncio
    async def test_permanent_delete_keeps_tag_and_attachment_records(
        self, use_case, backend, owner, admin
    ) -> None:
        attachment = backend.attachments.add(
            AttachmentFactory(user_id=owner.id)
        )
        created = await create(
            use_case, owner, tags=["flood"], attachments=[attachment.id]
        )

        result = await use_case.remove_story(
            created["id"], {"permanent": "true"}, ctx(admin)
        )

        assert result["deletion_type"] == "permanent"
        assert result["can_recover"] is False
        assert created["id"] not in backend.stories.storage_dict
        assert created["id"] not in backend.stories.links["tags"]
        assert created["id"] not in backend.stories.links["attachments"]
        assert attachment.id in backend.attachments.storage_dict
        assert await backend.tags.get_by_name("flood") is not None

    @pytest.mark.asyncio
    async def test_permanent_delete_requires_privilege(
        self, use_case, owner
    ) -> None:
        created = await create(use_case, owner)

        with pytest.raises(PermissionDenied):
            await use_case.remove_story(
                created["id"], {"permanent": True}, ctx(owner)
            )

    @pytest.mark.asyncio
    async def test_stranger_cannot_delete(
        self, use_case, owner, stranger
    ) -> None:
        created = await create(use_case, owner)

        with pytest.raises(PermissionDenied):
            await use_case.remove_story(created["id"], None, ctx(stranger))

    @pytest.mark.asyncio
    async def test_child_stories_block_soft_delete(
        self, use_case, owner, admin
    ) -> None:
        parent = await create(use_case, owner, title="Parent")
        await create(use_case, admin, title="Child", parent_id=parent["id"])

        with pytest.raises(HasDependents) as exc_info:
            await use_case.remove_story(parent["id"], None, ctx(owner))
        assert exc_info.value.details == {"has_child_stories": True}

        result = await use_case.remove_story(
            parent["id"], {"permanent": True}, ctx(admin)
        )
        assert result["deletion_type"] == "permanent"

    @pytest.mark.asyncio
    async def test_non_deletable_status(
        self, use_case, owner
    ) -> None:
        created = await create(use_case, owner)
        await use_case.update_story(
            created["id"], {"status": "SUBMITTED"}, ctx(owner)
        )

        with pytest.raises(BusinessValidationFailed) as exc_info:
            await use_case.remove_story(created["id"], None, ctx(owner))
        assert exc_info.value.code == "INVALID_STORY_STATUS"

    @pytest.mark.asyncio
    async def test_published_story_needs_reason(
        self, use_case, backend, admin
    ) -> None:
        story = StoryFactory(
            user_id=admin.id, status=StoryStatus.PUBLISHED, details="Out"
        )
        tx = await backend.stories.start_transaction()
        stored = await backend.stories.insert(story, [], [], tx)

        with pytest.raises(BusinessValidationFailed) as exc_info:
            await use_case.remove_story(stored.id, None, ctx(admin))
        assert exc_info.value.code == "DELETION_REASON_REQUIRED"

        result = await use_case.remove_story(
            stored.id, {"reason": "Retracted"}, ctx(admin)
        )
        assert result["deletion_type"] == "soft"

    @pytest.mark.asyncio
    async def test_invalid_story_id(self, use_case, owner) -> None:
        with pytest.raises(InvalidArgument) as exc_info:
            await use_case.remove_story("abc", None, ctx(owner))
        assert exc_info.value.code == "INVALID_STORY_ID"


class TestGetStory:
    @pytest.mark.asyncio
    async def test_formats(self, use_case, owner) -> None:
        created = await create(
            use_case, owner, details="x" * 250, tags=["flood"]
        )

        minimal = await use_case.get_story_by_id(
            created["id"], {"format": "minimal"}, ctx(owner)
        )
        summary = await use_case.get_story_by_id(
            created["id"], {"format": "summary"}, ctx(owner)
        )
        full = await use_case.get_story_by_id(created["id"], None, ctx(owner))

        assert set(minimal) == {
            "id",
            "title",
            "status",
            "type",
            "priority",
            "created_at",
            "updated_at",
        }
        assert summary["details"] == "x" * 200 + "..."
        assert summary["tags_count"] == 1
        assert summary["attachments_count"] == 0
        assert full["tags"] == ["flood"]
        assert full["can_edit"] is True
        assert full["can_delete"] is True
        assert full["age_in_days"] == 0

    @pytest.mark.asyncio
    async def test_draft_hidden_from_strangers(
        self, use_case, owner, stranger, admin
    ) -> None:
        created = await create(use_case, owner)

        with pytest.raises(PermissionDenied):
            await use_case.get_story_by_id(created["id"], None, ctx(stranger))
        seen = await use_case.get_story_by_id(created["id"], None, ctx(admin))
        assert seen["id"] == created["id"]

    @pytest.mark.asyncio
    async def test_internal_notes_only_for_privileged(
        self, use_case, backend, owner, admin
    ) -> None:
        story = StoryFactory(user_id=owner.id, internal_notes="source: tip")
        tx = await backend.stories.start_transaction()
        stored = await backend.stories.insert(story, [], [], tx)

        as_owner = await use_case.get_story_by_id(stored.id, None, ctx(owner))
        as_admin = await use_case.get_story_by_id(stored.id, None, ctx(admin))

        assert "internal_notes" not in as_owner
        assert as_admin["internal_notes"] == "source: tip"

    @pytest.mark.asyncio
    async def test_malformed_id(self, use_case, owner) -> None:
        for bad in ("0", "-3", "1.5", "abc", 0):
            with pytest.raises(InvalidArgument):
                await use_case.get_story_by_id(bad, None, ctx(owner))


class TestListStories:
    @pytest.mark.asyncio
    async def test_scopes_non_privileged_callers(
        self, use_case, owner, stranger, admin
    ) -> None:
        mine = await create(use_case, owner, title="Mine")
        await create(use_case, stranger, title="Theirs")

        owner_list = await use_case.list_stories(
            {"user_id": stranger.id}, ctx(owner)
        )
        admin_list = await use_case.list_stories(None, ctx(admin))

        assert [s["id"] for s in owner_list["data"]] == [mine["id"]]
        assert admin_list["pagination"]["total"] == 2

    @pytest.mark.asyncio
    async def test_second_call_served_from_cache(
        self, use_case, backend, owner
    ) -> None:
        await create(use_case, owner)

        first = await use_case.list_stories({"page": 1}, ctx(owner))
        second = await use_case.list_stories({"page": "1"}, ctx(owner))

        assert first["meta"]["cached"] is False
        assert second["meta"]["cached"] is True
        assert second["data"] == first["data"]
        assert backend.stories.query_calls == 1

    @pytest.mark.asyncio
    async def test_write_invalidates_owner_listing(
        self, use_case, backend, owner
    ) -> None:
        await create(use_case, owner, title="One")
        await use_case.list_stories(None, ctx(owner))

        await create(use_case, owner, title="Two")
        listing = await use_case.list_stories(None, ctx(owner))

        assert listing["meta"]["cached"] is False
        assert listing["pagination"]["total"] == 2
        assert backend.stories.query_calls == 2

    @pytest.mark.asyncio
    async def test_search_term_bypasses_cache(
        self, use_case, backend, owner
    ) -> None:
        await create(use_case, owner, details="River burst its banks")

        for _ in range(2):
            listing = await use_case.list_stories(
                {"term": "RIVER"}, ctx(owner)
            )
            assert listing["pagination"]["total"] == 1

        assert backend.stories.query_calls == 2
        assert not [k for k in backend.cache.storage_dict if ":list:" in k]

    @pytest.mark.asyncio
    async def test_pagination(self, use_case, owner) -> None:
        for n in range(5):
            await create(use_case, owner, title=f"Story {n}")

        listing = await use_case.list_stories(
            {"page": 2, "limit": 2, "order_by": "title:asc"}, ctx(owner)
        )

        assert [s["title"] for s in listing["data"]] == ["Story 2", "Story 3"]
        assert listing["pagination"] == {
            "page": 2,
            "limit": 2,
            "total": 5,
            "total_pages": 3,
            "has_next": True,
            "has_prev": True,
        }

    @pytest.mark.asyncio
    async def test_filters(self, use_case, owner, admin) -> None:
        await create(use_case, owner, title="Quiet day", priority="LOW")
        urgent = await create(
            use_case, owner, title="Storm", priority="URGENT", tags=["storm"]
        )

        by_priority = await use_case.list_stories(
            {"priority": "URGENT,HIGH"}, ctx(owner)
        )
        by_tag = await use_case.list_stories({"tags": "storm"}, ctx(owner))

        assert [s["id"] for s in by_priority["data"]] == [urgent["id"]]
        assert [s["id"] for s in by_tag["data"]] == [urgent["id"]]
        assert by_priority["meta"]["filters_applied"] == 2

    @pytest.mark.asyncio
    async def test_stats_included_on_request(self, use_case, owner) -> None:
        await create(use_case, owner)

        listing = await use_case.list_stories({"include": "stats"}, ctx(owner))

        assert listing["data"][0]["stats"]["can_edit"] is True

    @pytest.mark.asyncio
    async def test_invalid_limit(self, use_case, owner) -> None:
        with pytest.raises(InvalidArgument):
            await use_case.list_stories({"limit": 0}, ctx(owner))

    @pytest.mark.asyncio
    async def test_restricted_type_hidden_from_list_of_others(
        self, use_case, admin
    ) -> None:
        report = await create(use_case, admin, type="REPORT")
        listing = await use_case.list_stories({"type": "REPORT"}, ctx(admin))

        assert report["type"] == StoryType.REPORT.value
        assert [s["id"] for s in listing["data"]] == [report["id"]]
