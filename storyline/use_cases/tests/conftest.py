"""Shared fixtures wiring the story use cases to memory repositories."""

from dataclasses import dataclass

import pytest

from storyline.domain import User
from storyline.domain.tests.factories import SuperAdminFactory, UserFactory
from storyline.repositories.memory import (
    MemoryAttachmentRepository,
    MemoryCacheRepository,
    MemoryEventPublisher,
    MemoryStoryRepository,
    MemoryTagRepository,
    MemoryUserRepository,
)
from storyline.use_cases import StoryContext, StoryLifecycleUseCase


@dataclass
class Backend:
    stories: MemoryStoryRepository
    tags: MemoryTagRepository
    attachments: MemoryAttachmentRepository
    users: MemoryUserRepository
    cache: MemoryCacheRepository
    events: MemoryEventPublisher


@pytest.fixture
def backend() -> Backend:
    tags = MemoryTagRepository()
    attachments = MemoryAttachmentRepository()
    return Backend(
        stories=MemoryStoryRepository(tags, attachments),
        tags=tags,
        attachments=attachments,
        users=MemoryUserRepository(),
        cache=MemoryCacheRepository(),
        events=MemoryEventPublisher(),
    )


@pytest.fixture
def use_case(backend: Backend) -> StoryLifecycleUseCase:
    return StoryLifecycleUseCase(
        story_repo=backend.stories,
        tag_repo=backend.tags,
        attachment_repo=backend.attachments,
        user_repo=backend.users,
        cache=backend.cache,
        publisher=backend.events,
    )


@pytest.fixture
def owner(backend: Backend) -> User:
    return backend.users.add(UserFactory())


@pytest.fixture
def stranger(backend: Backend) -> User:
    return backend.users.add(UserFactory())


@pytest.fixture
def admin(backend: Backend) -> User:
    return backend.users.add(SuperAdminFactory())


def ctx(user: User, transaction=None) -> StoryContext:
    return StoryContext(current_user=user, transaction=transaction)
