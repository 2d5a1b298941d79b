"""Fixtures wiring the API to memory-backed use cases."""

from typing import Generator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from storyline.api.app import create_app
from storyline.api.dependencies import (
    get_lifecycle_use_case,
    get_user_repository,
)
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
from storyline.use_cases import StoryLifecycleUseCase


@pytest.fixture
def users() -> MemoryUserRepository:
    return MemoryUserRepository()


@pytest.fixture
def attachments() -> MemoryAttachmentRepository:
    return MemoryAttachmentRepository()


@pytest.fixture
def use_case(
    users: MemoryUserRepository, attachments: MemoryAttachmentRepository
) -> StoryLifecycleUseCase:
    tags = MemoryTagRepository()
    return StoryLifecycleUseCase(
        story_repo=MemoryStoryRepository(tags, attachments),
        tag_repo=tags,
        attachment_repo=attachments,
        user_repo=users,
        cache=MemoryCacheRepository(),
        publisher=MemoryEventPublisher(),
    )


@pytest.fixture
def app(
    users: MemoryUserRepository, use_case: StoryLifecycleUseCase
) -> FastAPI:
    app = create_app()
    app.dependency_overrides[get_user_repository] = lambda: users
    app.dependency_overrides[get_lifecycle_use_case] = lambda: use_case
    return app


@pytest.fixture
def client(app: FastAPI) -> Generator[TestClient, None, None]:
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def owner(users: MemoryUserRepository) -> User:
    return users.add(UserFactory())


@pytest.fixture
def stranger(users: MemoryUserRepository) -> User:
    return users.add(UserFactory())


@pytest.fixture
def admin(users: MemoryUserRepository) -> User:
    return users.add(SuperAdminFactory())


def as_user(user: User) -> dict:
    return {"X-User-Id": user.id}
