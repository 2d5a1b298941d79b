"""
Tests for the stories API router.

Requests go through the full application (error handlers included) with
the lifecycle use case wired to memory repositories.
"""

from fastapi.testclient import TestClient

from storyline.domain import User

from ..conftest import as_user


def create(client: TestClient, user: User, **payload) -> dict:
    payload.setdefault("title", "Flood in X")
    response = client.post("/stories", json=payload, headers=as_user(user))
    assert response.status_code == 201, response.text
    return response.json()["data"]


class TestAuthentication:
    def test_missing_header(self, client: TestClient) -> None:
        response = client.get("/stories")

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "USER_NOT_FOUND"

    def test_unknown_user(self, client: TestClient) -> None:
        response = client.get("/stories", headers={"X-User-Id": "ghost"})

        assert response.status_code == 401
        assert response.json()["error"]["kind"] == "NotFound"


class TestStoryLifecycle:
    def test_end_to_end(
        self, client: TestClient, owner: User, stranger: User
    ) -> None:
        story = create(client, owner)
        assert story["status"] == "DRAFT"
        assert story["version"] == 1

        response = client.patch(
            f"/stories/{story['id']}",
            json={"status": "SUBMITTED", "expected_version": 1},
            headers=as_user(owner),
        )
        assert response.status_code == 200
        assert response.json()["data"]["version"] == 2

        response = client.patch(
            f"/stories/{story['id']}",
            json={"status": "SUBMITTED", "expected_version": 2},
            headers=as_user(stranger),
        )
        assert response.status_code == 403

        response = client.patch(
            f"/stories/{story['id']}",
            json={"status": "PUBLISHED", "expected_version": 2},
            headers=as_user(owner),
        )
        assert response.status_code == 422
        error = response.json()["error"]
        assert error["kind"] == "InvalidStatusTransition"
        assert error["details"]["current_status"] == "SUBMITTED"

    def test_stale_version_is_conflict(
        self, client: TestClient, owner: User
    ) -> None:
        story = create(client, owner)
        client.patch(
            f"/stories/{story['id']}",
            json={"details": "first edit"},
            headers=as_user(owner),
        )

        response = client.patch(
            f"/stories/{story['id']}",
            json={"details": "stale", "expected_version": 1},
            headers=as_user(owner),
        )

        assert response.status_code == 409
        assert response.json()["error"]["details"] == {
            "current_version": 2,
            "expected_version": 1,
        }

    def test_get_formats(self, client: TestClient, owner: User) -> None:
        story = create(client, owner, details="River burst")

        minimal = client.get(
            f"/stories/{story['id']}",
            params={"format": "minimal"},
            headers=as_user(owner),
        ).json()["data"]
        full = client.get(
            f"/stories/{story['id']}", headers=as_user(owner)
        ).json()["data"]

        assert "details" not in minimal
        assert full["details"] == "River burst"
        assert full["can_edit"] is True

    def test_get_invalid_id(self, client: TestClient, owner: User) -> None:
        response = client.get("/stories/abc", headers=as_user(owner))

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_STORY_ID"

    def test_non_ascii_digit_id(self, client: TestClient, owner: User) -> None:
        response = client.get("/stories/\u00b2", headers=as_user(owner))

        assert response.status_code == 400
        error = response.json()["error"]
        assert set(error) == {"kind", "code", "message", "details"}
        assert error["code"] == "INVALID_STORY_ID"
        assert error["details"] == {"story_id": "\u00b2"}

    def test_list_with_repeated_filters(
        self, client: TestClient, owner: User
    ) -> None:
        create(client, owner, title="Low", priority="LOW")
        create(client, owner, title="High", priority="HIGH")
        create(client, owner, title="Urgent", priority="URGENT")

        response = client.get(
            "/stories?priority=HIGH&priority=URGENT&order_by=title:asc",
            headers=as_user(owner),
        )

        assert response.status_code == 200
        body = response.json()
        assert [s["title"] for s in body["data"]] == ["High", "Urgent"]
        assert body["pagination"]["total"] == 2

    def test_list_second_call_is_cached(
        self, client: TestClient, owner: User
    ) -> None:
        create(client, owner)

        first = client.get("/stories", headers=as_user(owner)).json()
        second = client.get("/stories", headers=as_user(owner)).json()

        assert first["meta"]["cached"] is False
        assert second["meta"]["cached"] is True

    def test_list_invalid_limit(self, client: TestClient, owner: User) -> None:
        response = client.get(
            "/stories", params={"limit": 1000}, headers=as_user(owner)
        )

        assert response.status_code == 400
        assert response.json()["error"]["kind"] == "InvalidArgument"

    def test_soft_then_permanent_delete(
        self, client: TestClient, owner: User, admin: User
    ) -> None:
        story = create(client, owner)

        soft = client.delete(
            f"/stories/{story['id']}",
            params={"reason": "Duplicate report"},
            headers=as_user(owner),
        )
        assert soft.status_code == 200
        assert soft.json()["data"]["deletion_type"] == "soft"

        again = client.delete(
            f"/stories/{story['id']}", headers=as_user(owner)
        )
        assert again.status_code == 410

        hard = client.delete(
            f"/stories/{story['id']}",
            params={"permanent": "true"},
            headers=as_user(admin),
        )
        assert hard.json()["data"]["can_recover"] is False

        gone = client.get(
            f"/stories/{story['id']}",
            params={"include_deleted": "true"},
            headers=as_user(admin),
        )
        assert gone.status_code == 404

    def test_malformed_body(self, client: TestClient, owner: User) -> None:
        response = client.post(
            "/stories", json={"details": "no title"}, headers=as_user(owner)
        )

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "VALIDATION_FAILED"
        assert any("title" in item for item in error["details"])

    def test_rate_limit(self, client: TestClient, owner: User) -> None:
        for n in range(10):
            create(client, owner, title=f"Report {n}")

        response = client.post(
            "/stories", json={"title": "Report 10"}, headers=as_user(owner)
        )

        assert response.status_code == 429
        assert response.json()["error"]["details"]["limit"] == 10
