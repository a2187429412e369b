"""Tests for notification inbox router."""

from fastapi.testclient import TestClient

from creative_review.models.notification import Notification


def auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _notify(db, user, kind="mention", **payload):
    notification = Notification(user_id=user.id, kind=kind, payload=payload)
    db.add(notification)
    db.commit()
    db.refresh(notification)
    return notification


def test_list_notifications_only_own(test_client: TestClient, test_db_session, team):
    _notify(test_db_session, team["pm"], asset_title="Hero")
    _notify(test_db_session, team["creative"])

    response = test_client.get("/api/notifications", headers=auth_headers(team["tokens"]["pm"]))

    assert response.status_code == 200
    data = response.json()
    assert len(data) == 1
    assert data[0]["kind"] == "mention"
    assert data[0]["payload"] == {"asset_title": "Hero"}
    assert data[0]["read_at"] is None


def test_mark_read_and_unread_filter(test_client: TestClient, test_db_session, team):
    first = _notify(test_db_session, team["pm"])
    _notify(test_db_session, team["pm"], kind="asset_approved")
    headers = auth_headers(team["tokens"]["pm"])

    marked = test_client.post(f"/api/notifications/{first.id}/read", headers=headers)
    unread = test_client.get("/api/notifications", params={"unread_only": "true"}, headers=headers)

    assert marked.status_code == 200
    assert marked.json()["read_at"] is not None
    assert [n["kind"] for n in unread.json()] == ["asset_approved"]


def test_mark_read_other_users_notification(test_client: TestClient, test_db_session, team):
    notification = _notify(test_db_session, team["creative"])

    response = test_client.post(
        f"/api/notifications/{notification.id}/read", headers=auth_headers(team["tokens"]["pm"])
    )

    assert response.status_code == 404


def test_mark_all_read(test_client: TestClient, test_db_session, team):
    _notify(test_db_session, team["pm"])
    _notify(test_db_session, team["pm"])
    _notify(test_db_session, team["creative"])
    headers = auth_headers(team["tokens"]["pm"])

    response = test_client.post("/api/notifications/read-all", headers=headers)

    assert response.status_code == 200
    assert response.json() == {"updated": 2}
    assert test_client.get("/api/notifications", params={"unread_only": "true"}, headers=headers).json() == []
