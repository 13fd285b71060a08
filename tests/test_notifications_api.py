"""
Test suite for notification endpoints and session-triggered notifications.
"""

import pytest

import notifications.notifications as notifications_module
from notifications.notifications import create_notification, mark_notification_read, mark_all_notifications_read
from utils.errors import NotFoundError


def _send(client, headers, user_id="U1", notification_type="session_reminder", title="Reminder", message="Session soon"):
    return client.post(
        "/notifications/send",
        json={"userId": user_id, "type": notification_type, "title": title, "message": message},
        headers=headers,
    )


def test_send_then_list_newest_first(client, counselor_headers, user_headers):
    for title in ("First", "Second", "Third"):
        _send(client, counselor_headers, title=title)

    response = client.get("/notifications/U1", headers=user_headers)

    assert response.status_code == 200
    notifications = response.json()["notifications"]
    assert len(notifications) == 3
    created = [n["createdAt"] for n in notifications]
    assert created == sorted(created, reverse=True)
    assert all(n["read"] is False for n in notifications)


def test_reminder_round_trip(client, counselor_headers, user_headers):
    response = _send(client, counselor_headers)

    assert response.status_code == 200
    notification_id = response.json()["notificationId"]
    assert notification_id.startswith("notif_")

    notifications = client.get("/notifications/U1", headers=user_headers).json()["notifications"]
    assert len(notifications) == 1
    assert notifications[0]["type"] == "session_reminder"
    assert notifications[0]["read"] is False
    assert client.get("/notifications/U1/unread-count", headers=user_headers).json()["unreadCount"] == 1

    assert client.put(f"/notifications/{notification_id}/read", headers=user_headers).status_code == 200
    notifications = client.get("/notifications/U1", headers=user_headers).json()["notifications"]
    assert notifications[0]["read"] is True
    assert client.get("/notifications/U1/unread-count", headers=user_headers).json()["unreadCount"] == 0


def test_user_may_only_notify_self(client, user_headers):
    assert _send(client, user_headers, user_id="U1").status_code == 200
    assert _send(client, user_headers, user_id="U2").status_code == 403


def test_send_rejects_unknown_type(client, counselor_headers):
    response = _send(client, counselor_headers, notification_type="birthday")
    assert response.status_code == 422


def test_mark_all_read_is_idempotent(client, counselor_headers, user_headers):
    for _ in range(3):
        _send(client, counselor_headers)

    first = client.put("/notifications/U1/read-all", headers=user_headers)
    second = client.put("/notifications/U1/read-all", headers=user_headers)

    assert first.json() == {"success": True, "updated": 3}
    assert second.json() == {"success": True, "updated": 0}
    notifications = client.get("/notifications/U1", headers=user_headers).json()["notifications"]
    assert all(n["read"] for n in notifications)


def test_mark_all_read_only_touches_owner(client, counselor_headers, user_headers, make_headers):
    _send(client, counselor_headers, user_id="U1")
    _send(client, counselor_headers, user_id="U2")

    client.put("/notifications/U1/read-all", headers=user_headers)

    other = client.get("/notifications/U2", headers=make_headers("U2")).json()["notifications"]
    assert other[0]["read"] is False


def test_delete_removes_notification(client, counselor_headers, user_headers):
    notification_id = _send(client, counselor_headers).json()["notificationId"]

    response = client.delete(f"/notifications/{notification_id}", headers=user_headers)

    assert response.status_code == 200
    notifications = client.get("/notifications/U1", headers=user_headers).json()["notifications"]
    assert notification_id not in [n["id"] for n in notifications]


def test_delete_unknown_notification_returns_404(client, user_headers):
    response = client.delete("/notifications/notif_missing", headers=user_headers)

    assert response.status_code == 404
    assert response.json()["success"] is False


def test_other_users_notifications_are_private(client, counselor_headers, make_headers, admin_headers):
    notification_id = _send(client, counselor_headers).json()["notificationId"]
    outsider = make_headers("U2")

    assert client.get("/notifications/U1", headers=outsider).status_code == 403
    assert client.put(f"/notifications/{notification_id}/read", headers=outsider).status_code == 403
    assert client.delete(f"/notifications/{notification_id}", headers=outsider).status_code == 403
    assert client.get("/notifications/U1", headers=admin_headers).status_code == 200


# ==================== SESSION EVENTS ====================

def test_booking_notifies_user_and_counselor(client, booked_session, user_headers, counselor_headers):
    user_notifications = client.get("/notifications/U1", headers=user_headers).json()["notifications"]
    counselor_notifications = client.get("/notifications/1", headers=counselor_headers).json()["notifications"]

    assert [n["type"] for n in user_notifications] == ["session_booked"]
    assert user_notifications[0]["sessionId"] == booked_session["id"]
    assert [n["type"] for n in counselor_notifications] == ["session_booked"]


def test_cancellation_notifies_with_reason(client, booked_session, user_headers):
    client.put(
        f"/sessions/{booked_session['id']}/status",
        json={"status": "cancelled", "reason": "schedule conflict"},
        headers=user_headers,
    )

    notifications = client.get("/notifications/U1", headers=user_headers).json()["notifications"]
    cancelled = [n for n in notifications if n["type"] == "session_cancelled"]
    assert len(cancelled) == 1
    assert "schedule conflict" in cancelled[0]["message"]


def test_notes_notify_user(client, booked_session, user_headers, counselor_headers):
    client.put(f"/sessions/{booked_session['id']}/notes", json={"notes": "Breathing exercises"}, headers=counselor_headers)

    types = [n["type"] for n in client.get("/notifications/U1", headers=user_headers).json()["notifications"]]
    assert "notes_added" in types


# ==================== CONCURRENT DELETE ====================

@pytest.mark.asyncio
async def test_mark_read_does_not_recreate_deleted_notification(kv_store, monkeypatch):
    user = {"id": "U1", "role": "user", "email": None}
    notification = await create_notification("U1", "session_reminder", "Reminder", "Session soon")
    load = notifications_module._load_notification

    def load_then_delete(notification_id):
        loaded = load(notification_id)
        kv_store.delete(notification_id)
        return loaded

    monkeypatch.setattr(notifications_module, "_load_notification", load_then_delete)

    with pytest.raises(NotFoundError):
        await mark_notification_read(notification.id, user)
    assert kv_store.get(notification.id) is None


@pytest.mark.asyncio
async def test_mark_all_read_skips_notifications_deleted_meanwhile(kv_store, monkeypatch):
    kept = await create_notification("U1", "session_reminder", "Kept", "k")
    removed = await create_notification("U1", "session_reminder", "Removed", "r")
    list_notifications = notifications_module.get_user_notifications

    async def list_then_delete(user_id):
        listed = await list_notifications(user_id)
        kv_store.delete(removed.id)
        return listed

    monkeypatch.setattr(notifications_module, "get_user_notifications", list_then_delete)

    assert await mark_all_notifications_read("U1") == 1
    assert kv_store.get(removed.id) is None
    assert kv_store.get(kept.id)["read"] is True
