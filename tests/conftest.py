"""
Shared test fixtures for the Mentara sessions API and client stores.

Provides: in-memory key-value store, signed bearer tokens, TestClient,
helpers for booking sessions through the API
"""

import os

os.environ["KV_BACKEND"] = "memory"
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

import pytest
from fastapi.testclient import TestClient

from app import app
from authentication.authh import create_access_token
from storage.kv_store import InMemoryKVStore, set_kv_store
from utils.date_utils import today_local_iso


USER_ID = "U1"
OTHER_USER_ID = "U2"
COUNSELOR_ID = "1"


@pytest.fixture
def kv_store():
    """Fresh in-memory store installed as the process-wide store."""
    store = InMemoryKVStore()
    set_kv_store(store)
    yield store
    set_kv_store(None)


@pytest.fixture
def make_headers():
    """Build Authorization headers for a given subject and role."""
    def _make(user_id: str, role: str = "user") -> dict:
        token = create_access_token({"sub": user_id, "app_role": role, "email": f"{user_id}@example.com"})
        return {"Authorization": f"Bearer {token}"}
    return _make


@pytest.fixture
def user_headers(make_headers):
    return make_headers(USER_ID)


@pytest.fixture
def counselor_headers(make_headers):
    return make_headers(COUNSELOR_ID, "counselor")


@pytest.fixture
def admin_headers(make_headers):
    return make_headers("admin-1", "admin")


@pytest.fixture
def client(kv_store) -> TestClient:
    """TestClient bound to a clean store."""
    return TestClient(app)


@pytest.fixture
def booking_payload() -> dict:
    return {
        "userId": USER_ID,
        "counselorId": COUNSELOR_ID,
        "sessionType": "video",
        "date": today_local_iso(),
        "time": "09:00 AM",
        "status": "pending",
        "topic": "exam stress",
    }


@pytest.fixture
def booked_session(client, user_headers, booking_payload) -> dict:
    """Book a session as U1 with counselor 1 and return the stored record."""
    response = client.post("/sessions/book", json=booking_payload, headers=user_headers)
    assert response.status_code == 200
    session_id = response.json()["sessionId"]
    return client.get(f"/sessions/{session_id}", headers=user_headers).json()["session"]
