"""
Test suite for authentication, health and the counselor directory.
"""

import jwt

from authentication.authh import SECRET_KEY, ALGORITHM, verify_token, _extract_role
from counselors.counselors import COUNSELORS_KEY


def test_root_and_health(client):
    assert client.get("/").status_code == 200

    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_counselors_default_directory(client):
    response = client.get("/counselors")

    assert response.status_code == 200
    counselors = response.json()
    assert [c["id"] for c in counselors] == ["1", "2", "3"]
    assert counselors[0]["price"] == 800


def test_stored_directory_replaces_defaults(client, kv_store, user_headers, booking_payload):
    kv_store.set(COUNSELORS_KEY, [{"id": 1, "name": "Dr. Stored", "price": 500}])

    assert [c["name"] for c in client.get("/counselors").json()] == ["Dr. Stored"]

    session_id = client.post("/sessions/book", json=booking_payload, headers=user_headers).json()["sessionId"]
    session = client.get(f"/sessions/{session_id}", headers=user_headers).json()["session"]
    assert session["price"] == 550
    assert session["counselorName"] == "Dr. Stored"


def test_token_without_subject_is_rejected(client):
    anon_key = jwt.encode({"role": "anon"}, SECRET_KEY, algorithm=ALGORITHM)

    response = client.get("/sessions", headers={"Authorization": f"Bearer {anon_key}"})

    assert response.status_code == 401


def test_token_with_wrong_signature_is_rejected(client):
    forged = jwt.encode({"sub": "U1"}, "not-the-secret", algorithm=ALGORITHM)

    response = client.get("/sessions", headers={"Authorization": f"Bearer {forged}"})

    assert response.status_code == 401


def test_role_resolution():
    assert _extract_role({"app_role": "counselor"}) == "counselor"
    assert _extract_role({"user_metadata": {"role": "admin"}}) == "admin"
    assert _extract_role({"app_role": "superuser"}) == "user"
    assert _extract_role({}) == "user"


def test_verify_token_returns_identity(make_headers):
    token = make_headers("U9", "counselor")["Authorization"].split(" ", 1)[1]

    class _Credentials:
        credentials = token

    assert verify_token(_Credentials()) == {"id": "U9", "email": "U9@example.com", "role": "counselor"}
