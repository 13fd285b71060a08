"""
Test suite for the key-value backends and versioned session writes.
"""

from unittest.mock import MagicMock

import pytest

from storage.kv_store import InMemoryKVStore, SupabaseKVStore
from sessions.session_models import Session
from sessions.sessions import save_session
from utils.errors import ConflictError


@pytest.fixture
def store() -> InMemoryKVStore:
    return InMemoryKVStore()


def _session_record(**overrides) -> dict:
    record = {
        "id": "session_1_abc",
        "userId": "U1",
        "counselorId": "1",
        "sessionType": "video",
        "date": "2030-01-10",
        "time": "09:00 AM",
        "status": "pending",
        "price": 850,
        "transactionId": "TXN1",
        "bookingDate": "2030-01-01T00:00:00+00:00",
        "version": 1,
    }
    record.update(overrides)
    return record


# ==================== IN-MEMORY BACKEND ====================

def test_get_returns_copies(store):
    store.set("session_a", {"status": "pending"})

    value = store.get("session_a")
    value["status"] = "confirmed"

    assert store.get("session_a") == {"status": "pending"}


def test_get_by_prefix_filters_keys(store):
    store.set("session_a", {"id": "session_a"})
    store.set("notif_a", {"id": "notif_a"})

    assert store.get_by_prefix("session_") == [{"id": "session_a"}]


def test_delete_reports_whether_key_existed(store):
    store.set("notif_a", {"id": "notif_a"})

    assert store.delete("notif_a") is True
    assert store.delete("notif_a") is False
    assert store.get("notif_a") is None


def test_compare_and_set_checks_version(store):
    store.set("session_a", {"version": 1})

    assert store.compare_and_set("session_a", {"version": 2}, expected_version=1) is True
    assert store.compare_and_set("session_a", {"version": 3}, expected_version=1) is False
    assert store.get("session_a") == {"version": 2}
    assert store.compare_and_set("session_missing", {"version": 1}, expected_version=0) is False


def test_update_only_overwrites_existing_keys(store):
    store.set("notif_a", {"read": False})

    assert store.update("notif_a", {"read": True}) is True
    assert store.get("notif_a") == {"read": True}

    store.delete("notif_a")
    assert store.update("notif_a", {"read": True}) is False
    assert store.get("notif_a") is None


# ==================== VERSIONED SESSION WRITES ====================

def test_save_session_increments_version(kv_store):
    kv_store.set("session_1_abc", _session_record())
    session = Session(**_session_record())

    updated = save_session(session, {"status": "confirmed"})

    assert updated.version == 2
    assert updated.updatedAt is not None
    assert kv_store.get("session_1_abc")["status"] == "confirmed"


def test_save_session_with_stale_read_raises_conflict(kv_store):
    stale = Session(**_session_record())
    kv_store.set("session_1_abc", _session_record(status="confirmed", version=2))

    with pytest.raises(ConflictError) as exc_info:
        save_session(stale, {"status": "cancelled", "cancellationReason": "late"})

    assert exc_info.value.current["status"] == "confirmed"
    assert kv_store.get("session_1_abc")["version"] == 2


# ==================== SUPABASE BACKEND ====================

def test_supabase_get_reads_value_column():
    client = MagicMock()
    table = client.table.return_value
    table.select.return_value.eq.return_value.execute.return_value = MagicMock(data=[{"value": {"id": "x"}}], error=None)

    store = SupabaseKVStore(client=client, table_name="kv_test")

    assert store.get("x") == {"id": "x"}
    client.table.assert_called_with("kv_test")
    table.select.assert_called_with("value")


def test_supabase_get_by_prefix_uses_like():
    client = MagicMock()
    table = client.table.return_value
    table.select.return_value.like.return_value.execute.return_value = MagicMock(
        data=[{"key": "notif_1", "value": {"id": "notif_1"}}], error=None
    )

    store = SupabaseKVStore(client=client)

    assert store.get_by_prefix("notif_") == [{"id": "notif_1"}]
    table.select.return_value.like.assert_called_with("key", "notif_%")


def test_supabase_compare_and_set_filters_on_version():
    client = MagicMock()
    table = client.table.return_value
    second_eq = table.update.return_value.eq.return_value.eq
    second_eq.return_value.execute.return_value = MagicMock(data=[], error=None)

    store = SupabaseKVStore(client=client)

    assert store.compare_and_set("session_a", {"version": 4}, expected_version=3) is False
    second_eq.assert_called_with("value->>version", "3")


def test_supabase_update_is_conditional_on_key():
    client = MagicMock()
    table = client.table.return_value
    table.update.return_value.eq.return_value.execute.return_value = MagicMock(data=[], error=None)

    store = SupabaseKVStore(client=client)

    assert store.update("notif_gone", {"read": True}) is False
    table.update.assert_called_with({"value": {"read": True}})
    table.update.return_value.eq.assert_called_with("key", "notif_gone")
    table.upsert.assert_not_called()


def test_supabase_error_is_raised():
    client = MagicMock()
    client.table.return_value.upsert.return_value.execute.return_value = MagicMock(data=None, error="boom")

    store = SupabaseKVStore(client=client)

    with pytest.raises(RuntimeError):
        store.set("session_a", {"version": 1})
