"""
Key-value persistence for every Mentara entity
Records are JSON blobs keyed by a type-prefixed id (session_..., notif_...)
and listed with prefix scans
"""
import copy
import logging
import os
import threading
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

from db import get_supabase_client, handle_supabase_error, format_supabase_response

load_dotenv()

logger = logging.getLogger(__name__)

KV_BACKEND = os.getenv("KV_BACKEND", "supabase")
KV_TABLE_NAME = os.getenv("KV_TABLE_NAME", "kv_store_a40ffbb5")

# Global store instance
_kv_store = None


class KVStore:
    """
    Interface shared by the key-value backends

    compare_and_set writes only when the stored record's "version" equals
    expected_version and returns False otherwise.
    """

    def get(self, key: str) -> Optional[Any]:
        raise NotImplementedError

    def set(self, key: str, value: Any) -> None:
        raise NotImplementedError

    def update(self, key: str, value: Any) -> bool:
        """Overwrite an existing key; returns False (and writes nothing) if the key is absent."""
        raise NotImplementedError

    def delete(self, key: str) -> bool:
        raise NotImplementedError

    def get_by_prefix(self, prefix: str) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def compare_and_set(self, key: str, value: Dict[str, Any], expected_version: int) -> bool:
        raise NotImplementedError


class SupabaseKVStore(KVStore):
    """Key-value store backed by a Supabase table with columns key (text) and value (jsonb)."""

    def __init__(self, client=None, table_name: str = KV_TABLE_NAME):
        self._client = client
        self.table_name = table_name

    @property
    def client(self):
        if self._client is None:
            self._client = get_supabase_client()
        return self._client

    def _table(self):
        return self.client.table(self.table_name)

    def get(self, key: str) -> Optional[Any]:
        result = self._table().select("value").eq("key", key).execute()
        handle_supabase_error(result)
        rows = format_supabase_response(result)
        if not rows:
            return None
        return rows[0]["value"]

    def set(self, key: str, value: Any) -> None:
        result = self._table().upsert({"key": key, "value": value}).execute()
        handle_supabase_error(result)

    def update(self, key: str, value: Any) -> bool:
        result = self._table().update({"value": value}).eq("key", key).execute()
        handle_supabase_error(result)
        return bool(format_supabase_response(result))

    def delete(self, key: str) -> bool:
        result = self._table().delete().eq("key", key).execute()
        handle_supabase_error(result)
        return bool(format_supabase_response(result))

    def get_by_prefix(self, prefix: str) -> List[Dict[str, Any]]:
        result = self._table().select("key, value").like("key", f"{prefix}%").execute()
        handle_supabase_error(result)
        rows = format_supabase_response(result) or []
        return [row["value"] for row in rows]

    def compare_and_set(self, key: str, value: Dict[str, Any], expected_version: int) -> bool:
        # Conditional update on the JSON version field; no returned rows means the version moved
        result = (
            self._table()
            .update({"value": value})
            .eq("key", key)
            .eq("value->>version", str(expected_version))
            .execute()
        )
        handle_supabase_error(result)
        return bool(format_supabase_response(result))


class InMemoryKVStore(KVStore):
    """Process-local key-value store for development and tests."""

    def __init__(self):
        self._data: Dict[str, Any] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            value = self._data.get(key)
            return copy.deepcopy(value) if value is not None else None

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = copy.deepcopy(value)

    def update(self, key: str, value: Any) -> bool:
        with self._lock:
            if key not in self._data:
                return False
            self._data[key] = copy.deepcopy(value)
            return True

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._data.pop(key, None) is not None

    def get_by_prefix(self, prefix: str) -> List[Dict[str, Any]]:
        with self._lock:
            return [
                copy.deepcopy(value)
                for key, value in self._data.items()
                if key.startswith(prefix)
            ]

    def compare_and_set(self, key: str, value: Dict[str, Any], expected_version: int) -> bool:
        with self._lock:
            current = self._data.get(key)
            if current is None or current.get("version") != expected_version:
                return False
            self._data[key] = copy.deepcopy(value)
            return True


def get_kv_store() -> KVStore:
    """
    Get the process-wide key-value store, creating it on first use

    Usage:
        - KV_BACKEND=supabase (default) uses the Supabase table
        - KV_BACKEND=memory keeps records in process memory
    """
    global _kv_store
    if _kv_store is None:
        if KV_BACKEND == "memory":
            _kv_store = InMemoryKVStore()
        elif KV_BACKEND == "supabase":
            _kv_store = SupabaseKVStore()
        else:
            raise RuntimeError(f"Unknown KV_BACKEND '{KV_BACKEND}'")
        logger.info(f"Key-value store initialized ({KV_BACKEND} backend)")
    return _kv_store


def set_kv_store(store: Optional[KVStore]) -> None:
    """Replace the process-wide store (None forces re-initialization)."""
    global _kv_store
    _kv_store = store
