"""
Client-side session store
Holds a read-through cache of the caller's sessions, refreshed on a
background ticker and after every mutation
"""
import asyncio
import logging
import os
from typing import Any, Dict, List, Optional

from client.api_client import MentaraApiClient
from client.polling import PollingTask
from sessions.session_models import Session, SESSION_STATUS
from sessions.session_views import get_user_sessions, get_counselor_sessions, get_todays_sessions
from utils.errors import ApiError, NetworkError

logger = logging.getLogger(__name__)

REFRESH_INTERVAL = float(os.getenv("MENTARA_REFRESH_INTERVAL", "30"))

STATE_IDLE = "idle"
STATE_LOADING = "loading"
STATE_LOADED = "loaded"


class SessionStore:
    """
    Cache of sessions visible to the signed-in caller

    State goes idle -> loading -> loaded and re-enters loading on every
    refresh. A failed refresh keeps the previous collection. Mutations
    raise on failure and refetch the full list before returning, so a read
    after a resolved mutation reflects it. When that refetch fails, the
    record returned by the mutation is written into the cache instead.
    """

    def __init__(self, client: MentaraApiClient, refresh_interval: float = REFRESH_INTERVAL):
        self.client = client
        self.state = STATE_IDLE
        self.sessions: List[Session] = []
        self.last_error: Optional[Exception] = None
        self._lock = asyncio.Lock()
        self._poller = PollingTask(self.refresh_sessions, refresh_interval)

    # ==================== LIFECYCLE ====================

    async def start(self) -> None:
        await self.refresh_sessions()
        self._poller.start()

    async def close(self) -> None:
        await self._poller.stop()

    @property
    def polling(self) -> bool:
        return self._poller.running

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    # ==================== READS ====================

    async def refresh_sessions(self) -> None:
        async with self._lock:
            self.state = STATE_LOADING
            try:
                payload = await self.client.get("/sessions")
                self.sessions = [Session(**s) for s in payload.get("sessions", [])]
                self.last_error = None
            except (NetworkError, ApiError) as e:
                # keep the stale collection
                logger.warning(f"Session refresh failed, keeping {len(self.sessions)} cached sessions: {e}")
                self.last_error = e
            finally:
                self.state = STATE_LOADED

    def get_session(self, session_id: str) -> Optional[Session]:
        return next((s for s in self.sessions if s.id == session_id), None)

    def get_user_sessions(self, user_id: str) -> List[Session]:
        return get_user_sessions(self.sessions, user_id)

    def get_counselor_sessions(self, counselor_id: str) -> List[Session]:
        return get_counselor_sessions(self.sessions, counselor_id)

    def get_todays_sessions(self, counselor_id: str, today: Optional[str] = None) -> List[Session]:
        return get_todays_sessions(self.sessions, counselor_id, today)

    # ==================== MUTATIONS ====================

    async def _mutate(self, method: str, path: str, body: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            payload = await self.client.request(method, path, json=body)
        except ApiError as e:
            if e.code == "conflict":
                await self.refresh_sessions()
            raise
        await self.refresh_sessions()
        if self.last_error is not None and payload.get("session"):
            # refetch failed; fold the returned record into the cache instead
            self._apply_session(Session(**payload["session"]))
        return payload

    def _apply_session(self, session: Session) -> None:
        for index, cached in enumerate(self.sessions):
            if cached.id == session.id:
                self.sessions[index] = session
                return
        self.sessions.insert(0, session)

    async def book_session(self, booking: Dict[str, Any]) -> str:
        """
        Book a session and return its id

        booking carries every Session field except id, bookingDate and
        transactionId; status is sent as pending.
        """
        body = {k: v for k, v in booking.items() if k not in ("id", "bookingDate", "transactionId")}
        body["status"] = SESSION_STATUS["PENDING"]
        payload = await self._mutate("POST", "/sessions/book", body)
        return payload["sessionId"]

    async def update_session_status(
        self,
        session_id: str,
        status: str,
        reason: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> None:
        body: Dict[str, Any] = {"status": status}
        if reason is not None:
            body["reason"] = reason
        if expected_version is not None:
            body["expectedVersion"] = expected_version
        await self._mutate("PUT", f"/sessions/{session_id}/status", body)

    async def cancel_session(self, session_id: str, reason: str, expected_version: Optional[int] = None) -> None:
        await self.update_session_status(session_id, SESSION_STATUS["CANCELLED"], reason, expected_version)

    async def reschedule_session(
        self,
        session_id: str,
        new_date: str,
        new_time: str,
        expected_version: Optional[int] = None,
    ) -> None:
        body: Dict[str, Any] = {"newDate": new_date, "newTime": new_time}
        if expected_version is not None:
            body["expectedVersion"] = expected_version
        await self._mutate("PUT", f"/sessions/{session_id}/reschedule", body)

    async def change_session_type(self, session_id: str, session_type: str, expected_version: Optional[int] = None) -> None:
        body: Dict[str, Any] = {"sessionType": session_type}
        if expected_version is not None:
            body["expectedVersion"] = expected_version
        await self._mutate("PUT", f"/sessions/{session_id}/type", body)

    async def add_session_notes(self, session_id: str, notes: str, expected_version: Optional[int] = None) -> None:
        body: Dict[str, Any] = {"notes": notes}
        if expected_version is not None:
            body["expectedVersion"] = expected_version
        await self._mutate("PUT", f"/sessions/{session_id}/notes", body)

    async def add_session_feedback(
        self,
        session_id: str,
        rating: int,
        comment: str = "",
        expected_version: Optional[int] = None,
    ) -> None:
        body: Dict[str, Any] = {"rating": rating, "comment": comment}
        if expected_version is not None:
            body["expectedVersion"] = expected_version
        await self._mutate("PUT", f"/sessions/{session_id}/feedback", body)
