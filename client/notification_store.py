"""
Client-side notification store for a single user
"""
import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional

from client.api_client import MentaraApiClient
from client.polling import PollingTask
from client.session_store import REFRESH_INTERVAL, STATE_IDLE, STATE_LOADING, STATE_LOADED
from notifications.notifications import Notification
from utils.errors import ApiError, NetworkError

logger = logging.getLogger(__name__)


class NotificationStore:
    """
    Polling cache of one user's notifications, newest first

    Same contract as SessionStore: stale-on-failure reads, raising
    mutations followed by a full refetch.
    """

    def __init__(self, client: MentaraApiClient, user_id: str, refresh_interval: float = REFRESH_INTERVAL):
        self.client = client
        self.user_id = user_id
        self.state = STATE_IDLE
        self.notifications: List[Notification] = []
        self.last_error: Optional[Exception] = None
        self._lock = asyncio.Lock()
        self._poller = PollingTask(self.refresh_notifications, refresh_interval)

    async def start(self) -> None:
        await self.refresh_notifications()
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

    @property
    def unread_count(self) -> int:
        return sum(1 for n in self.notifications if not n.read)

    async def refresh_notifications(self) -> None:
        async with self._lock:
            self.state = STATE_LOADING
            try:
                payload = await self.client.get(f"/notifications/{self.user_id}")
                self.notifications = [Notification(**n) for n in payload.get("notifications", [])]
                self.last_error = None
            except (NetworkError, ApiError) as e:
                logger.warning(f"Notification refresh failed for {self.user_id}: {e}")
                self.last_error = e
            finally:
                self.state = STATE_LOADED

    async def _mutate(
        self,
        method: str,
        path: str,
        body: Optional[Dict[str, Any]] = None,
        patch: Optional[Callable[[Dict[str, Any]], None]] = None,
    ) -> Dict[str, Any]:
        payload = await self.client.request(method, path, json=body)
        await self.refresh_notifications()
        if self.last_error is not None and patch is not None:
            # refetch failed; apply the confirmed change to the cache directly
            patch(payload)
        return payload

    def _mark_cached_read(self, notification_ids: Optional[List[str]] = None) -> None:
        self.notifications = [
            n.model_copy(update={"read": True}) if notification_ids is None or n.id in notification_ids else n
            for n in self.notifications
        ]

    def _remove_cached(self, notification_id: str) -> None:
        self.notifications = [n for n in self.notifications if n.id != notification_id]

    def _insert_cached(self, payload: Dict[str, Any]) -> None:
        if payload.get("notification"):
            self._remove_cached(payload["notificationId"])
            self.notifications.insert(0, Notification(**payload["notification"]))

    async def mark_as_read(self, notification_id: str) -> None:
        await self._mutate(
            "PUT", f"/notifications/{notification_id}/read",
            patch=lambda payload: self._mark_cached_read([notification_id]),
        )

    async def mark_all_as_read(self) -> int:
        payload = await self._mutate(
            "PUT", f"/notifications/{self.user_id}/read-all",
            patch=lambda payload: self._mark_cached_read(),
        )
        return payload.get("updated", 0)

    async def delete_notification(self, notification_id: str) -> None:
        await self._mutate(
            "DELETE", f"/notifications/{notification_id}",
            patch=lambda payload: self._remove_cached(notification_id),
        )

    async def send_notification(
        self,
        user_id: str,
        notification_type: str,
        title: str,
        message: str,
        session_id: Optional[str] = None,
        action_url: Optional[str] = None,
    ) -> str:
        """
        Send a notification to any user and return its id

        Only refetches when the recipient is this store's user.
        """
        body: Dict[str, Any] = {"userId": user_id, "type": notification_type, "title": title, "message": message}
        if session_id is not None:
            body["sessionId"] = session_id
        if action_url is not None:
            body["actionUrl"] = action_url

        if user_id == self.user_id:
            payload = await self._mutate("POST", "/notifications/send", body, patch=self._insert_cached)
        else:
            payload = await self.client.post("/notifications/send", body)
        return payload["notificationId"]
