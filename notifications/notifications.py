from typing import List, Optional, Dict, Any, Literal
from datetime import datetime, timezone
from pydantic import BaseModel, Field
import logging
from storage.kv_store import get_kv_store
from authentication.authh import is_admin, ROLE_COUNSELOR
from utils.date_utils import utc_now_iso, parse_datetime_string
from utils.errors import NotFoundError, PermissionDeniedError
from utils.ids import generate_notification_id, NOTIFICATION_PREFIX

# ==================== CONFIGURATION & SETUP ====================

logger = logging.getLogger(__name__)

NotificationType = Literal[
    "session_booked",
    "session_confirmed",
    "session_rescheduled",
    "session_cancelled",
    "session_reminder",
    "session_started",
    "session_completed",
    "feedback_reminder",
    "notes_added",
]

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)

# ==================== DATA MODELS ====================
# Pydantic models for notification records and requests

class Notification(BaseModel):
    """
    Persisted user-facing notification
    - createdAt: set once at creation, never modified
    - read: the only field that changes after creation
    - sessionId: optional back-reference to the triggering session
    """
    id: str
    userId: str
    type: NotificationType
    title: str
    message: str
    read: bool = False
    createdAt: str
    sessionId: Optional[str] = None
    actionUrl: Optional[str] = None

class NotificationSend(BaseModel):
    """Request body for POST /notifications/send"""
    userId: str = Field(min_length=1)
    type: NotificationType
    title: str = Field(min_length=1)
    message: str
    sessionId: Optional[str] = None
    actionUrl: Optional[str] = None

# ==================== HELPER FUNCTIONS ====================

def _load_notification(notification_id: str) -> Notification:
    record = get_kv_store().get(notification_id)
    if not record or not notification_id.startswith(NOTIFICATION_PREFIX):
        raise NotFoundError("Notification not found")
    return Notification(**record)

def _save_notification(notification: Notification) -> None:
    get_kv_store().set(notification.id, notification.model_dump())

def _update_notification(notification: Notification) -> bool:
    """Write back an existing notification; False if it was deleted meanwhile."""
    return get_kv_store().update(notification.id, notification.model_dump())

def _sort_key(notification: Notification):
    return (parse_datetime_string(notification.createdAt) or _EPOCH, notification.id)

def ensure_can_access_user(user_id: str, current_user: Dict[str, Any]) -> None:
    """
    Allow access to a user's notifications only for that user or an admin
    """
    if current_user["id"] != user_id and not is_admin(current_user):
        logger.warning(f"User {current_user['id']} denied access to notifications of {user_id}")
        raise PermissionDeniedError("Access denied to these notifications")

# ==================== NOTIFICATION CREATION ====================

async def create_notification(
    user_id: str,
    notification_type: str,
    title: str,
    message: str,
    session_id: Optional[str] = None,
    action_url: Optional[str] = None,
) -> Notification:
    """
    Persist a new unread notification

    Usage:
        - Write path behind POST /notifications/send
        - Used by the session event fan-out
    """
    notification = Notification(
        id=generate_notification_id(),
        userId=user_id,
        type=notification_type,
        title=title,
        message=message,
        read=False,
        createdAt=utc_now_iso(),
        sessionId=session_id,
        actionUrl=action_url,
    )
    _save_notification(notification)
    logger.info(f"Notification {notification.id} ({notification_type}) created for user {user_id}")
    return notification

async def send_notification(data: NotificationSend, current_user: Dict[str, Any]) -> Notification:
    """
    Send a notification on behalf of the caller

    Args:
        data: Notification content and recipient
        current_user: Authenticated caller

    Returns:
        The created Notification

    Usage:
        - Counselors and admins may notify any user
        - Regular users may only notify themselves (e.g. self-set reminders)
    """
    if current_user["role"] != ROLE_COUNSELOR and not is_admin(current_user):
        ensure_can_access_user(data.userId, current_user)

    return await create_notification(
        data.userId, data.type, data.title, data.message, data.sessionId, data.actionUrl
    )

# ==================== NOTIFICATION RETRIEVAL ====================

async def get_user_notifications(user_id: str) -> List[Notification]:
    """
    Get all notifications for a user, newest first

    Returns:
        Full list (no pagination), sorted descending by createdAt
    """
    records = get_kv_store().get_by_prefix(NOTIFICATION_PREFIX)
    notifications = [
        Notification(**record) for record in records
        if record.get("userId") == user_id
    ]
    notifications.sort(key=_sort_key, reverse=True)
    return notifications

async def get_unread_count(user_id: str) -> int:
    notifications = await get_user_notifications(user_id)
    return sum(1 for n in notifications if not n.read)

# ==================== NOTIFICATION UPDATES ====================

async def mark_notification_read(notification_id: str, current_user: Dict[str, Any]) -> Notification:
    """
    Set read = true on a single notification owned by the caller
    """
    notification = _load_notification(notification_id)
    ensure_can_access_user(notification.userId, current_user)

    if not notification.read:
        notification.read = True
        if not _update_notification(notification):
            raise NotFoundError("Notification not found")
        logger.info(f"Notification {notification_id} marked as read")
    return notification

async def mark_all_notifications_read(user_id: str) -> int:
    """
    Set read = true on every unread notification of a user

    Returns:
        Number of notifications that changed; repeated calls return 0
        Notifications deleted while this runs are skipped, not recreated
    """
    notifications = await get_user_notifications(user_id)
    updated = 0
    for notification in notifications:
        if notification.read:
            continue
        notification.read = True
        if _update_notification(notification):
            updated += 1

    logger.info(f"Marked {updated} notifications as read for user {user_id}")
    return updated

async def delete_notification(notification_id: str, current_user: Dict[str, Any]) -> None:
    """
    Hard-delete a notification owned by the caller (or any, for admins)

    Raises:
        NotFoundError: id does not resolve; nothing is deleted
    """
    notification = _load_notification(notification_id)
    ensure_can_access_user(notification.userId, current_user)

    get_kv_store().delete(notification_id)
    logger.info(f"Notification {notification_id} deleted by {current_user['id']}")
