"""
Automatic notifications for session lifecycle events
Each session mutation notifies the booking user and, for most events, the
assigned counselor. Delivery is best effort: the session write has already
succeeded when these run
"""
import logging
from typing import Optional

from notifications.notifications import create_notification

logger = logging.getLogger(__name__)

# status -> (notification type, title, user message template)
STATUS_NOTIFICATIONS = {
    "confirmed": (
        "session_confirmed",
        "Session Confirmed",
        "Your session on {date} at {time} has been confirmed.",
    ),
    "cancelled": (
        "session_cancelled",
        "Session Cancelled",
        "Your session on {date} at {time} has been cancelled. {reason}",
    ),
    "in-progress": (
        "session_started",
        "Session Started",
        "Your session has started.",
    ),
    "completed": (
        "session_completed",
        "Session Completed",
        "Your session has been completed. Please provide feedback.",
    ),
    "rescheduled": (
        "session_rescheduled",
        "Session Rescheduled",
        "Your session on {date} at {time} has been marked for rescheduling.",
    ),
}


async def _notify(user_id: str, notification_type: str, title: str, message: str, session_id: str) -> None:
    try:
        await create_notification(user_id, notification_type, title, message, session_id)
    except Exception as e:
        logger.error(f"Failed to deliver {notification_type} notification for session {session_id} to {user_id}: {e}")


async def notify_session_booked(session) -> None:
    await _notify(
        session.userId,
        "session_booked",
        "Session Booked Successfully",
        f"Your session with {session.counselorName} has been booked for {session.date} at {session.time}.",
        session.id,
    )
    await _notify(
        session.counselorId,
        "session_booked",
        "New Session Booked",
        f"A new session has been booked for {session.date} at {session.time}.",
        session.id,
    )


async def notify_status_changed(session, new_status: str, reason: Optional[str] = None) -> None:
    """
    Notify both parties of a status change
    - The counselor copy swaps the second-person wording ("Your" -> "The")
    """
    template = STATUS_NOTIFICATIONS.get(new_status)
    if not template:
        return

    notification_type, title, message_template = template
    message = message_template.format(date=session.date, time=session.time, reason=reason or "").strip()

    await _notify(session.userId, notification_type, title, message, session.id)
    await _notify(
        session.counselorId,
        notification_type,
        title,
        message.replace("Your", "The", 1),
        session.id,
    )


async def notify_session_rescheduled(session, old_slot: str) -> None:
    new_slot = f"{session.date} at {session.time}"
    await _notify(
        session.userId,
        "session_rescheduled",
        "Session Rescheduled",
        f"Your session has been rescheduled from {old_slot} to {new_slot}.",
        session.id,
    )
    await _notify(
        session.counselorId,
        "session_rescheduled",
        "Session Rescheduled",
        f"A session has been rescheduled from {old_slot} to {new_slot}.",
        session.id,
    )


async def notify_session_type_changed(session) -> None:
    await _notify(
        session.userId,
        "session_rescheduled",
        "Session Type Changed",
        f"Your session type has been changed to {session.sessionType}.",
        session.id,
    )


async def notify_notes_added(session) -> None:
    await _notify(
        session.userId,
        "notes_added",
        "Session Notes Added",
        "Your counselor has added notes to your session.",
        session.id,
    )
