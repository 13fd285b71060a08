import logging
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator

from notifications.session_notifications import notify_session_rescheduled, notify_session_type_changed
from sessions.session_models import Session, SessionType, SESSION_STATUS
from sessions.session_status import validate_status_transition
from sessions.sessions import load_session, save_session, check_expected_version, ensure_session_access
from utils.date_utils import parse_date_string
from utils.errors import InvalidTransitionError, ValidationError

logger = logging.getLogger(__name__)

# Sessions in these states can no longer change format
FINAL_STATUSES = {SESSION_STATUS["COMPLETED"], SESSION_STATUS["CANCELLED"]}


class SessionRescheduleRequest(BaseModel):
    """Request payload for moving a session to a new slot."""

    newDate: str
    newTime: str = Field(min_length=1)
    expectedVersion: Optional[int] = None

    @field_validator("newDate")
    @classmethod
    def validate_new_date(cls, v):
        if parse_date_string(v) is None:
            raise ValueError("newDate must be an ISO date (YYYY-MM-DD)")
        return v


class SessionTypeChangeRequest(BaseModel):
    """Request payload for switching a session between video/audio/chat/in-person."""

    sessionType: SessionType
    expectedVersion: Optional[int] = None


def _format_slot(session: Session) -> str:
    return f"{session.date} at {session.time}"


async def reschedule_session(
    session_id: str,
    new_date: str,
    new_time: str,
    current_user: Dict[str, Any],
    expected_version: Optional[int] = None,
) -> Session:
    """
    Move a session to a new date/time and mark it rescheduled.

    The previous slot is kept in rescheduledFrom as "<date> at <time>".
    Allowed from pending, confirmed and rescheduled.
    """
    if parse_date_string(new_date) is None:
        raise ValidationError("newDate must be an ISO date (YYYY-MM-DD)")
    if not new_time:
        raise ValidationError("newTime is required")

    session = load_session(session_id)
    ensure_session_access(session, current_user)
    check_expected_version(session, expected_version)

    if not validate_status_transition(session.status, SESSION_STATUS["RESCHEDULED"]):
        raise InvalidTransitionError(session.status, SESSION_STATUS["RESCHEDULED"])

    old_slot = _format_slot(session)
    updated = save_session(session, {
        "date": new_date,
        "time": new_time,
        "status": SESSION_STATUS["RESCHEDULED"],
        "rescheduledFrom": old_slot,
    })
    logger.info(f"Session {session_id} rescheduled from {old_slot} to {_format_slot(updated)} by {current_user['id']}")

    await notify_session_rescheduled(updated, old_slot)
    return updated


async def change_session_type(
    session_id: str,
    new_type: str,
    current_user: Dict[str, Any],
    expected_version: Optional[int] = None,
) -> Session:
    """
    Switch the session format without touching its status.
    """
    session = load_session(session_id)
    ensure_session_access(session, current_user)
    check_expected_version(session, expected_version)

    if session.status in FINAL_STATUSES:
        raise ValidationError(f"Cannot change the type of a {session.status} session")

    if session.sessionType == new_type:
        return session

    updated = save_session(session, {"sessionType": new_type})
    logger.info(f"Session {session_id} type changed from {session.sessionType} to {new_type}")

    await notify_session_type_changed(updated)
    return updated
