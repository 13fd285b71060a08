from typing import Optional, Dict, Any
from pydantic import BaseModel
import logging
from authentication.authh import is_admin, ROLE_COUNSELOR
from notifications.session_notifications import notify_status_changed
from sessions.session_models import Session, SessionStatusValue, SESSION_STATUS
from sessions.sessions import load_session, save_session, check_expected_version, ensure_session_access
from utils.errors import InvalidTransitionError, ValidationError, PermissionDeniedError

# ==================== CONFIGURATION & SETUP ====================

logger = logging.getLogger(__name__)

# Allowed status changes; completed and cancelled are final
VALID_TRANSITIONS = {
    SESSION_STATUS["PENDING"]: {
        SESSION_STATUS["CONFIRMED"], SESSION_STATUS["CANCELLED"], SESSION_STATUS["RESCHEDULED"],
    },
    SESSION_STATUS["CONFIRMED"]: {
        SESSION_STATUS["IN_PROGRESS"], SESSION_STATUS["CANCELLED"], SESSION_STATUS["RESCHEDULED"],
    },
    SESSION_STATUS["IN_PROGRESS"]: {SESSION_STATUS["COMPLETED"]},
    SESSION_STATUS["RESCHEDULED"]: {
        SESSION_STATUS["CONFIRMED"], SESSION_STATUS["CANCELLED"], SESSION_STATUS["RESCHEDULED"],
    },
    SESSION_STATUS["COMPLETED"]: set(),
    SESSION_STATUS["CANCELLED"]: set(),
}

# Statuses only the assigned counselor (or an admin) may set
COUNSELOR_ONLY_STATUSES = {
    SESSION_STATUS["CONFIRMED"],
    SESSION_STATUS["IN_PROGRESS"],
    SESSION_STATUS["COMPLETED"],
}

# ==================== DATA MODELS ====================

class SessionStatusUpdate(BaseModel):
    """
    Request body for PUT /sessions/{id}/status
    - reason: required when status is 'cancelled'
    - expectedVersion: optional optimistic concurrency check
    """
    status: SessionStatusValue
    reason: Optional[str] = None
    expectedVersion: Optional[int] = None

# ==================== HELPER FUNCTIONS ====================

def validate_status_transition(current_status: str, new_status: str) -> bool:
    """
    Check whether a status change is allowed from the current state
    """
    return new_status in VALID_TRANSITIONS.get(current_status, set())

def _ensure_can_set_status(session: Session, new_status: str, current_user: Dict[str, Any]) -> None:
    ensure_session_access(session, current_user)
    if new_status in COUNSELOR_ONLY_STATUSES and not is_admin(current_user):
        if current_user["id"] != session.counselorId or current_user["role"] != ROLE_COUNSELOR:
            raise PermissionDeniedError(f"Only the assigned counselor can mark a session as {new_status}")

def _log_status_change(session_id: str, previous_status: str, new_status: str, updated_by: str) -> None:
    logger.info(f"Session {session_id} status changed: {previous_status} → {new_status} by {updated_by}")

# ==================== SESSION STATUS MANAGEMENT ====================

async def update_session_status(
    session_id: str,
    new_status: str,
    current_user: Dict[str, Any],
    reason: Optional[str] = None,
    expected_version: Optional[int] = None,
) -> Session:
    """
    Move a session to a new status

    Args:
        session_id: Session to update
        new_status: Target status
        current_user: Authenticated caller
        reason: Cancellation reason, required for 'cancelled'
        expected_version: Version the caller last read, if any

    Returns:
        The updated Session

    Raises:
        NotFoundError: unknown session id
        ValidationError: cancelling without a reason
        InvalidTransitionError: change not allowed from the current status
        ConflictError: stale or concurrent write
    """
    if new_status == SESSION_STATUS["CANCELLED"] and not (reason or "").strip():
        raise ValidationError("A reason is required when cancelling a session")

    session = load_session(session_id)
    _ensure_can_set_status(session, new_status, current_user)
    check_expected_version(session, expected_version)

    previous_status = session.status
    if not validate_status_transition(previous_status, new_status):
        logger.warning(f"Invalid status transition for session {session_id}: {previous_status} → {new_status}")
        raise InvalidTransitionError(previous_status, new_status)

    changes: Dict[str, Any] = {"status": new_status}
    if new_status == SESSION_STATUS["CANCELLED"]:
        changes["cancellationReason"] = reason

    updated = save_session(session, changes)
    _log_status_change(session_id, previous_status, new_status, current_user["id"])

    await notify_status_changed(updated, new_status, reason)
    return updated

async def cancel_session(
    session_id: str,
    reason: str,
    current_user: Dict[str, Any],
    expected_version: Optional[int] = None,
) -> Session:
    """
    Cancel a pending, confirmed or rescheduled session with a reason
    """
    return await update_session_status(
        session_id, SESSION_STATUS["CANCELLED"], current_user, reason, expected_version
    )
