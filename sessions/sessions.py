from typing import List, Optional, Dict, Any
from pydantic import BaseModel, Field, field_validator
import logging
from storage.kv_store import get_kv_store
from authentication.authh import is_admin, ROLE_COUNSELOR
from counselors.counselors import get_counselor_by_id, calculate_session_price
from notifications.session_notifications import notify_session_booked, notify_notes_added
from sessions.session_models import Session, SessionFeedback, SessionType, SESSION_STATUS
from utils.date_utils import utc_now_iso, parse_date_string
from utils.errors import NotFoundError, ValidationError, PermissionDeniedError, ConflictError
from utils.ids import generate_session_id, generate_transaction_id, SESSION_PREFIX

# ==================== CONFIGURATION & SETUP ====================

logger = logging.getLogger(__name__)

# ==================== DATA MODELS ====================
# Request models for booking and session detail updates

class SessionBookingRequest(BaseModel):
    """
    Data model for booking a session (Session minus id/bookingDate/transactionId)
    - status: optional, must be 'pending' when supplied
    - price: used only when the counselor is not in the directory
    - counselorName/counselorImage: taken from the directory when available
    """
    userId: str = Field(min_length=1)
    counselorId: str = Field(min_length=1)
    counselorName: Optional[str] = None
    counselorImage: Optional[str] = None
    sessionType: SessionType
    date: str
    time: str = Field(min_length=1)
    status: Optional[str] = None
    topic: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0)

    @field_validator('date')
    @classmethod
    def validate_date(cls, v):
        if parse_date_string(v) is None:
            raise ValueError('date must be an ISO date (YYYY-MM-DD)')
        return v

class SessionNotesUpdate(BaseModel):
    notes: str
    expectedVersion: Optional[int] = None

class SessionFeedbackCreate(BaseModel):
    rating: int = Field(ge=1, le=5)
    comment: str = ""
    expectedVersion: Optional[int] = None

# ==================== HELPER FUNCTIONS ====================
# Storage, versioning and access helpers shared by the session modules

def load_session(session_id: str) -> Session:
    """
    Load a session record by id

    Raises:
        NotFoundError: id does not resolve to a session
    """
    if not session_id.startswith(SESSION_PREFIX):
        raise NotFoundError("Session not found")
    record = get_kv_store().get(session_id)
    if not record:
        raise NotFoundError("Session not found")
    return Session(**record)

def check_expected_version(session: Session, expected_version: Optional[int]) -> None:
    """
    Reject a write based on a stale read
    """
    if expected_version is not None and expected_version != session.version:
        logger.warning(
            f"Stale write on session {session.id}: expected version {expected_version}, current {session.version}"
        )
        raise ConflictError("Session has been modified since it was read", session.model_dump())

def save_session(session: Session, changes: Dict[str, Any]) -> Session:
    """
    Apply changes and persist with a compare-and-set on the current version

    Returns:
        The updated Session (version incremented)

    Raises:
        ConflictError: another write landed between read and write
    """
    updated = session.model_copy(update={
        **changes,
        "version": session.version + 1,
        "updatedAt": utc_now_iso(),
    })
    store = get_kv_store()
    if not store.compare_and_set(session.id, updated.model_dump(), session.version):
        current = store.get(session.id)
        logger.warning(f"Concurrent write detected on session {session.id}")
        raise ConflictError("Session was modified by another request", current)
    return updated

def is_participant(session: Session, current_user: Dict[str, Any]) -> bool:
    return current_user["id"] in (session.userId, session.counselorId)

def ensure_session_access(session: Session, current_user: Dict[str, Any]) -> None:
    """
    Only the booking user, the assigned counselor or an admin may act on a session
    """
    if not is_participant(session, current_user) and not is_admin(current_user):
        logger.warning(f"User {current_user['id']} denied access to session {session.id}")
        raise PermissionDeniedError("Access denied to this session")

# ==================== SESSION BOOKING ====================

async def book_session(booking: SessionBookingRequest, current_user: Dict[str, Any]) -> Session:
    """
    Book a new counseling session

    Args:
        booking: Session details supplied by the booking user
        current_user: Authenticated caller (must be the booking user or an admin)

    Returns:
        The created Session in 'pending' status

    Usage:
        - Generates id, transactionId and bookingDate server-side
        - Snapshots counselor name, image and price (fee + platform fee)
        - Notifies the user and the counselor of the booking
    """
    if booking.userId != current_user["id"] and not is_admin(current_user):
        raise PermissionDeniedError("Sessions can only be booked for yourself")

    if booking.status is not None and booking.status != SESSION_STATUS["PENDING"]:
        raise ValidationError(f"New sessions must be booked as 'pending', got '{booking.status}'")

    counselor = get_counselor_by_id(booking.counselorId)
    if counselor:
        counselor_name = counselor.name
        counselor_image = counselor.image
        price = calculate_session_price(counselor.price)
    elif booking.price is not None:
        counselor_name = booking.counselorName or ""
        counselor_image = booking.counselorImage or ""
        price = booking.price
    else:
        raise ValidationError("price is required for counselors outside the directory")

    booking_date = utc_now_iso()
    session = Session(
        id=generate_session_id(),
        userId=booking.userId,
        counselorId=booking.counselorId,
        counselorName=counselor_name,
        counselorImage=counselor_image,
        sessionType=booking.sessionType,
        date=booking.date,
        time=booking.time,
        status=SESSION_STATUS["PENDING"],
        topic=booking.topic,
        price=price,
        transactionId=generate_transaction_id(),
        bookingDate=booking_date,
        version=1,
        updatedAt=booking_date,
    )

    get_kv_store().set(session.id, session.model_dump())
    logger.info(f"Session {session.id} booked by {booking.userId} with counselor {booking.counselorId} for {booking.date} {booking.time}")

    await notify_session_booked(session)
    return session

# ==================== SESSION RETRIEVAL ====================

async def get_all_sessions() -> List[Session]:
    """
    Get every stored session, most recently booked first
    """
    records = get_kv_store().get_by_prefix(SESSION_PREFIX)
    sessions = [Session(**record) for record in records]
    sessions.sort(key=lambda s: s.bookingDate, reverse=True)
    return sessions

async def get_visible_sessions(current_user: Dict[str, Any]) -> List[Session]:
    """
    Get the sessions the caller may see

    Usage:
        - Admins see all sessions
        - Counselors see sessions assigned to them (and any they booked)
        - Users see their own bookings
    """
    sessions = await get_all_sessions()
    if is_admin(current_user):
        return sessions
    return [s for s in sessions if is_participant(s, current_user)]

async def get_session_by_id(session_id: str, current_user: Dict[str, Any]) -> Session:
    session = load_session(session_id)
    ensure_session_access(session, current_user)
    return session

# ==================== SESSION DETAILS ====================

async def add_session_notes(
    session_id: str,
    notes: str,
    current_user: Dict[str, Any],
    expected_version: Optional[int] = None,
) -> Session:
    """
    Set counselor notes on a session (may be overwritten any number of times)

    Raises:
        PermissionDeniedError: caller is not the assigned counselor
    """
    session = load_session(session_id)
    if current_user["id"] != session.counselorId or current_user["role"] != ROLE_COUNSELOR:
        raise PermissionDeniedError("Only the assigned counselor can add session notes")
    check_expected_version(session, expected_version)

    updated = save_session(session, {"notes": notes})
    logger.info(f"Notes updated on session {session_id} by counselor {current_user['id']}")

    await notify_notes_added(updated)
    return updated

async def add_session_feedback(
    session_id: str,
    feedback: SessionFeedback,
    current_user: Dict[str, Any],
    expected_version: Optional[int] = None,
) -> Session:
    """
    Record the booking user's feedback on a completed session

    Raises:
        PermissionDeniedError: caller is not the session's user
        ValidationError: session is not completed
        ConflictError: feedback was already submitted
    """
    session = load_session(session_id)
    if current_user["id"] != session.userId:
        raise PermissionDeniedError("Only the session's user can leave feedback")
    if session.status != SESSION_STATUS["COMPLETED"]:
        raise ValidationError("Feedback can only be submitted for completed sessions")
    if session.feedback is not None:
        raise ConflictError("Feedback has already been submitted for this session", session.model_dump())
    check_expected_version(session, expected_version)

    updated = save_session(session, {"feedback": feedback})
    logger.info(f"Feedback (rating {feedback.rating}) recorded on session {session_id}")
    return updated
