from fastapi import FastAPI, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from dotenv import load_dotenv
from typing import List, Dict, Any
import logging
import os

from authentication.authh import get_current_user
from counselors.counselors import get_all_counselors, Counselor
from sessions.sessions import (
    book_session, get_visible_sessions, get_session_by_id, add_session_notes, add_session_feedback,
    SessionBookingRequest, SessionNotesUpdate, SessionFeedbackCreate
)
from sessions.session_models import SessionFeedback
from sessions.session_status import update_session_status, SessionStatusUpdate
from sessions.rescheduleSessions import (
    reschedule_session,
    change_session_type,
    SessionRescheduleRequest,
    SessionTypeChangeRequest,
)
from notifications.notifications import (
    send_notification, get_user_notifications, get_unread_count, mark_notification_read,
    mark_all_notifications_read, delete_notification, ensure_can_access_user, NotificationSend
)
from storage.kv_store import KV_BACKEND
from db import perform_health_check
from utils.errors import MentaraError

load_dotenv()

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(title="Mentara Sessions API", version="1.0.0")

CORS_ALLOW_ORIGINS = [o.strip() for o in os.getenv("CORS_ALLOW_ORIGINS", "*").split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOW_ORIGINS,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ==================== ERROR ENVELOPE ====================
# Every failure is answered as {"success": false, "error": <message>, ...}

def _failure(message: str, status_code: int) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})

@app.exception_handler(MentaraError)
async def mentara_error_handler(request: Request, exc: MentaraError):
    logger.info(f"{request.method} {request.url.path} rejected: {exc.message} ({exc.code})")
    return JSONResponse(status_code=exc.status_code, content=exc.to_response())

@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )

@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    messages = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error.get("loc", []) if part != "body")
        messages.append(f"{field}: {error.get('msg')}" if field else error.get("msg"))
    return JSONResponse(
        status_code=422,
        content={"success": False, "error": "; ".join(messages), "code": "validation_error"},
    )

# ==================== HEALTH & DIRECTORY ====================

@app.get("/")
async def root():
    return {"message": "Mentara Sessions API is running"}

@app.get("/health")
async def health_check():
    """
    Service health
    - Includes a database round trip when backed by Supabase
    """
    if KV_BACKEND != "supabase":
        return {"status": "healthy", "backend": KV_BACKEND}
    health = perform_health_check()
    if not health["success"]:
        return JSONResponse(status_code=503, content=health)
    return health

@app.get("/counselors", response_model=List[Counselor])
async def list_counselors():
    """
    Public counselor directory used by the booking flow
    """
    try:
        return get_all_counselors()
    except Exception as e:
        logger.error(f"Error fetching counselors: {e}")
        return _failure("Failed to fetch counselors", 500)

# ==================== SESSION MANAGEMENT ====================
# Booking, status transitions, rescheduling, notes and feedback

@app.get("/sessions")
async def get_sessions(current_user: Dict[str, Any] = Depends(get_current_user)):
    """
    List sessions visible to the caller
    - Admins see all, counselors their assigned sessions, users their bookings
    """
    try:
        sessions = await get_visible_sessions(current_user)
        return {"success": True, "sessions": [s.model_dump() for s in sessions]}
    except MentaraError:
        raise
    except Exception as e:
        logger.error(f"Error fetching sessions: {e}")
        return _failure("Failed to fetch sessions", 500)

@app.post("/sessions/book")
async def book_session_endpoint(booking: SessionBookingRequest, current_user: Dict[str, Any] = Depends(get_current_user)):
    """
    Book a new session
    - id, transactionId and bookingDate are generated here
    - Status always starts as 'pending'
    """
    try:
        session = await book_session(booking, current_user)
        return {
            "success": True,
            "sessionId": session.id,
            "transactionId": session.transactionId,
            "session": session.model_dump(),
        }
    except MentaraError:
        raise
    except Exception as e:
        logger.error(f"Error booking session: {e}")
        return _failure("Failed to book session", 500)

@app.get("/sessions/{session_id}")
async def get_session_endpoint(session_id: str, current_user: Dict[str, Any] = Depends(get_current_user)):
    try:
        session = await get_session_by_id(session_id, current_user)
        return {"success": True, "session": session.model_dump()}
    except MentaraError:
        raise
    except Exception as e:
        logger.error(f"Error fetching session {session_id}: {e}")
        return _failure("Failed to fetch session", 500)

@app.put("/sessions/{session_id}/status")
async def update_session_status_endpoint(
    session_id: str,
    update: SessionStatusUpdate,
    current_user: Dict[str, Any] = Depends(get_current_user),
):
    """
    Change session status through the allowed transitions
    - Cancelling requires a reason, stored as cancellationReason
    """
    try:
        session = await update_session_status(
            session_id, update.status, current_user, update.reason, update.expectedVersion
        )
        return {"success": True, "session": session.model_dump()}
    except MentaraError:
        raise
    except Exception as e:
        logger.error(f"Error updating session status for {session_id}: {e}")
        return _failure("Failed to update session status", 500)

@app.put("/sessions/{session_id}/reschedule")
async def reschedule_session_endpoint(
    session_id: str,
    request: SessionRescheduleRequest,
    current_user: Dict[str, Any] = Depends(get_current_user),
):
    try:
        session = await reschedule_session(
            session_id, request.newDate, request.newTime, current_user, request.expectedVersion
        )
        return {"success": True, "session": session.model_dump()}
    except MentaraError:
        raise
    except Exception as e:
        logger.error(f"Error rescheduling session {session_id}: {e}")
        return _failure("Failed to reschedule session", 500)

@app.put("/sessions/{session_id}/type")
async def change_session_type_endpoint(
    session_id: str,
    request: SessionTypeChangeRequest,
    current_user: Dict[str, Any] = Depends(get_current_user),
):
    try:
        session = await change_session_type(
            session_id, request.sessionType, current_user, request.expectedVersion
        )
        return {"success": True, "session": session.model_dump()}
    except MentaraError:
        raise
    except Exception as e:
        logger.error(f"Error changing session type for {session_id}: {e}")
        return _failure("Failed to change session type", 500)

@app.put("/sessions/{session_id}/notes")
async def add_session_notes_endpoint(
    session_id: str,
    request: SessionNotesUpdate,
    current_user: Dict[str, Any] = Depends(get_current_user),
):
    """
    Counselor notes; only the assigned counselor may write them
    """
    try:
        session = await add_session_notes(session_id, request.notes, current_user, request.expectedVersion)
        return {"success": True, "session": session.model_dump()}
    except MentaraError:
        raise
    except Exception as e:
        logger.error(f"Error adding session notes for {session_id}: {e}")
        return _failure("Failed to add session notes", 500)

@app.put("/sessions/{session_id}/feedback")
async def add_session_feedback_endpoint(
    session_id: str,
    request: SessionFeedbackCreate,
    current_user: Dict[str, Any] = Depends(get_current_user),
):
    """
    User feedback on a completed session; accepted once
    """
    try:
        feedback = SessionFeedback(rating=request.rating, comment=request.comment)
        session = await add_session_feedback(session_id, feedback, current_user, request.expectedVersion)
        return {"success": True, "session": session.model_dump()}
    except MentaraError:
        raise
    except Exception as e:
        logger.error(f"Error adding session feedback for {session_id}: {e}")
        return _failure("Failed to add session feedback", 500)

# ==================== NOTIFICATIONS ====================

@app.post("/notifications/send")
async def send_notification_endpoint(data: NotificationSend, current_user: Dict[str, Any] = Depends(get_current_user)):
    try:
        notification = await send_notification(data, current_user)
        return {"success": True, "notificationId": notification.id, "notification": notification.model_dump()}
    except MentaraError:
        raise
    except Exception as e:
        logger.error(f"Error sending notification: {e}")
        return _failure("Failed to send notification", 500)

@app.get("/notifications/{user_id}")
async def get_notifications_endpoint(user_id: str, current_user: Dict[str, Any] = Depends(get_current_user)):
    """
    All notifications of a user, newest first
    """
    try:
        ensure_can_access_user(user_id, current_user)
        notifications = await get_user_notifications(user_id)
        return {"success": True, "notifications": [n.model_dump() for n in notifications]}
    except MentaraError:
        raise
    except Exception as e:
        logger.error(f"Error fetching notifications for {user_id}: {e}")
        return _failure("Failed to fetch notifications", 500)

@app.get("/notifications/{user_id}/unread-count")
async def get_unread_count_endpoint(user_id: str, current_user: Dict[str, Any] = Depends(get_current_user)):
    try:
        ensure_can_access_user(user_id, current_user)
        return {"success": True, "unreadCount": await get_unread_count(user_id)}
    except MentaraError:
        raise
    except Exception as e:
        logger.error(f"Error counting unread notifications for {user_id}: {e}")
        return _failure("Failed to count unread notifications", 500)

@app.put("/notifications/{notification_id}/read")
async def mark_notification_read_endpoint(notification_id: str, current_user: Dict[str, Any] = Depends(get_current_user)):
    try:
        await mark_notification_read(notification_id, current_user)
        return {"success": True}
    except MentaraError:
        raise
    except Exception as e:
        logger.error(f"Error marking notification {notification_id} as read: {e}")
        return _failure("Failed to mark notification as read", 500)

@app.put("/notifications/{user_id}/read-all")
async def mark_all_notifications_read_endpoint(user_id: str, current_user: Dict[str, Any] = Depends(get_current_user)):
    try:
        ensure_can_access_user(user_id, current_user)
        updated = await mark_all_notifications_read(user_id)
        return {"success": True, "updated": updated}
    except MentaraError:
        raise
    except Exception as e:
        logger.error(f"Error marking all notifications as read for {user_id}: {e}")
        return _failure("Failed to mark all notifications as read", 500)

@app.delete("/notifications/{notification_id}")
async def delete_notification_endpoint(notification_id: str, current_user: Dict[str, Any] = Depends(get_current_user)):
    try:
        await delete_notification(notification_id, current_user)
        return {"success": True}
    except MentaraError:
        raise
    except Exception as e:
        logger.error(f"Error deleting notification {notification_id}: {e}")
        return _failure("Failed to delete notification", 500)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app:app", host="0.0.0.0", port=int(os.getenv("PORT", "8000")), reload=True)
