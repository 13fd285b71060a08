from typing import Optional, Literal
from pydantic import BaseModel, Field

# ==================== CONSTANTS ====================

SessionType = Literal["video", "audio", "chat", "in-person"]

SessionStatusValue = Literal[
    "pending", "confirmed", "in-progress", "completed", "cancelled", "rescheduled"
]

# Session status constants
SESSION_STATUS = {
    "PENDING": "pending",
    "CONFIRMED": "confirmed",
    "IN_PROGRESS": "in-progress",
    "COMPLETED": "completed",
    "CANCELLED": "cancelled",
    "RESCHEDULED": "rescheduled",
}

# ==================== DATA MODELS ====================

class SessionFeedback(BaseModel):
    """
    Feedback left by the booking user after a completed session
    - rating: integer 1-5
    """
    rating: int = Field(ge=1, le=5)
    comment: str = ""

class Session(BaseModel):
    """
    A booked counseling appointment as stored and returned by the API
    - counselorName/counselorImage/price: snapshot copied at booking time,
      not kept in sync with later counselor updates
    - transactionId/bookingDate: generated server-side at creation
    - version: optimistic concurrency counter, incremented on every write
    """
    id: str
    userId: str
    counselorId: str
    counselorName: str = ""
    counselorImage: str = ""
    sessionType: SessionType
    date: str
    time: str
    status: SessionStatusValue
    topic: Optional[str] = None
    price: float
    transactionId: str
    bookingDate: str
    notes: Optional[str] = None
    feedback: Optional[SessionFeedback] = None
    cancellationReason: Optional[str] = None
    rescheduledFrom: Optional[str] = None
    version: int = 1
    updatedAt: Optional[str] = None
