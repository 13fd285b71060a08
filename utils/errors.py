"""
Error taxonomy for Mentara booking and notification services
Each error carries the HTTP status and machine-readable code used in the
{success: false, error, code} response envelope
"""

from typing import Any, Dict, Optional


class MentaraError(Exception):
    """Base class for errors that map onto an API error envelope."""

    status_code = 500
    code = "internal_error"

    def __init__(self, message: str, payload: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.payload = payload or {}

    def to_response(self) -> Dict[str, Any]:
        body = {"success": False, "error": self.message, "code": self.code}
        body.update(self.payload)
        return body


class NotFoundError(MentaraError):
    """Unknown session or notification id."""

    status_code = 404
    code = "not_found"


class ValidationError(MentaraError):
    """Missing or malformed input, e.g. cancelling without a reason."""

    status_code = 400
    code = "validation_error"


class PermissionDeniedError(MentaraError):
    """Caller is authenticated but not allowed to act on the record."""

    status_code = 403
    code = "forbidden"


class InvalidTransitionError(MentaraError):
    """Status change not permitted from the session's current state."""

    status_code = 409
    code = "invalid_transition"

    def __init__(self, current_status: str, new_status: str):
        super().__init__(
            f"Invalid status transition: {current_status} → {new_status}",
            {"currentStatus": current_status, "requestedStatus": new_status},
        )
        self.current_status = current_status
        self.new_status = new_status


class ConflictError(MentaraError):
    """Stale write: the record changed since the caller last read it."""

    status_code = 409
    code = "conflict"

    def __init__(self, message: str, current: Optional[Dict[str, Any]] = None):
        payload = {"session": current} if current is not None else {}
        super().__init__(message, payload)
        self.current = current


# ==================== CLIENT-SIDE ERRORS ====================

class NetworkError(Exception):
    """Request never produced an HTTP response (connection failure or timeout)."""


class ApiError(Exception):
    """The API answered with a non-2xx status or {success: false}."""

    def __init__(self, message: str, status_code: int, code: Optional[str] = None,
                 payload: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
        self.payload = payload or {}
