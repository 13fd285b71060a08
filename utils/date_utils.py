"""
Centralized date/time utilities for the Mentara backend
Provides consistent timezone-aware datetime handling across the application
"""

from datetime import datetime, date, timezone
from typing import Optional
import logging

logger = logging.getLogger(__name__)

# ==================== CONFIGURATION ====================

# ISO 8601 date format used for session dates ("2025-01-10")
ISO_DATE_FORMAT = "%Y-%m-%d"

# ==================== CORE DATE UTILITIES ====================

def get_current_utc_datetime() -> datetime:
    """
    Get current UTC datetime with timezone awareness

    Returns:
        datetime: Current UTC datetime with timezone info
    """
    return datetime.now(timezone.utc)

def utc_now_iso() -> str:
    """
    Get current UTC datetime as ISO 8601 string with timezone
    Standard format for createdAt / bookingDate / updatedAt fields

    Returns:
        str: e.g. '2025-09-23T14:30:00.123456+00:00'
    """
    return get_current_utc_datetime().isoformat()

def today_local_iso() -> str:
    """
    Get today's date in the local timezone as YYYY-MM-DD
    Used for exact string comparison against session dates
    """
    return datetime.now().date().isoformat()

def current_millis() -> int:
    """Milliseconds since the epoch, used in generated ids."""
    return int(get_current_utc_datetime().timestamp() * 1000)

# ==================== PARSING UTILITIES ====================

def parse_date_string(date_str: str) -> Optional[date]:
    """
    Parse a strict YYYY-MM-DD date string

    Returns:
        date: Parsed date or None if the string is not in ISO date format
    """
    if not date_str:
        return None

    try:
        return datetime.strptime(date_str, ISO_DATE_FORMAT).date()
    except (TypeError, ValueError):
        logger.warning(f"Failed to parse date string '{date_str}'")
        return None

def parse_datetime_string(datetime_str: str) -> Optional[datetime]:
    """
    Parse an ISO datetime string to a timezone-aware datetime
    - Accepts trailing 'Z' for UTC
    - Naive values are assumed to be UTC
    """
    if not datetime_str:
        return None

    try:
        dt = datetime.fromisoformat(datetime_str.replace('Z', '+00:00'))
    except (TypeError, ValueError):
        logger.warning(f"Failed to parse datetime string '{datetime_str}'")
        return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt
