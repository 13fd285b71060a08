"""
Derived session views
Pure filters over an already-loaded session collection, shared by the API
and the client stores
"""
from typing import Iterable, List, Optional

from sessions.session_models import Session
from utils.date_utils import today_local_iso


def get_user_sessions(sessions: Iterable[Session], user_id: str) -> List[Session]:
    return [s for s in sessions if s.userId == user_id]


def get_counselor_sessions(sessions: Iterable[Session], counselor_id: str) -> List[Session]:
    return [s for s in sessions if s.counselorId == counselor_id]


def get_todays_sessions(
    sessions: Iterable[Session],
    counselor_id: str,
    today: Optional[str] = None,
) -> List[Session]:
    """
    Sessions of a counselor whose date string equals today's local date

    Exact string comparison: a session stored with any other date format
    never matches. Status is not considered.
    """
    today = today or today_local_iso()
    return [s for s in sessions if s.counselorId == counselor_id and s.date == today]
