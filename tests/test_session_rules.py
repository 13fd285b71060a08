"""
Test suite for session status rules, derived views and id generation.
"""

import pytest

from sessions.session_models import Session
from sessions.session_status import validate_status_transition
from sessions.session_views import get_user_sessions, get_counselor_sessions, get_todays_sessions
from utils.ids import generate_session_id, generate_notification_id, generate_transaction_id


def _session(session_id, user_id="U1", counselor_id="1", date="2030-01-10", status="pending") -> Session:
    return Session(
        id=session_id,
        userId=user_id,
        counselorId=counselor_id,
        sessionType="video",
        date=date,
        time="09:00 AM",
        status=status,
        price=850,
        transactionId="TXN1",
        bookingDate="2030-01-01T00:00:00+00:00",
    )


@pytest.mark.parametrize("current,new", [
    ("pending", "confirmed"),
    ("pending", "cancelled"),
    ("pending", "rescheduled"),
    ("confirmed", "in-progress"),
    ("confirmed", "cancelled"),
    ("confirmed", "rescheduled"),
    ("in-progress", "completed"),
    ("rescheduled", "confirmed"),
])
def test_allowed_transitions(current, new):
    assert validate_status_transition(current, new) is True


@pytest.mark.parametrize("current,new", [
    ("pending", "in-progress"),
    ("pending", "completed"),
    ("in-progress", "cancelled"),
    ("completed", "confirmed"),
    ("cancelled", "pending"),
    ("confirmed", "pending"),
])
def test_rejected_transitions(current, new):
    assert validate_status_transition(current, new) is False


def test_todays_sessions_match_date_exactly():
    sessions = [
        _session("session_a", date="2030-01-10"),
        _session("session_b", date="2030-01-11"),
        _session("session_c", date="2030-1-10"),
        _session("session_d", counselor_id="2", date="2030-01-10"),
        _session("session_e", date="2030-01-10", status="cancelled"),
    ]

    today = get_todays_sessions(sessions, "1", today="2030-01-10")

    assert [s.id for s in today] == ["session_a", "session_e"]


def test_user_and_counselor_views():
    sessions = [_session("session_a"), _session("session_b", user_id="U2", counselor_id="2")]

    assert [s.id for s in get_user_sessions(sessions, "U2")] == ["session_b"]
    assert [s.id for s in get_counselor_sessions(sessions, "1")] == ["session_a"]


def test_generated_ids_are_prefixed_and_unique():
    assert generate_session_id().startswith("session_")
    assert generate_notification_id().startswith("notif_")
    assert generate_transaction_id().startswith("TXN")
    assert len({generate_notification_id() for _ in range(100)}) == 100
