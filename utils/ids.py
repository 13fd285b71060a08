"""
Identifier generation for key-value records
Keys carry a type prefix so entities can be listed with a prefix scan
"""

import secrets
import string

from utils.date_utils import current_millis

SESSION_PREFIX = "session_"
NOTIFICATION_PREFIX = "notif_"

_BASE36_ALPHABET = string.digits + string.ascii_lowercase


def _random_suffix(length: int = 9) -> str:
    return "".join(secrets.choice(_BASE36_ALPHABET) for _ in range(length))


def generate_session_id() -> str:
    """session_<epoch millis>_<9 base36 chars>"""
    return f"{SESSION_PREFIX}{current_millis()}_{_random_suffix()}"


def generate_notification_id() -> str:
    """notif_<epoch millis>_<9 base36 chars>"""
    return f"{NOTIFICATION_PREFIX}{current_millis()}_{_random_suffix()}"


def generate_transaction_id() -> str:
    """TXN<epoch millis><0-999>"""
    return f"TXN{current_millis()}{secrets.randbelow(1000)}"
