from typing import List, Optional, Dict, Any
from pydantic import BaseModel
import logging
from storage.kv_store import get_kv_store

# ==================== CONFIGURATION & SETUP ====================

logger = logging.getLogger(__name__)

# Key holding the counselor directory (a single JSON list)
COUNSELORS_KEY = "counselors"

# Fixed platform fee added to every counselor fee at booking time
PLATFORM_FEE = 50

# Directory served when no counselors have been stored yet
DEFAULT_COUNSELORS: List[Dict[str, Any]] = [
    {
        "id": "1",
        "name": "Dr. Priya Sharma",
        "specialization": ["Anxiety", "Stress Management", "Academic Pressure"],
        "rating": 4.8,
        "experience": "8 years",
        "languages": ["English", "Hindi"],
        "price": 800,
        "availability": ["Mon", "Wed", "Fri"],
        "image": "https://images.unsplash.com/photo-1714976694810-85add1a29c96",
        "bio": "Specialized in helping students manage academic stress and build resilience.",
        "sessionTypes": ["video", "audio", "chat"],
        "credentials": "M.A. Psychology, Ph.D. Clinical Psychology",
    },
    {
        "id": "2",
        "name": "Dr. Rajesh Kumar",
        "specialization": ["Depression", "Relationship Issues", "Career Guidance"],
        "rating": 4.7,
        "experience": "12 years",
        "languages": ["English", "Hindi", "Gujarati"],
        "price": 1000,
        "availability": ["Tue", "Thu", "Sat"],
        "image": "https://images.unsplash.com/photo-1742569184536-77ff9ae46c99",
        "bio": "Expert in cognitive behavioral therapy with focus on young adults and career transitions.",
        "sessionTypes": ["video", "audio"],
        "credentials": "M.Phil. Psychology, RCI Licensed",
    },
    {
        "id": "3",
        "name": "Dr. Meera Patel",
        "specialization": ["ADHD", "Learning Disabilities", "Social Anxiety"],
        "rating": 4.9,
        "experience": "6 years",
        "languages": ["English", "Hindi", "Marathi"],
        "price": 750,
        "availability": ["Mon", "Tue", "Wed", "Thu"],
        "image": "https://images.unsplash.com/photo-1733685318562-c726472bc1db",
        "bio": "Passionate about helping students overcome learning challenges and build confidence.",
        "sessionTypes": ["video", "chat"],
        "credentials": "M.A. Clinical Psychology, PGDM",
    },
]

# ==================== DATA MODELS ====================

class Counselor(BaseModel):
    """
    Public counselor profile
    - price: counselor fee per session, before the platform fee
    - sessionTypes: session formats the counselor offers
    """
    id: str
    name: str
    price: float
    image: str = ""
    specialization: List[str] = []
    rating: Optional[float] = None
    experience: Optional[str] = None
    languages: List[str] = []
    availability: List[str] = []
    bio: Optional[str] = None
    sessionTypes: List[str] = []
    credentials: Optional[str] = None

# ==================== COUNSELOR RETRIEVAL ====================

def get_all_counselors() -> List[Counselor]:
    """
    Get the counselor directory, falling back to the default counselors
    """
    stored = get_kv_store().get(COUNSELORS_KEY)
    records = stored if isinstance(stored, list) and stored else DEFAULT_COUNSELORS
    return [Counselor(**{**record, "id": str(record["id"])}) for record in records]

def get_counselor_by_id(counselor_id: str) -> Optional[Counselor]:
    for counselor in get_all_counselors():
        if counselor.id == str(counselor_id):
            return counselor
    logger.info(f"Counselor {counselor_id} not found in directory")
    return None

def calculate_session_price(counselor_price: float) -> float:
    """Counselor fee plus the fixed platform fee."""
    return counselor_price + PLATFORM_FEE
