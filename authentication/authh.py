import os
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
import jwt
from jwt import PyJWTError
from fastapi import HTTPException, status, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from dotenv import load_dotenv
import logging

# ==================== CONFIGURATION & SETUP ====================

logger = logging.getLogger(__name__)
load_dotenv()

# JWT Configuration (Supabase signs user access tokens with the project JWT secret)
SECRET_KEY = os.getenv("JWT_SECRET_KEY")
ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("JWT_ACCESS_TOKEN_EXPIRE_MINUTES", "60"))
AUDIENCE = os.getenv("JWT_AUDIENCE") or None

# Application roles
ROLE_USER = "user"
ROLE_COUNSELOR = "counselor"
ROLE_ADMIN = "admin"
VALID_ROLES = {ROLE_USER, ROLE_COUNSELOR, ROLE_ADMIN}

# FastAPI Security
security = HTTPBearer(auto_error=False)

# ==================== HELPER FUNCTIONS ====================

def _get_secret_key() -> str:
    if not SECRET_KEY:
        logger.error("JWT_SECRET_KEY is not configured")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Authentication is not configured",
        )
    return SECRET_KEY

def _extract_role(payload: Dict[str, Any]) -> str:
    """
    Resolve the application role from token claims
    - app_role claim first, then user_metadata.role (Supabase sign-up metadata)
    - Unknown or missing roles fall back to 'user'
    """
    role = payload.get("app_role")
    if not role:
        role = (payload.get("user_metadata") or {}).get("role")
    if role not in VALID_ROLES:
        return ROLE_USER
    return role

# ==================== JWT TOKEN MANAGEMENT ====================
# Functions for creating and verifying bearer tokens

def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a signed access token
    - data must carry 'sub' (user id); 'app_role' and 'email' are optional
    - Used for local development and tests; production tokens come from Supabase Auth
    """
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    if AUDIENCE and "aud" not in to_encode:
        to_encode["aud"] = AUDIENCE
    return jwt.encode(to_encode, _get_secret_key(), algorithm=ALGORITHM)

def verify_token(credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)) -> Dict[str, Any]:
    """
    Verify and decode the bearer token from the Authorization header
    - Validates signature and expiration
    - Rejects tokens without a subject (e.g. the public anon key)
    - Returns caller identity: id, email, role
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if credentials is None:
        raise credentials_exception

    try:
        options = {} if AUDIENCE else {"verify_aud": False}
        payload = jwt.decode(
            credentials.credentials,
            _get_secret_key(),
            algorithms=[ALGORITHM],
            audience=AUDIENCE,
            options=options,
        )
    except PyJWTError as e:
        logger.debug(f"JWT Error: {e}")
        raise credentials_exception

    user_id = payload.get("sub")
    if not user_id:
        logger.debug("Token has no subject; anonymous tokens cannot act on records")
        raise credentials_exception

    return {
        "id": str(user_id),
        "email": payload.get("email"),
        "role": _extract_role(payload),
    }

# ==================== FASTAPI DEPENDENCY FUNCTIONS ====================

def get_current_user(token_data: Dict[str, Any] = Depends(verify_token)) -> Dict[str, Any]:
    """
    FastAPI dependency yielding the authenticated caller
    - Identity comes from the verified token; user records live with the auth provider
    """
    return token_data

def is_admin(user: Dict[str, Any]) -> bool:
    return user.get("role") == ROLE_ADMIN
