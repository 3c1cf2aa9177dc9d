"""
Security Utilities
Password hashing, signed session tokens, input sanitization and slugs
"""

import logging
import re
import secrets
from typing import Any, Optional

# Input sanitization
import bleach

# Token generation and validation
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

# Password hashing
from passlib.context import CryptContext

from .config import SECRET_KEY, SESSION_MAX_AGE

logger = logging.getLogger(__name__)

SESSION_SALT = "aesthiq-session"

# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


# ============================================================================
# PASSWORD SECURITY
# ============================================================================


def hash_password(password: str) -> str:
    """Hash password using bcrypt"""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify password against bcrypt hash"""
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except Exception as e:
        logger.error(f"Password verification error: {e}")
        return False


# ============================================================================
# SESSION TOKENS
# ============================================================================


def _session_serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(SECRET_KEY)


def create_session_token(user_id: str) -> str:
    """Sign a session payload for the session cookie"""
    return _session_serializer().dumps({"uid": user_id}, salt=SESSION_SALT)


def read_session_token(token: str, max_age: int = SESSION_MAX_AGE) -> Optional[str]:
    """
    Verify and decode a session token

    Returns:
        The user id if valid, None if invalid or expired
    """
    try:
        data: dict[str, Any] = _session_serializer().loads(token, salt=SESSION_SALT, max_age=max_age)
    except SignatureExpired:
        logger.info("Session token expired")
        return None
    except BadSignature:
        logger.warning("Invalid session token signature")
        return None

    if not isinstance(data, dict):
        return None
    return data.get("uid")


def generate_secure_token(length: int = 32) -> str:
    """Generate a cryptographically secure random token"""
    return secrets.token_urlsafe(length)


# ============================================================================
# INPUT SANITIZATION
# ============================================================================


def sanitize_text(value: Optional[str]) -> Optional[str]:
    """Strip any HTML from free-text input"""
    if value is None:
        return None
    return bleach.clean(value, tags=[], attributes={}, strip=True).strip()


def slugify(value: str) -> str:
    """
    Lowercase, collapse runs of non-alphanumerics to single hyphens and trim
    leading/trailing hyphens. "Glow Clinic!" -> "glow-clinic"
    """
    slug = re.sub(r"[^a-z0-9]+", "-", value.lower())
    return slug.strip("-")
