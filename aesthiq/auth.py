import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from .config import SESSION_COOKIE_NAME
from .database import get_db
from .models import Client, Staff, User
from .security_utils import read_session_token

logger = logging.getLogger(__name__)


def _load_session_user(request: Request, db: Session) -> Optional[User]:
    token = request.cookies.get(SESSION_COOKIE_NAME)
    if not token:
        return None

    user_id = read_session_token(token)
    if not user_id:
        return None

    user = db.query(User).filter(User.id == user_id).first()
    if not user or not user.is_active:
        logger.warning(f"⚠️ Session references missing or inactive user {user_id}")
        return None
    return user


async def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    """Get current user from the signed session cookie"""
    user = _load_session_user(request, db)
    if not user:
        raise HTTPException(status_code=401, detail="Authentication required")

    logger.debug(f"✅ User authenticated: {user.email}")
    return user


async def get_optional_user(request: Request, db: Session = Depends(get_db)) -> Optional[User]:
    """Same as get_current_user, but anonymous requests resolve to None"""
    return _load_session_user(request, db)


def require_roles(*roles: str):
    """
    Create a dependency that only lets the given user roles through.

    Example usage:
        @router.get("/", dependencies=[Depends(require_roles("super_admin"))])
    """

    async def role_checker(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            logger.warning(f"⚠️ User {user.email} ({user.role}) denied; requires one of {roles}")
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return user

    return role_checker


def get_user_organization_id(db: Session, user: User) -> Optional[str]:
    """
    Resolve the organization a user acts within.

    super_admin has no organization (they see every tenant), clinic staff
    belong to the organization of their Staff row, patients to the
    organization of their Client row.
    """
    if user.role == "super_admin":
        return None

    if user.role in ("clinic_admin", "staff"):
        staff = db.query(Staff).filter(Staff.user_id == user.id, Staff.is_active.is_(True)).first()
        return staff.organization_id if staff else None

    if user.role == "patient":
        client = db.query(Client).filter(Client.user_id == user.id).first()
        return client.organization_id if client else None

    return None


def resolve_organization_id(
    db: Session, user: User, requested_organization_id: Optional[str] = None
) -> str:
    """
    Organization to scope a request to. super_admin must name one explicitly;
    everyone else is pinned to their own.
    """
    if user.role == "super_admin":
        if not requested_organization_id:
            raise HTTPException(status_code=400, detail="Organization ID required for super admin")
        return requested_organization_id

    organization_id = get_user_organization_id(db, user)
    if not organization_id:
        raise HTTPException(status_code=403, detail="No organization access")
    return organization_id
