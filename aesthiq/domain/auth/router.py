"""Auth router - session sign-up, sign-in and sign-out"""

import logging

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...config import SESSION_COOKIE_NAME, SESSION_COOKIE_SECURE, SESSION_MAX_AGE
from ...database import get_db
from ...models import User
from ...rate_limiter import create_rate_limiter
from ...security_utils import create_session_token
from .schemas import LoginRequest, RegisterRequest, UserEnvelope, UserResponse
from .service import AuthService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Authentication"])

login_rate_limit = create_rate_limiter(limit=10, window_seconds=900, key_prefix="login")
register_rate_limit = create_rate_limiter(limit=5, window_seconds=3600, key_prefix="register")


def get_auth_service(db: Session = Depends(get_db)) -> AuthService:
    """Dependency injection for AuthService"""
    return AuthService(db)


def start_session(response: Response, user: User) -> None:
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=create_session_token(user.id),
        max_age=SESSION_MAX_AGE,
        httponly=True,
        secure=SESSION_COOKIE_SECURE,
        samesite="lax",
        path="/",
    )


@router.post("/register", response_model=UserEnvelope)
async def register(
    data: RegisterRequest,
    response: Response,
    _: None = Depends(register_rate_limit),
    service: AuthService = Depends(get_auth_service),
):
    user = service.register(data)
    start_session(response, user)
    return {"user": UserResponse.model_validate(user)}


@router.post("/login", response_model=UserEnvelope)
async def login(
    data: LoginRequest,
    response: Response,
    _: None = Depends(login_rate_limit),
    service: AuthService = Depends(get_auth_service),
):
    user = service.authenticate(data)
    start_session(response, user)
    return {"user": UserResponse.model_validate(user)}


@router.post("/logout")
async def logout(response: Response):
    response.delete_cookie(SESSION_COOKIE_NAME, path="/")
    return {"message": "Logged out successfully"}


@router.get("/me", response_model=UserEnvelope)
async def me(user: User = Depends(get_current_user)):
    return {"user": UserResponse.model_validate(user)}
