"""
CSRF Protection Middleware

Double-submit cookie pattern for the cookie-authenticated API:
- A random token is set in the csrf_token cookie
- State-changing requests must echo it in the X-CSRF-Token header
- Stripe webhooks (signature-verified) and health endpoints are exempt
"""

import logging
import secrets
from typing import Callable

from fastapi import Request
from fastapi.responses import JSONResponse, Response
from starlette.middleware.base import BaseHTTPMiddleware

from .config import SESSION_COOKIE_SECURE

logger = logging.getLogger(__name__)

CSRF_COOKIE_NAME = "csrf_token"
CSRF_HEADER_NAME = "X-CSRF-Token"
CSRF_COOKIE_MAX_AGE = 86400

PROTECTED_METHODS = {"POST", "PUT", "PATCH", "DELETE"}

EXEMPT_PATHS: list[str] = [
    "/api/stripe/webhook",
    "/health",
    "/csrf-token",
]


def generate_csrf_token() -> str:
    """Generate a cryptographically secure CSRF token"""
    return secrets.token_urlsafe(32)


def is_path_exempt(path: str) -> bool:
    return any(path == exempt or path.startswith(exempt + "/") for exempt in EXEMPT_PATHS)


def set_csrf_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=CSRF_COOKIE_NAME,
        value=token,
        httponly=False,  # the client reads it to build the header
        secure=SESSION_COOKIE_SECURE,
        samesite="strict",
        max_age=CSRF_COOKIE_MAX_AGE,
        path="/",
    )


def _reject(request: Request, reason: str, message: str) -> JSONResponse:
    logger.warning(f"🚫 CSRF: {reason} for {request.method} {request.url.path}")
    return JSONResponse(status_code=403, content={"message": message})


class CSRFMiddleware(BaseHTTPMiddleware):
    """
    1. If no CSRF cookie exists and the route did not issue one, one is
       issued on the response
    2. POST/PUT/PATCH/DELETE outside EXEMPT_PATHS need the header to match
       the cookie, otherwise 403
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        csrf_cookie = request.cookies.get(CSRF_COOKIE_NAME)

        if request.method in PROTECTED_METHODS and not is_path_exempt(request.url.path):
            csrf_header = request.headers.get(CSRF_HEADER_NAME)

            if not csrf_cookie:
                return _reject(request, "Missing cookie", "CSRF token missing. Please refresh the page and try again.")
            if not csrf_header:
                return _reject(
                    request, "Missing header", "CSRF token header missing. Please refresh the page and try again."
                )
            if not secrets.compare_digest(csrf_cookie, csrf_header):
                return _reject(request, "Token mismatch", "CSRF token invalid. Please refresh the page and try again.")

        response = await call_next(request)

        issued = any(h.startswith(f"{CSRF_COOKIE_NAME}=") for h in response.headers.getlist("set-cookie"))
        if not csrf_cookie and not issued:
            set_csrf_cookie(response, generate_csrf_token())
            logger.debug("🔑 CSRF: Set new token cookie")

        return response
