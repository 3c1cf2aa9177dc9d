"""
HTTP client for the Aesthiq API.

The session lives in the httpx cookie jar, so one ApiClient equals one
signed-in browser session.
"""

import logging
from typing import Any, Optional

import httpx

from ..csrf import CSRF_COOKIE_NAME, CSRF_HEADER_NAME

logger = logging.getLogger(__name__)

UNSAFE_METHODS = {"POST", "PUT", "PATCH", "DELETE"}


class ApiError(Exception):
    """Raised for any non-2xx API response"""

    def __init__(self, status: int, message: str, payload: Optional[Any] = None):
        super().__init__(message)
        self.status = status
        self.message = message
        self.payload = payload

    @property
    def error_code(self) -> Optional[str]:
        if isinstance(self.payload, dict):
            return self.payload.get("error_code")
        return None

    def __str__(self) -> str:
        return f"{self.status}: {self.message}"


class ApiClient:
    def __init__(
        self,
        base_url: str = "http://localhost:5000",
        http: Optional[httpx.Client] = None,
        timeout: float = 30.0,
    ):
        self.http = http or httpx.Client(base_url=base_url, timeout=timeout)

    def _csrf_headers(self, method: str) -> dict:
        if method.upper() not in UNSAFE_METHODS:
            return {}
        token = self.http.cookies.get(CSRF_COOKIE_NAME)
        if not token:
            # First write of the session; the server hands out the cookie on /csrf-token
            token = self.fetch_csrf_token()
            token = self.http.cookies.get(CSRF_COOKIE_NAME) or token
        return {CSRF_HEADER_NAME: token} if token else {}

    def request(
        self,
        method: str,
        path: str,
        json: Optional[Any] = None,
        params: Optional[dict] = None,
    ) -> Any:
        """Send a request and return the parsed JSON body (None for empty bodies)"""
        response = self.http.request(
            method,
            path,
            json=json,
            params={k: v for k, v in (params or {}).items() if v is not None} or None,
            headers=self._csrf_headers(method),
        )

        payload: Any = None
        if response.content:
            try:
                payload = response.json()
            except ValueError:
                payload = response.text

        if response.is_success:
            return payload

        message = f"Request failed with status {response.status_code}"
        if isinstance(payload, dict) and payload.get("message"):
            message = payload["message"]
        logger.debug(f"API {method} {path} failed: {response.status_code} {message}")
        raise ApiError(response.status_code, message, payload)

    def get(self, path: str, params: Optional[dict] = None) -> Any:
        return self.request("GET", path, params=params)

    def post(self, path: str, json: Optional[Any] = None) -> Any:
        return self.request("POST", path, json=json if json is not None else {})

    def put(self, path: str, json: Optional[Any] = None) -> Any:
        return self.request("PUT", path, json=json if json is not None else {})

    def delete(self, path: str) -> Any:
        return self.request("DELETE", path)

    def fetch_csrf_token(self) -> str:
        """Prime the CSRF cookie for subsequent writes"""
        return self.get("/csrf-token")["csrf_token"]

    def close(self) -> None:
        self.http.close()
