"""Signed-in user state for the client"""

import logging
from typing import Any, Optional

from .cache import QueryCache
from .http import ApiClient, ApiError
from .notifications import Notifier

logger = logging.getLogger(__name__)

ME_KEY = ("/api/auth/me",)
ME_STALE_TIME = 5 * 60  # 5 minutes


class AuthSession:
    def __init__(self, api: ApiClient, cache: QueryCache, notifier: Notifier):
        self.api = api
        self.cache = cache
        self.notifier = notifier

    def _fetch_me(self) -> Optional[dict]:
        try:
            return self.api.get("/api/auth/me")["user"]
        except ApiError as e:
            # Not signed in is a state, not an error
            if e.status == 401:
                return None
            raise

    def current_user(self) -> Optional[dict]:
        return self.cache.fetch(ME_KEY, self._fetch_me, stale_time=ME_STALE_TIME)

    @property
    def role(self) -> Optional[str]:
        user = self.current_user()
        return user["role"] if user else None

    def login(self, email: str, password: str) -> dict:
        try:
            result = self.api.post("/api/auth/login", {"email": email, "password": password})
        except ApiError as e:
            self.notifier.toast(
                "Sign in failed",
                e.message or "Please check your credentials and try again.",
                variant="destructive",
            )
            raise

        self.cache.invalidate(ME_KEY)
        self.notifier.toast("Welcome back!", "You have been successfully signed in.")
        return result["user"]

    def register(self, **data: Any) -> dict:
        """Fields as accepted by POST /api/auth/register (camelCase)"""
        try:
            result = self.api.post("/api/auth/register", data)
        except ApiError as e:
            self.notifier.toast(
                "Registration failed",
                e.message or "Please try again with different details.",
                variant="destructive",
            )
            raise

        self.cache.invalidate(ME_KEY)
        self.notifier.toast(
            "Account created!",
            "Welcome to Aesthiq. Your account has been created successfully.",
        )
        return result["user"]

    def logout(self) -> None:
        try:
            self.api.post("/api/auth/logout")
        except ApiError as e:
            self.notifier.toast("Sign out failed", e.message or "Please try again.", variant="destructive")
            raise

        self.cache.clear()
        self.cache.set(ME_KEY, None)
        self.notifier.toast("Signed out", "You have been successfully signed out.")
