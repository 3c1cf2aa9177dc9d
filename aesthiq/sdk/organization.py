from typing import Optional

from .auth import AuthSession
from .cache import QueryCache
from .http import ApiClient, ApiError

ORGANIZATION_STALE_TIME = 10 * 60  # 10 minutes


def organization_key(user_id: str) -> tuple:
    return ("/api/organizations/my-organization", user_id)


class OrganizationView:
    """The signed-in user's clinic. Not available to super admins or anonymous users."""

    def __init__(self, api: ApiClient, cache: QueryCache, auth: AuthSession):
        self.api = api
        self.cache = cache
        self.auth = auth

    def enabled(self, user: Optional[dict]) -> bool:
        return bool(user) and user["role"] != "super_admin"

    def _fetch(self) -> Optional[dict]:
        try:
            return self.api.get("/api/organizations/my-organization")
        except ApiError as e:
            if e.status == 404:
                return None
            raise

    def organization(self) -> Optional[dict]:
        user = self.auth.current_user()
        if not self.enabled(user):
            return None
        return self.cache.fetch(organization_key(user["id"]), self._fetch, stale_time=ORGANIZATION_STALE_TIME)
