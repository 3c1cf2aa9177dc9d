"""Super admin console: tenants and subscription plans"""

from typing import Any

from .cache import QueryCache
from .http import ApiClient, ApiError
from .notifications import Notifier

LIST_STALE_TIME = 5 * 60


class _CatalogAdmin:
    path: str
    label: str

    def __init__(self, api: ApiClient, cache: QueryCache, notifier: Notifier):
        self.api = api
        self.cache = cache
        self.notifier = notifier

    @property
    def list_key(self) -> tuple:
        return (self.path,)

    def list(self) -> list[dict]:
        return self.cache.fetch(self.list_key, lambda: self.api.get(self.path), stale_time=LIST_STALE_TIME)

    def create(self, **data: Any) -> dict:
        try:
            created = self.api.post(self.path, data)
        except ApiError:
            self.notifier.toast(f"Failed to create {self.label}", "Please try again.", variant="destructive")
            raise

        self.cache.invalidate(self.list_key)
        self.notifier.toast(
            f"{self.label.capitalize()} created",
            f"New {self.label} has been successfully created.",
        )
        return created


class OrganizationsAdmin(_CatalogAdmin):
    path = "/api/organizations"
    label = "organization"


class PlansAdmin(_CatalogAdmin):
    path = "/api/subscription-plans"
    label = "plan"

    def setup_stripe_prices(self) -> dict:
        """Create Stripe products and prices for plans that have none"""
        result = self.api.post("/api/admin/setup-subscription-plans")
        self.cache.invalidate(self.list_key)
        return result
