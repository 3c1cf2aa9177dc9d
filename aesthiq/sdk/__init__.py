"""
Python client for the Aesthiq API.

    client = AesthiqClient("https://app.aesthiq.example")
    client.auth.login("owner@clinic.example", "secret-password")
    client.stripe_connect.status_label()
"""

from typing import Optional

import httpx

from .admin import OrganizationsAdmin, PlansAdmin
from .auth import AuthSession
from .cache import QueryCache
from .http import ApiClient, ApiError
from .navigation import Navigator
from .notifications import Notifier, Toast
from .organization import OrganizationView
from .share import ShareLink
from .stripe_connect import StripeConnectFlow, feature_status, status_label


class AesthiqClient:
    """One signed-in session: HTTP client, query cache, toasts and the feature helpers on top"""

    def __init__(
        self,
        base_url: str = "http://localhost:5000",
        http: Optional[httpx.Client] = None,
        payment_gate_bypass: Optional[bool] = None,
    ):
        self.api = ApiClient(base_url, http=http)
        self.cache = QueryCache()
        self.notifier = Notifier()
        self.auth = AuthSession(self.api, self.cache, self.notifier)
        self.organization = OrganizationView(self.api, self.cache, self.auth)
        self.organizations_admin = OrganizationsAdmin(self.api, self.cache, self.notifier)
        self.plans_admin = PlansAdmin(self.api, self.cache, self.notifier)
        self.stripe_connect = StripeConnectFlow(self.api, self.cache, self.notifier, self.organization)
        self.navigator = Navigator(
            self.api, self.cache, self.auth, self.stripe_connect, payment_gate_bypass=payment_gate_bypass
        )
        self.share = ShareLink(self.api, self.cache, self.organization, origin=base_url)


__all__ = [
    "AesthiqClient",
    "ApiClient",
    "ApiError",
    "AuthSession",
    "Navigator",
    "Notifier",
    "OrganizationView",
    "OrganizationsAdmin",
    "PlansAdmin",
    "QueryCache",
    "ShareLink",
    "StripeConnectFlow",
    "Toast",
    "feature_status",
    "status_label",
]
