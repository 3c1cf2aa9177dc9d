import logging
from typing import Optional

from ..access import CLINIC_ROLES, RouteDecision, home_path, match_route, resolve_route
from ..config import PAYMENT_GATE_BYPASS
from .auth import AuthSession
from .cache import QueryCache
from .http import ApiClient
from .stripe_connect import StripeConnectFlow

logger = logging.getLogger(__name__)

SETUP_STATUS_PATH = "/api/clinic/setup-status"


class Navigator:
    """Resolves page paths for the signed-in user, applying the setup wizard and payment gates"""

    def __init__(
        self,
        api: ApiClient,
        cache: QueryCache,
        auth: AuthSession,
        stripe_connect: StripeConnectFlow,
        payment_gate_bypass: Optional[bool] = None,
    ):
        self.api = api
        self.cache = cache
        self.auth = auth
        self.stripe_connect = stripe_connect
        self.payment_gate_bypass = PAYMENT_GATE_BYPASS if payment_gate_bypass is None else payment_gate_bypass

    def setup_status(self) -> dict:
        return self.cache.fetch((SETUP_STATUS_PATH,), lambda: self.api.get(SETUP_STATUS_PATH))

    def resolve(self, path: str) -> RouteDecision:
        user = self.auth.current_user()
        role = user["role"] if user else None

        setup_complete = True
        features_enabled = True
        route = match_route(path)
        # Gate data is only fetched for clinic users on gated pages
        if route and role in CLINIC_ROLES and role in (route.roles or ()):
            if route.requires_business_setup:
                setup_complete = bool(self.setup_status().get("allComplete"))
            if route.requires_payments and setup_complete:
                status = self.stripe_connect.status()
                features_enabled = bool(status and status.get("businessFeaturesEnabled"))

        decision = resolve_route(
            path,
            role,
            business_setup_complete=setup_complete,
            business_features_enabled=features_enabled,
            payment_gate_bypass=self.payment_gate_bypass,
        )
        logger.debug(f"Route {path} for {role or 'anonymous'}: {decision.action} {decision.target or ''}")
        return decision

    def home(self) -> str:
        return home_path(self.auth.role)
