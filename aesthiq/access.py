"""
Route table for the web client and the role gating applied to it.

Each page path is owned by at most one audience. Clinic pages may
additionally sit behind the business-setup wizard and behind the payment
gate (Stripe Connect onboarding finished).
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

LOGIN_PATH = "/login"
SETUP_PATH = "/clinic/setup"
PAYMENT_SETUP_PATH = "/clinic/payment-setup"

CLINIC_ROLES = ("clinic_admin", "staff")


@dataclass(frozen=True)
class RouteDefinition:
    pattern: str
    roles: Optional[tuple[str, ...]] = None  # None = public
    requires_business_setup: bool = False
    requires_payments: bool = False

    @property
    def is_public(self) -> bool:
        return self.roles is None

    def matches(self, path: str) -> bool:
        regex = "^" + re.sub(r":[A-Za-z_]+", r"[^/]+", self.pattern) + "$"
        return re.match(regex, path) is not None


@dataclass(frozen=True)
class RouteDecision:
    action: str  # render, redirect, not_found
    target: Optional[str] = None
    route: Optional[RouteDefinition] = None

    @property
    def rendered(self) -> bool:
        return self.action == "render"


def _clinic(pattern: str, setup: bool = True, payments: bool = False) -> RouteDefinition:
    return RouteDefinition(pattern, CLINIC_ROLES, requires_business_setup=setup, requires_payments=payments)


ROUTES: tuple[RouteDefinition, ...] = (
    # Public
    RouteDefinition("/"),
    RouteDefinition("/login"),
    RouteDefinition("/register"),
    RouteDefinition("/c/:slug"),
    RouteDefinition("/register/clinic/:slug"),
    RouteDefinition("/subscribe"),
    RouteDefinition("/booking"),
    # Super admin console
    RouteDefinition("/super-admin", ("super_admin",)),
    RouteDefinition("/super-admin/organizations", ("super_admin",)),
    RouteDefinition("/super-admin/plans", ("super_admin",)),
    # Clinic
    _clinic("/clinic"),
    _clinic("/clinic/appointments", payments=True),
    _clinic("/clinic/clients", payments=True),
    _clinic("/clinic/services"),
    _clinic("/clinic/memberships", payments=True),
    _clinic("/clinic/staff", payments=True),
    _clinic("/clinic/reports"),
    _clinic(SETUP_PATH, setup=False),
    _clinic(PAYMENT_SETUP_PATH, setup=False),
    # Patient portal
    RouteDefinition("/patient", ("patient",)),
    RouteDefinition("/patient/booking", ("patient",)),
    RouteDefinition("/patient/membership", ("patient",)),
    RouteDefinition("/patient/rewards", ("patient",)),
)


def match_route(path: str) -> Optional[RouteDefinition]:
    path = path.split("?", 1)[0]
    if len(path) > 1:
        path = path.rstrip("/")
    for route in ROUTES:
        if route.matches(path):
            return route
    return None


def resolve_route(
    path: str,
    role: Optional[str],
    business_setup_complete: bool = True,
    business_features_enabled: bool = True,
    payment_gate_bypass: bool = False,
) -> RouteDecision:
    """
    Decide what the client shows for `path`.

    Args:
        role: The signed-in user's role, or None when anonymous
        business_setup_complete: allComplete from /api/clinic/setup-status
        business_features_enabled: From the Stripe Connect status
        payment_gate_bypass: Skip the payment gate (development only)
    """
    route = match_route(path)
    if route is None:
        return RouteDecision("not_found")

    if route.is_public:
        return RouteDecision("render", route=route)

    if role is None:
        return RouteDecision("redirect", LOGIN_PATH, route)

    # Routes of other audiences are not registered for this user at all
    if role not in route.roles:
        return RouteDecision("not_found", route=route)

    if route.requires_business_setup and not business_setup_complete:
        return RouteDecision("redirect", SETUP_PATH, route)

    if route.requires_payments and not business_features_enabled:
        if payment_gate_bypass:
            logger.warning(f"⚠️ Payment gate bypassed for {path}")
        else:
            return RouteDecision("redirect", PAYMENT_SETUP_PATH, route)

    return RouteDecision("render", route=route)


def home_path(role: Optional[str]) -> str:
    """Landing page after sign-in"""
    if role == "super_admin":
        return "/super-admin"
    if role in CLINIC_ROLES:
        return "/clinic"
    if role == "patient":
        return "/patient"
    return "/"
