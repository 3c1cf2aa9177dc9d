"""
Payment setup flow for clinic admins.

Business features unlock once Stripe reports the connected account ready;
after onboarding the client polls the status endpoint until it flips.
"""

import logging
import time
from typing import Callable, Optional

from .cache import QueryCache
from .http import ApiClient, ApiError
from .notifications import Notifier
from .organization import OrganizationView

logger = logging.getLogger(__name__)

STATUS_PATH = "/api/stripe-connect/status"
STATUS_STALE_TIME = 30


def status_label(status: Optional[dict]) -> str:
    if not status or not status.get("hasAccount"):
        return "Setup Required"
    if status.get("businessFeaturesEnabled"):
        return "Active"
    if status.get("payoutsEnabled") and status.get("transfersActive"):
        return "Pending Verification"
    return "Setup Required"


def feature_status(status: Optional[dict]) -> dict:
    if status and status.get("businessFeaturesEnabled"):
        return {
            "enabled": True,
            "text": "Business Features Enabled",
            "description": "You can now accept payments and use all business features.",
        }
    return {
        "enabled": False,
        "text": "Business Features Disabled",
        "description": "Complete payment setup to enable appointments, services, and client management.",
    }


class StripeConnectFlow:
    def __init__(
        self,
        api: ApiClient,
        cache: QueryCache,
        notifier: Notifier,
        organization: OrganizationView,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.api = api
        self.cache = cache
        self.notifier = notifier
        self.organization = organization
        self.sleep = sleep

    def status(self) -> Optional[dict]:
        """None until the user has an organization"""
        org = self.organization.organization()
        if not org:
            return None
        return self.cache.fetch((STATUS_PATH, org["id"]), lambda: self.api.get(STATUS_PATH), STATUS_STALE_TIME)

    def create_account(self) -> Optional[str]:
        """Create the Express account; returns the onboarding URL to open"""
        try:
            result = self.api.post("/api/stripe-connect/create-account")
        except ApiError as e:
            title, message = "Error", "Failed to create Stripe account. Please try again."
            if e.error_code == "PLATFORM_NOT_CONFIGURED" or "platform-profile" in e.message:
                title = "Platform Configuration Required"
                message = (
                    "Stripe Connect platform profile needs to be configured. "
                    "Please check Stripe Dashboard → Settings → Connect → Platform Profile."
                )
            elif e.error_code == "ACCOUNT_EXISTS":
                title = "Account Already Exists"
                message = "A Stripe Connect account already exists for this organization."
            self.notifier.toast(title, message, variant="destructive")
            raise

        self.cache.invalidate((STATUS_PATH,))
        self.notifier.toast(
            "Account Created",
            "Your Stripe Express account has been created. "
            "Complete the onboarding to start accepting payments.",
        )
        return result.get("onboardingUrl")

    def refresh_onboarding(self) -> str:
        try:
            result = self.api.post("/api/stripe-connect/refresh-onboarding")
        except ApiError as e:
            self.notifier.toast("Failed to Generate Link", e.message, variant="destructive")
            raise

        self.cache.invalidate((STATUS_PATH,))
        self.notifier.toast("Onboarding Link Generated", "Continue your Stripe setup in the new tab.")
        return result["onboardingUrl"]

    def refresh_status(self) -> Optional[dict]:
        self.cache.invalidate((STATUS_PATH,))
        status = self.status()
        self.notifier.toast("Status Refreshed", "Payment setup status has been updated.")
        return status

    def poll(self, attempts: int = 10, interval: float = 3.0) -> Optional[dict]:
        """Re-check the status every `interval` seconds until business features are enabled"""
        status = None
        for attempt in range(attempts):
            self.cache.invalidate((STATUS_PATH,))
            status = self.status()
            if status and status.get("businessFeaturesEnabled"):
                logger.info(f"✅ Business features enabled after {attempt + 1} check(s)")
                return status
            if attempt < attempts - 1:
                self.sleep(interval)
        return status

    def status_label(self) -> str:
        return status_label(self.status())

    def feature_status(self) -> dict:
        return feature_status(self.status())
