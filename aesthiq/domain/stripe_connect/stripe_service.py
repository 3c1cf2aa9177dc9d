"""Stripe service - platform billing, Connect Express accounts and patient payments"""

import logging
from typing import Any, Optional

import stripe

from ...config import (
    FRONTEND_URL,
    STRIPE_API_VERSION,
    STRIPE_CONNECT_COUNTRY,
    STRIPE_CURRENCY,
    STRIPE_SECRET_KEY,
)

logger = logging.getLogger(__name__)


class StripeNotConfiguredError(Exception):
    """Raised when a Stripe call is made without STRIPE_SECRET_KEY"""


def to_cents(amount: float) -> int:
    return int(round(float(amount) * 100))


def _to_dict(obj: Any) -> dict:
    if obj is None:
        return {}
    if isinstance(obj, dict):
        return obj
    to_dict = getattr(obj, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    return dict(obj)


def account_readiness(account: dict) -> dict:
    """
    Summarize a Connect account. An account is ready for business when
    payouts are enabled, the transfers capability is active, a bank account
    is attached and nothing is currently due.
    """
    capabilities = account.get("capabilities") or {}
    requirements = account.get("requirements") or {}
    external_accounts = (account.get("external_accounts") or {}).get("data") or []

    payouts_enabled = bool(account.get("payouts_enabled"))
    transfers_active = capabilities.get("transfers") == "active"
    has_external_account = len(external_accounts) > 0
    currently_due = list(requirements.get("currently_due") or [])

    return {
        "ready": payouts_enabled and transfers_active and has_external_account and not currently_due,
        "payouts_enabled": payouts_enabled,
        "charges_enabled": bool(account.get("charges_enabled")),
        "transfers_active": transfers_active,
        "has_external_account": has_external_account,
        "capabilities": dict(capabilities),
        "requirements": {
            "currently_due": currently_due,
            "eventually_due": list(requirements.get("eventually_due") or []),
            "past_due": list(requirements.get("past_due") or []),
        },
    }


class StripeService:
    """Service for Stripe API operations"""

    def __init__(self, api_key: Optional[str] = STRIPE_SECRET_KEY):
        self.api_key = api_key

        if not self.api_key:
            logger.warning("STRIPE_SECRET_KEY not set; payment endpoints will fail until configured")
        else:
            stripe.api_version = STRIPE_API_VERSION
            logger.info(f"Stripe client initialized (api_version={STRIPE_API_VERSION})")

    def is_available(self) -> bool:
        """Check if Stripe is configured"""
        return bool(self.api_key)

    def _require_key(self) -> str:
        if not self.api_key:
            raise StripeNotConfiguredError("Stripe not configured")
        return self.api_key

    # ------------------------------------------------------------------
    # Platform billing (clinic -> platform)
    # ------------------------------------------------------------------

    def create_customer(
        self,
        email: str,
        name: str,
        organization_id: str,
        stripe_account: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> dict:
        params: dict[str, Any] = {
            "email": email,
            "name": name,
            "metadata": {"organizationId": organization_id, **(metadata or {})},
        }
        if stripe_account:
            params["stripe_account"] = stripe_account
        return _to_dict(stripe.Customer.create(api_key=self._require_key(), **params))

    def attach_payment_method(self, payment_method_id: str, customer_id: str) -> None:
        """Attach a payment method and make it the customer's invoice default"""
        api_key = self._require_key()
        stripe.PaymentMethod.attach(payment_method_id, customer=customer_id, api_key=api_key)
        stripe.Customer.modify(
            customer_id,
            invoice_settings={"default_payment_method": payment_method_id},
            api_key=api_key,
        )

    def create_subscription(
        self,
        customer_id: str,
        price_id: str,
        trial_days: Optional[int] = None,
        stripe_account: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> dict:
        """
        Start a subscription that stays incomplete until the first invoice is
        paid. The invoice's PaymentIntent is expanded so its client_secret can
        be handed to the browser.
        """
        params: dict[str, Any] = {
            "customer": customer_id,
            "items": [{"price": price_id}],
            "payment_behavior": "default_incomplete",
            "expand": ["latest_invoice.payment_intent"],
        }
        if trial_days:
            params["trial_period_days"] = trial_days
        if stripe_account:
            params["stripe_account"] = stripe_account
        if metadata:
            params["metadata"] = metadata

        subscription = stripe.Subscription.create(api_key=self._require_key(), **params)
        return _to_dict(subscription)

    def create_product(
        self, name: str, description: Optional[str] = None, stripe_account: Optional[str] = None
    ) -> dict:
        params: dict[str, Any] = {"name": name}
        if description:
            params["description"] = description
        if stripe_account:
            params["stripe_account"] = stripe_account
        return _to_dict(stripe.Product.create(api_key=self._require_key(), **params))

    def create_price(
        self,
        product_id: str,
        amount: float,
        interval: Optional[str] = None,
        stripe_account: Optional[str] = None,
        currency: str = STRIPE_CURRENCY,
    ) -> dict:
        """Create a price; `interval` (month/year) makes it recurring, otherwise one-time"""
        params: dict[str, Any] = {
            "product": product_id,
            "unit_amount": to_cents(amount),
            "currency": currency,
        }
        if interval:
            params["recurring"] = {"interval": interval}
        if stripe_account:
            params["stripe_account"] = stripe_account
        return _to_dict(stripe.Price.create(api_key=self._require_key(), **params))

    # ------------------------------------------------------------------
    # Connect (patient -> clinic)
    # ------------------------------------------------------------------

    def create_connect_account(self, name: str, email: str, organization_id: str) -> dict:
        account = stripe.Account.create(
            api_key=self._require_key(),
            type="express",
            country=STRIPE_CONNECT_COUNTRY,
            email=email,
            business_profile={"name": name, "support_email": email, "url": FRONTEND_URL},
            capabilities={"card_payments": {"requested": True}, "transfers": {"requested": True}},
            metadata={"organizationId": organization_id},
        )
        return _to_dict(account)

    def create_account_link(self, account_id: str, organization_id: str) -> dict:
        base_url = f"{FRONTEND_URL}/clinic/payment-setup"
        link = stripe.AccountLink.create(
            api_key=self._require_key(),
            account=account_id,
            refresh_url=f"{base_url}?refresh=true&org={organization_id}",
            return_url=f"{base_url}?success=true&org={organization_id}",
            type="account_onboarding",
        )
        return _to_dict(link)

    def retrieve_account(self, account_id: str) -> dict:
        return _to_dict(stripe.Account.retrieve(account_id, api_key=self._require_key()))

    def check_account_status(self, account_id: str) -> dict:
        return account_readiness(self.retrieve_account(account_id))

    # ------------------------------------------------------------------
    # Patient payments (direct charges on the clinic's account)
    # ------------------------------------------------------------------

    def create_payment_intent(
        self,
        amount: float,
        customer_id: Optional[str] = None,
        stripe_account: Optional[str] = None,
        metadata: Optional[dict] = None,
        currency: str = STRIPE_CURRENCY,
    ) -> dict:
        params: dict[str, Any] = {
            "amount": to_cents(amount),
            "currency": currency,
            "automatic_payment_methods": {"enabled": True},
            "metadata": metadata or {},
        }
        if customer_id:
            params["customer"] = customer_id
        if stripe_account:
            params["stripe_account"] = stripe_account
        return _to_dict(stripe.PaymentIntent.create(api_key=self._require_key(), **params))

    def retrieve_payment_intent(self, payment_intent_id: str, stripe_account: Optional[str] = None) -> dict:
        params: dict[str, Any] = {}
        if stripe_account:
            params["stripe_account"] = stripe_account
        return _to_dict(stripe.PaymentIntent.retrieve(payment_intent_id, api_key=self._require_key(), **params))

    def construct_event(self, payload: bytes, signature: str, secret: str) -> dict:
        """Verify the Stripe-Signature header and parse the event"""
        event = stripe.Webhook.construct_event(payload, signature, secret)
        return _to_dict(event)


_stripe_service: Optional[StripeService] = None


def get_stripe_service() -> StripeService:
    """Dependency returning the process-wide StripeService"""
    global _stripe_service
    if _stripe_service is None:
        _stripe_service = StripeService()
    return _stripe_service
