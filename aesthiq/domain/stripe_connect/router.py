"""Stripe Connect router - onboarding endpoints and the Stripe webhook"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from ... import config
from ...auth import require_roles
from ...database import get_db
from ...models import User
from .schemas import OnboardingResponse, StripeAccountStatus
from .service import StripeConnectService
from .stripe_service import StripeService, get_stripe_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/stripe-connect", tags=["Stripe Connect"])
webhooks_router = APIRouter(prefix="/api/stripe", tags=["Webhooks"])

clinic_admin_only = require_roles("clinic_admin")


def get_stripe_connect_service(
    db: Session = Depends(get_db),
    stripe_service: StripeService = Depends(get_stripe_service),
) -> StripeConnectService:
    """Dependency injection for StripeConnectService"""
    return StripeConnectService(db, stripe_service)


@router.post("/create-account", response_model=OnboardingResponse)
async def create_account(
    user: User = Depends(clinic_admin_only),
    service: StripeConnectService = Depends(get_stripe_connect_service),
):
    """Create an Express account for the clinic and return the onboarding link"""
    return service.create_account(user)


@router.get("/status", response_model=StripeAccountStatus)
async def get_status(
    user: User = Depends(clinic_admin_only),
    service: StripeConnectService = Depends(get_stripe_connect_service),
):
    return service.get_status(user)


@router.get("/status/{organization_id}", response_model=StripeAccountStatus)
async def get_status_for_organization(
    organization_id: str,
    user: User = Depends(clinic_admin_only),
    service: StripeConnectService = Depends(get_stripe_connect_service),
):
    return service.get_status(user, organization_id)


@router.post("/refresh-onboarding", response_model=OnboardingResponse)
async def refresh_onboarding(
    user: User = Depends(clinic_admin_only),
    service: StripeConnectService = Depends(get_stripe_connect_service),
):
    return service.refresh_onboarding(user)


@webhooks_router.post("/webhook")
async def handle_stripe_webhook(
    request: Request,
    service: StripeConnectService = Depends(get_stripe_connect_service),
):
    """
    Verify the Stripe-Signature header and sync Connect accounts, platform
    subscriptions, patient memberships and appointment payments.

    Handled events:
      - account.updated
      - capability.updated (the account is re-fetched)
      - customer.subscription.updated / customer.subscription.deleted
      - invoice.payment_succeeded (activates a patient membership)
      - payment_intent.succeeded / payment_intent.payment_failed
    """
    secret = config.STRIPE_WEBHOOK_SECRET
    if not secret:
        logger.error("❌ STRIPE_WEBHOOK_SECRET not configured")
        raise HTTPException(status_code=500, detail="Webhook not configured")

    payload = await request.body()
    signature = request.headers.get("stripe-signature", "")

    try:
        event = service.stripe.construct_event(payload, signature, secret)
    except Exception as e:
        logger.warning(f"⚠️ Stripe webhook signature verification failed: {str(e)}")
        raise HTTPException(status_code=400, detail="Invalid signature") from e

    try:
        service.handle_event(event)
    except Exception as e:
        logger.error(f"❌ Failed to process Stripe event {event.get('id')}: {str(e)}")
        raise HTTPException(status_code=500, detail="Webhook processing failed") from e

    return {"received": True}
