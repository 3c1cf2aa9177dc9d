"""Plan service - platform plans and clinic subscriptions"""

import logging
from datetime import datetime, timedelta

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...auth import get_user_organization_id
from ...config import PLATFORM_TRIAL_DAYS
from ...models import SubscriptionPlan, User
from ...security_utils import sanitize_text
from ..organizations.repository import OrganizationRepository
from ..stripe_connect.stripe_service import StripeService
from .repository import PlanRepository
from .schemas import PlanCreate, SubscribeRequest

logger = logging.getLogger(__name__)


class PlanService:
    """Service layer for platform subscription plans"""

    def __init__(self, db: Session, stripe_service: StripeService):
        self.db = db
        self.repo = PlanRepository()
        self.organizations = OrganizationRepository()
        self.stripe = stripe_service

    def list_plans(self) -> list[SubscriptionPlan]:
        return self.repo.list_plans(self.db, active_only=True)

    def create_plan(self, data: PlanCreate) -> SubscriptionPlan:
        plan = self.repo.create(
            self.db,
            name=data.name.strip(),
            tier=data.tier,
            description=sanitize_text(data.description),
            monthly_price=data.monthlyPrice,
            yearly_price=data.yearlyPrice,
            max_locations=data.maxLocations,
            max_staff=data.maxStaff,
            max_clients=data.maxClients,
            features=data.features,
            limits=data.limits or {},
            is_active=data.isActive,
        )
        logger.info(f"✅ Subscription plan created: {plan.name} ({plan.tier})")
        return plan

    def setup_stripe_prices(self) -> list[SubscriptionPlan]:
        """Create platform products/prices for every plan that has no monthly price yet"""
        plans = self.repo.list_plans(self.db)
        try:
            for plan in plans:
                if plan.stripe_price_id_monthly:
                    continue

                product = self.stripe.create_product(
                    name=f"Aesthiq {plan.name} Plan",
                    description=plan.description or f"{plan.name} subscription plan for Aesthiq platform",
                )
                monthly = self.stripe.create_price(product["id"], plan.monthly_price, interval="month")
                plan.stripe_price_id_monthly = monthly["id"]

                if plan.yearly_price:
                    yearly = self.stripe.create_price(product["id"], plan.yearly_price, interval="year")
                    plan.stripe_price_id_yearly = yearly["id"]

                self.db.commit()
                logger.info(
                    f"✅ Stripe prices created for plan {plan.name}: product {product['id']}, "
                    f"monthly {plan.stripe_price_id_monthly}, yearly {plan.stripe_price_id_yearly}"
                )
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Failed to setup subscription plans: {str(e)}")
            raise HTTPException(status_code=500, detail="Failed to setup subscription plans") from e

        return self.repo.list_plans(self.db)

    def subscribe(self, data: SubscribeRequest, user: User) -> dict:
        organization_id = get_user_organization_id(self.db, user)
        if not organization_id:
            raise HTTPException(status_code=400, detail="Organization not found")

        organization = self.organizations.get_by_id(self.db, organization_id)
        if not organization:
            raise HTTPException(status_code=404, detail="Organization not found")

        plan = self.repo.get_by_id(self.db, data.planId)
        if not plan:
            raise HTTPException(status_code=404, detail="Subscription plan not found")

        price_id = plan.stripe_price_id_monthly if data.billingCycle == "monthly" else plan.stripe_price_id_yearly
        if not price_id:
            raise HTTPException(status_code=400, detail="Price not available for selected billing cycle")

        try:
            customer_id = organization.stripe_customer_id
            if not customer_id:
                customer = self.stripe.create_customer(user.email, organization.name, organization.id)
                customer_id = customer["id"]
                organization.stripe_customer_id = customer_id
                self.db.commit()

            if data.paymentMethodId:
                self.stripe.attach_payment_method(data.paymentMethodId, customer_id)

            subscription = self.stripe.create_subscription(customer_id, price_id, trial_days=PLATFORM_TRIAL_DAYS)
        except Exception as e:
            logger.error(f"❌ Subscribe to plan failed for organization {organization.id}: {str(e)}")
            raise HTTPException(status_code=500, detail="Failed to create subscription") from e

        trial_ends_at = datetime.utcnow() + timedelta(days=PLATFORM_TRIAL_DAYS)
        self.organizations.update(
            self.db,
            organization,
            subscription_plan_id=plan.id,
            stripe_subscription_id=subscription["id"],
            subscription_status="trialing",
            trial_ends_at=trial_ends_at,
        )
        logger.info(f"💳 Organization {organization.slug} subscribed to {plan.name} ({data.billingCycle})")

        return {
            "message": "Subscription created successfully",
            "subscriptionId": subscription["id"],
            "status": subscription.get("status", "trialing"),
            "trial": True,
            "trialEndsAt": trial_ends_at,
        }
