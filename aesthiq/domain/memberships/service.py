"""
Membership service - the tiers a clinic sells and the memberships patients
buy. A paid membership starts suspended and is activated by the first paid
invoice webhook.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import HTTPException, Request
from sqlalchemy.orm import Session

from ...audit import log_audit_event
from ...auth import get_user_organization_id, resolve_organization_id
from ...models import Client, Membership, MembershipTier, Organization, User
from ...security_utils import sanitize_text
from ..people.service import get_client_profile
from ..rewards.service import MEMBERSHIP_SIGNUP_BONUS, award_points, calculate_reward_points
from ..stripe_connect.stripe_service import StripeService
from .schemas import MembershipTierCreate, MembershipTierUpdate, MembershipUpgrade

logger = logging.getLogger(__name__)

FIELD_MAP = {
    "name": "name",
    "description": "description",
    "benefits": "benefits",
    "discountPercentage": "discount_percentage",
    "isActive": "is_active",
    "sortOrder": "sort_order",
}


def _client_secret(subscription: dict) -> Optional[str]:
    """client_secret of the first invoice's PaymentIntent, when Stripe expanded it"""
    invoice = subscription.get("latest_invoice")
    if not isinstance(invoice, dict):
        return None
    intent = invoice.get("payment_intent")
    return intent.get("client_secret") if isinstance(intent, dict) else None


def activate_membership(db: Session, subscription_id: str) -> Optional[Membership]:
    """Activate a suspended membership once its invoice is paid and award points for it"""
    membership = db.query(Membership).filter(Membership.stripe_subscription_id == subscription_id).first()
    if not membership or membership.status != "suspended":
        return membership

    membership.status = "active"
    client = db.query(Client).filter(Client.id == membership.client_id).first()
    if client:
        points = calculate_reward_points(db, client.id, membership.monthly_fee)
        award_points(
            db,
            client,
            points,
            f"Membership activated: {membership.tier_name} (${membership.monthly_fee:.2f})",
            reference_id=membership.id,
            reference_type="membership",
        )
    db.commit()
    logger.info(f"✅ Membership {membership.id} activated for subscription {subscription_id}")
    return membership


def cancel_membership(db: Session, subscription_id: str) -> Optional[Membership]:
    membership = db.query(Membership).filter(Membership.stripe_subscription_id == subscription_id).first()
    if not membership:
        return None

    membership.status = "canceled"
    membership.end_date = datetime.now(timezone.utc).replace(tzinfo=None)
    db.commit()
    logger.info(f"🛑 Membership {membership.id} canceled for subscription {subscription_id}")
    return membership


class MembershipService:
    """Service layer for membership tiers and patient memberships"""

    def __init__(self, db: Session, stripe_service: StripeService):
        self.db = db
        self.stripe = stripe_service

    def _organization_id(self, user: User) -> str:
        organization_id = get_user_organization_id(self.db, user)
        if not organization_id:
            raise HTTPException(status_code=400, detail="User organization not found")
        return organization_id

    def list_tiers(self, user: User) -> list[MembershipTier]:
        organization_id = self._organization_id(user)
        return (
            self.db.query(MembershipTier)
            .filter(MembershipTier.organization_id == organization_id)
            .order_by(MembershipTier.sort_order.asc(), MembershipTier.monthly_price.asc())
            .all()
        )

    def create_tier(self, data: MembershipTierCreate, user: User) -> MembershipTier:
        organization_id = self._organization_id(user)
        organization = self.db.query(Organization).filter(Organization.id == organization_id).first()
        if not organization:
            raise HTTPException(status_code=404, detail="Organization not found")

        account_id = organization.stripe_connect_account_id
        if not account_id:
            raise HTTPException(
                status_code=400,
                detail="Stripe Connect account required to create membership plans. "
                "Please complete your payment setup first.",
            )

        tier = MembershipTier(
            organization_id=organization_id,
            name=data.name.strip(),
            description=sanitize_text(data.description),
            monthly_price=data.monthlyPrice,
            yearly_price=data.yearlyPrice,
            benefits=data.benefits or [],
            discount_percentage=data.discountPercentage,
            is_active=data.isActive,
            sort_order=data.sortOrder,
        )

        try:
            product = self.stripe.create_product(
                name=f"{tier.name} Membership",
                description=tier.description or f"{tier.name} membership tier",
                stripe_account=account_id,
            )
            tier.stripe_product_id = product["id"]
            tier.stripe_price_id_monthly = self.stripe.create_price(
                product["id"], tier.monthly_price, interval="month", stripe_account=account_id
            )["id"]
            if tier.yearly_price:
                tier.stripe_price_id_yearly = self.stripe.create_price(
                    product["id"], tier.yearly_price, interval="year", stripe_account=account_id
                )["id"]
        except Exception as e:
            logger.error(f"❌ Failed to create membership product/prices on {account_id}: {str(e)}")
            raise HTTPException(
                status_code=500,
                detail={
                    "message": "Failed to create membership plan in Stripe. Please check your Stripe Connect setup.",
                    "error": str(e),
                },
            ) from e

        self.db.add(tier)
        self.db.commit()
        self.db.refresh(tier)
        logger.info(f"✅ Membership tier {tier.name} created with product {tier.stripe_product_id}")
        return tier

    def _get_owned_tier(self, tier_id: str, user: User) -> MembershipTier:
        organization_id = self._organization_id(user)
        tier = self.db.query(MembershipTier).filter(MembershipTier.id == tier_id).first()
        if not tier or tier.organization_id != organization_id:
            raise HTTPException(status_code=404, detail="Membership tier not found")
        return tier

    def update_tier(self, tier_id: str, data: MembershipTierUpdate, user: User) -> MembershipTier:
        """Prices are fixed once the Stripe prices exist; only descriptive fields change"""
        tier = self._get_owned_tier(tier_id, user)
        updates = data.model_dump(exclude_unset=True)
        if "description" in updates:
            updates["description"] = sanitize_text(updates["description"])
        for key, value in updates.items():
            setattr(tier, FIELD_MAP[key], value)
        self.db.commit()
        self.db.refresh(tier)
        return tier

    def delete_tier(self, tier_id: str, user: User) -> None:
        tier = self._get_owned_tier(tier_id, user)
        self.db.delete(tier)
        self.db.commit()
        logger.info(f"🗑️ Membership tier {tier_id} deleted")

    # ------------------------------------------------------------------
    # Patient memberships
    # ------------------------------------------------------------------

    def list_memberships(
        self, user: User, client_id: Optional[str] = None, organization_id: Optional[str] = None
    ) -> list[Membership]:
        query = self.db.query(Membership)
        if client_id:
            client = self.db.query(Client).filter(Client.id == client_id).first()
            if not client or (
                user.role != "super_admin" and client.organization_id != get_user_organization_id(self.db, user)
            ):
                raise HTTPException(status_code=404, detail="Client not found")
            query = query.filter(Membership.client_id == client.id)
        else:
            organization_id = resolve_organization_id(self.db, user, organization_id)
            query = query.filter(Membership.organization_id == organization_id)
        return query.order_by(Membership.created_at.desc()).all()

    def my_membership(self, user: User) -> dict:
        client = get_client_profile(self.db, user)
        membership = (
            self.db.query(Membership)
            .filter(Membership.client_id == client.id, Membership.status == "active")
            .order_by(Membership.created_at.desc())
            .first()
        )
        return {"membership": membership}

    def _find_tier(self, tier_ref: str, organization_id: str) -> MembershipTier:
        """Look a tier up by id, falling back to a case-insensitive name match"""
        tiers = (
            self.db.query(MembershipTier)
            .filter(MembershipTier.organization_id == organization_id, MembershipTier.is_active.is_(True))
            .all()
        )
        tier = next((t for t in tiers if t.id == tier_ref), None)
        if tier is None:
            tier = next((t for t in tiers if t.name.lower() == tier_ref.strip().lower()), None)
        if tier is None:
            logger.info(f"❌ No membership tier {tier_ref} in organization {organization_id}")
            raise HTTPException(status_code=404, detail="Membership tier not found")
        return tier

    def upgrade(self, data: MembershipUpgrade, user: User, request: Optional[Request] = None) -> dict:
        client = get_client_profile(self.db, user)
        tier = self._find_tier(data.tierId, client.organization_id)

        yearly = data.billingCycle == "yearly"
        if yearly and not tier.yearly_price:
            raise HTTPException(status_code=400, detail="Yearly billing is not offered for this tier")
        price_id = tier.stripe_price_id_yearly if yearly else tier.stripe_price_id_monthly
        # Fee for one billing cycle
        fee = tier.yearly_price if yearly else tier.monthly_price

        membership = Membership(
            organization_id=client.organization_id,
            client_id=client.id,
            tier_id=tier.id,
            tier_name=tier.name,
            billing_cycle=data.billingCycle,
            monthly_fee=fee,
        )

        if not price_id:
            # Tiers without a Stripe price are free to join
            logger.warning(f"⚠️ No Stripe price for tier {tier.name}; activating membership without payment")
            membership.status = "active"
            self.db.add(membership)
            self.db.flush()
            award_points(
                self.db, client, MEMBERSHIP_SIGNUP_BONUS, "Membership signup bonus",
                reference_id=membership.id, reference_type="membership",
            )
            self.db.commit()
            self.db.refresh(membership)
            log_audit_event(
                self.db, user, "upgrade_completed", "membership", membership.id,
                organization_id=client.organization_id,
                changes={"tierId": tier.id, "billingCycle": data.billingCycle, "reason": "no_stripe_price"},
                request=request,
            )
            return {"membership": membership, "clientSecret": None, "subscriptionId": None, "requiresPayment": False}

        organization = self.db.query(Organization).filter(Organization.id == client.organization_id).first()
        account_id = organization.stripe_connect_account_id if organization else None
        if not account_id:
            raise HTTPException(status_code=400, detail="This clinic is not accepting online payments yet")

        try:
            if not client.stripe_customer_id:
                customer = self.stripe.create_customer(
                    email=client.email or user.email,
                    name=f"{client.first_name} {client.last_name}".strip(),
                    organization_id=client.organization_id,
                    stripe_account=account_id,
                    metadata={"clientId": client.id},
                )
                client.stripe_customer_id = customer["id"]
            subscription = self.stripe.create_subscription(
                client.stripe_customer_id,
                price_id,
                stripe_account=account_id,
                metadata={"clientId": client.id, "membershipTierId": tier.id},
            )
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Membership upgrade failed for client {client.id}: {str(e)}")
            raise HTTPException(status_code=500, detail="Failed to upgrade membership") from e

        membership.status = "suspended"
        membership.stripe_subscription_id = subscription["id"]
        self.db.add(membership)
        self.db.commit()
        self.db.refresh(membership)

        log_audit_event(
            self.db, user, "upgrade_initiated", "membership", membership.id,
            organization_id=client.organization_id,
            changes={"tierId": tier.id, "billingCycle": data.billingCycle, "subscriptionId": subscription["id"]},
            request=request,
        )
        logger.info(f"💳 Membership {membership.id} awaiting payment on subscription {subscription['id']}")
        return {
            "membership": membership,
            "clientSecret": _client_secret(subscription),
            "subscriptionId": subscription["id"],
            "requiresPayment": True,
        }
