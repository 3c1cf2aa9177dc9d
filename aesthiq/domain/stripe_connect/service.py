"""
Stripe Connect service - clinic payment onboarding and webhook sync.

The stored business_features_enabled flag is only written from verified
webhooks. Status reads refresh the telemetry columns and report live
readiness without touching that flag.
"""

import logging
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...auth import get_user_organization_id
from ...models import Membership, Organization, User
from ..memberships.service import activate_membership, cancel_membership
from ..organizations.repository import OrganizationRepository
from ..payments.service import record_payment_outcome
from .stripe_service import StripeService, account_readiness

logger = logging.getLogger(__name__)

SUBSCRIPTION_EVENTS = ("customer.subscription.updated", "customer.subscription.deleted")
PAYMENT_INTENT_EVENTS = ("payment_intent.succeeded", "payment_intent.payment_failed")


def _error(status_code: int, message: str, error_code: str, **extra) -> HTTPException:
    return HTTPException(status_code=status_code, detail={"message": message, "error_code": error_code, **extra})


class StripeConnectService:
    """Service layer for Connect onboarding"""

    def __init__(self, db: Session, stripe_service: StripeService):
        self.db = db
        self.stripe = stripe_service

    def _user_organization(self, user: User) -> Optional[Organization]:
        organization_id = get_user_organization_id(self.db, user)
        if not organization_id:
            return None
        return OrganizationRepository.get_by_id(self.db, organization_id)

    def create_account(self, user: User) -> dict:
        organization = self._user_organization(user)
        if not organization:
            raise _error(400, "No organization found for user", "NO_ORGANIZATION")

        if organization.stripe_connect_account_id:
            raise _error(
                400,
                "Stripe Connect account already exists",
                "ACCOUNT_EXISTS",
                account_id=organization.stripe_connect_account_id,
            )

        try:
            account = self.stripe.create_connect_account(
                name=organization.name,
                email=organization.email or user.email,
                organization_id=organization.id,
            )
            OrganizationRepository.update(
                self.db,
                organization,
                stripe_connect_account_id=account["id"],
                stripe_account_status="pending",
            )
            link = self.stripe.create_account_link(account["id"], organization.id)
        except Exception as e:
            message = str(e)
            logger.error(f"❌ Stripe Connect account creation failed for {organization.slug}: {message}")
            if "platform-profile" in message:
                raise _error(
                    400,
                    "Stripe Connect platform profile is not configured. "
                    "Complete the platform profile in the Stripe dashboard first.",
                    "PLATFORM_NOT_CONFIGURED",
                ) from e
            raise _error(500, "Failed to create Stripe Connect account", "CREATION_FAILED", error=message) from e

        logger.info(f"🏦 Stripe Connect account {account['id']} created for {organization.slug}")
        return {"accountId": account["id"], "onboardingUrl": link["url"]}

    def get_status(self, user: User, organization_id: Optional[str] = None) -> dict:
        user_organization_id = get_user_organization_id(self.db, user)
        if not user_organization_id:
            raise HTTPException(status_code=400, detail="No organization found for user")
        if organization_id and organization_id != user_organization_id:
            raise HTTPException(status_code=403, detail="Access denied")

        organization = OrganizationRepository.get_by_id(self.db, user_organization_id)
        if not organization:
            raise HTTPException(status_code=404, detail="Organization not found")

        if not organization.stripe_connect_account_id:
            return {"hasAccount": False, "businessFeaturesEnabled": False}

        try:
            readiness = self.stripe.check_account_status(organization.stripe_connect_account_id)
        except Exception as e:
            logger.error(f"❌ Failed to fetch Stripe account status for {organization.slug}: {str(e)}")
            raise HTTPException(status_code=500, detail="Failed to fetch Stripe account status") from e

        OrganizationRepository.update(
            self.db,
            organization,
            payouts_enabled=readiness["payouts_enabled"],
            capabilities_transfers="active" if readiness["transfers_active"] else "inactive",
            has_external_account=readiness["has_external_account"],
        )

        return {
            "hasAccount": True,
            "accountId": organization.stripe_connect_account_id,
            "payoutsEnabled": readiness["payouts_enabled"],
            "chargesEnabled": readiness["charges_enabled"],
            "transfersActive": readiness["transfers_active"],
            "hasExternalAccount": readiness["has_external_account"],
            "businessFeaturesEnabled": readiness["ready"],
            "capabilities": readiness["capabilities"],
            "requirements": readiness["requirements"],
        }

    def refresh_onboarding(self, user: User) -> dict:
        organization = self._user_organization(user)
        if not organization or not organization.stripe_connect_account_id:
            raise HTTPException(status_code=400, detail="No Stripe Connect account found")

        try:
            link = self.stripe.create_account_link(organization.stripe_connect_account_id, organization.id)
        except Exception as e:
            logger.error(f"❌ Failed to refresh onboarding link for {organization.slug}: {str(e)}")
            raise HTTPException(status_code=500, detail="Failed to refresh onboarding link") from e

        return {"accountId": organization.stripe_connect_account_id, "onboardingUrl": link["url"]}

    # ------------------------------------------------------------------
    # Webhooks
    # ------------------------------------------------------------------

    def handle_event(self, event: dict) -> None:
        event_type = event.get("type")
        obj = (event.get("data") or {}).get("object") or {}
        logger.info(f"🔔 Stripe webhook received id={event.get('id')} type={event_type}")

        if event_type == "account.updated":
            self.sync_account(obj)
        elif event_type == "capability.updated":
            account_id = obj.get("account")
            if account_id:
                self.sync_account(self.stripe.retrieve_account(account_id))
        elif event_type in SUBSCRIPTION_EVENTS:
            deleted = event_type == "customer.subscription.deleted"
            # Patient memberships live on connected accounts; everything else is a platform plan
            if self.is_membership_subscription(obj.get("id")):
                if deleted:
                    cancel_membership(self.db, obj["id"])
            else:
                self.sync_subscription(obj, deleted=deleted)
        elif event_type == "invoice.payment_succeeded":
            if obj.get("subscription"):
                activate_membership(self.db, obj["subscription"])
        elif event_type in PAYMENT_INTENT_EVENTS and obj.get("id"):
            received = obj.get("amount_received")
            record_payment_outcome(
                self.db,
                obj["id"],
                succeeded=event_type == "payment_intent.succeeded",
                amount=received / 100 if received else None,
            )
        else:
            logger.debug(f"Ignoring Stripe event type {event_type}")

    def is_membership_subscription(self, subscription_id: Optional[str]) -> bool:
        if not subscription_id:
            return False
        return (
            self.db.query(Membership.id).filter(Membership.stripe_subscription_id == subscription_id).first()
            is not None
        )

    def sync_account(self, account: dict) -> Optional[Organization]:
        organization_id = (account.get("metadata") or {}).get("organizationId")
        organization = None
        if organization_id:
            organization = OrganizationRepository.get_by_id(self.db, organization_id)
        if not organization and account.get("id"):
            organization = OrganizationRepository.get_by_connect_account(self.db, account["id"])
        if not organization:
            logger.warning(f"⚠️ No organization for Stripe account {account.get('id')}")
            return None

        readiness = account_readiness(account)
        OrganizationRepository.update(
            self.db,
            organization,
            payouts_enabled=readiness["payouts_enabled"],
            capabilities_transfers="active" if readiness["transfers_active"] else "inactive",
            has_external_account=readiness["has_external_account"],
            business_features_enabled=readiness["ready"],
            stripe_account_status="active" if readiness["ready"] else "pending",
        )
        logger.info(
            f"✅ Synced Stripe account {account.get('id')} for {organization.slug} "
            f"(business features {'enabled' if readiness['ready'] else 'disabled'})"
        )
        return organization

    def sync_subscription(self, subscription: dict, deleted: bool = False) -> Optional[Organization]:
        organization = None
        if subscription.get("id"):
            organization = OrganizationRepository.get_by_subscription(self.db, subscription["id"])
        if not organization:
            organization_id = (subscription.get("metadata") or {}).get("organizationId")
            if organization_id:
                organization = OrganizationRepository.get_by_id(self.db, organization_id)
        if not organization:
            logger.warning(f"⚠️ No organization for subscription {subscription.get('id')}")
            return None

        status = "canceled" if deleted else subscription.get("status") or organization.subscription_status
        OrganizationRepository.update(self.db, organization, subscription_status=status)
        logger.info(f"💳 Subscription for {organization.slug} is now {status}")
        return organization
