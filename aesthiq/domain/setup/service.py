"""Business setup service - what a clinic still has to do before going live"""

import logging

from fastapi import Depends, HTTPException
from sqlalchemy.orm import Session

from ...auth import get_current_user, get_user_organization_id
from ...database import get_db
from ...models import Client, MembershipTier, Organization, RewardOption, Service, User

logger = logging.getLogger(__name__)

GATED_ROLES = ("clinic_admin", "staff")


def _exists(db: Session, model, organization_id: str, active_only: bool = False) -> bool:
    query = db.query(model.id).filter(model.organization_id == organization_id)
    if active_only:
        query = query.filter(model.is_active.is_(True))
    return query.first() is not None


def compute_setup_status(db: Session, organization: Organization) -> dict:
    """Checklist shown by the setup wizard"""
    status = {
        "stripeConnected": bool(organization.stripe_connect_account_id),
        "hasSubscription": bool(organization.subscription_plan_id)
        and organization.subscription_status in ("active", "trialing"),
        "hasServices": _exists(db, Service, organization.id, active_only=True),
        "hasMemberships": _exists(db, MembershipTier, organization.id),
        "hasRewards": _exists(db, RewardOption, organization.id),
        "hasPatients": _exists(db, Client, organization.id),
    }
    status["allComplete"] = all(status.values())
    return status


def missing_gate_items(status: dict) -> list[str]:
    """Items the server-side gate requires; inviting patients is not one of them"""
    labels = [
        ("stripeConnected", "Payment setup"),
        ("hasSubscription", "Active subscription"),
        ("hasServices", "Services"),
        ("hasMemberships", "Membership plans"),
        ("hasRewards", "Rewards program"),
    ]
    return [label for key, label in labels if not status[key]]


def get_user_organization(db: Session, user: User) -> Organization:
    organization_id = get_user_organization_id(db, user)
    if not organization_id:
        raise HTTPException(status_code=400, detail="No organization found for user")

    organization = db.query(Organization).filter(Organization.id == organization_id).first()
    if not organization:
        raise HTTPException(status_code=404, detail="Organization not found")
    return organization


async def require_business_setup_complete(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> User:
    """
    Dependency for clinic operations that need a finished business setup.
    Only clinic admins and staff are gated; other roles pass through.
    """
    if user.role not in GATED_ROLES:
        return user

    organization = get_user_organization(db, user)
    status = compute_setup_status(db, organization)
    missing = missing_gate_items(status)

    if missing:
        logger.info(f"🚧 Business setup incomplete for {organization.slug}: {', '.join(missing)}")
        raise HTTPException(
            status_code=403,
            detail={
                "message": f"Business setup incomplete. Missing: {', '.join(missing)}. "
                "Please complete your business setup first.",
                "error_code": "BUSINESS_SETUP_INCOMPLETE",
                "missing_items": missing,
                "setup_status": status,
            },
        )
    return user
