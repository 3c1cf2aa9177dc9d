"""Membership tier and patient membership routers"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_roles
from ...database import get_db
from ...models import User
from ..stripe_connect.stripe_service import StripeService, get_stripe_service
from .schemas import (
    MembershipResponse,
    MembershipTierCreate,
    MembershipTierResponse,
    MembershipTierUpdate,
    MembershipUpgrade,
    MembershipUpgradeResponse,
    MyMembershipResponse,
)
from .service import MembershipService

router = APIRouter(prefix="/api/membership-tiers", tags=["Memberships"])
billing_router = APIRouter(prefix="/api/memberships", tags=["Memberships"])

manage_tiers = require_roles("clinic_admin")


def get_membership_service(
    db: Session = Depends(get_db),
    stripe_service: StripeService = Depends(get_stripe_service),
) -> MembershipService:
    """Dependency injection for MembershipService"""
    return MembershipService(db, stripe_service)


@router.get("", response_model=list[MembershipTierResponse])
async def list_membership_tiers(
    user: User = Depends(get_current_user),
    service: MembershipService = Depends(get_membership_service),
):
    return service.list_tiers(user)


@router.post("", response_model=MembershipTierResponse, status_code=201)
async def create_membership_tier(
    data: MembershipTierCreate,
    user: User = Depends(manage_tiers),
    service: MembershipService = Depends(get_membership_service),
):
    return service.create_tier(data, user)


@router.put("/{tier_id}", response_model=MembershipTierResponse)
async def update_membership_tier(
    tier_id: str,
    data: MembershipTierUpdate,
    user: User = Depends(manage_tiers),
    service: MembershipService = Depends(get_membership_service),
):
    return service.update_tier(tier_id, data, user)


@router.delete("/{tier_id}")
async def delete_membership_tier(
    tier_id: str,
    user: User = Depends(manage_tiers),
    service: MembershipService = Depends(get_membership_service),
):
    service.delete_tier(tier_id, user)
    return {"message": "Membership tier deleted successfully"}


@billing_router.get("", response_model=list[MembershipResponse])
async def list_memberships(
    clientId: Optional[str] = Query(None),
    organizationId: Optional[str] = Query(None),
    user: User = Depends(require_roles("clinic_admin", "staff", "super_admin")),
    service: MembershipService = Depends(get_membership_service),
):
    return service.list_memberships(user, clientId, organizationId)


@billing_router.get("/my-membership", response_model=MyMembershipResponse)
async def get_my_membership(
    user: User = Depends(get_current_user),
    service: MembershipService = Depends(get_membership_service),
):
    """The signed-in patient's active membership, or null"""
    return service.my_membership(user)


@billing_router.post("/upgrade", response_model=MembershipUpgradeResponse)
async def upgrade_membership(
    data: MembershipUpgrade,
    request: Request,
    user: User = Depends(get_current_user),
    service: MembershipService = Depends(get_membership_service),
):
    """
    Join or change membership tier. Paid tiers return the clientSecret of the
    first invoice for the browser to confirm; the membership turns active on
    the invoice.payment_succeeded webhook.
    """
    return service.upgrade(data, user, request)
