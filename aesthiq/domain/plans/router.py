"""Plan router - platform subscription plans"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_roles
from ...database import get_db
from ...models import User
from ..stripe_connect.stripe_service import StripeService, get_stripe_service
from .schemas import (
    PlanCreate,
    PlanResponse,
    SetupPlansResponse,
    SubscribeRequest,
    SubscribeResponse,
)
from .service import PlanService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Subscription Plans"])


def get_plan_service(
    db: Session = Depends(get_db),
    stripe_service: StripeService = Depends(get_stripe_service),
) -> PlanService:
    """Dependency injection for PlanService"""
    return PlanService(db, stripe_service)


@router.get("/subscription-plans", response_model=list[PlanResponse])
async def list_subscription_plans(service: PlanService = Depends(get_plan_service)):
    """Public pricing table"""
    return service.list_plans()


@router.post("/subscription-plans", response_model=PlanResponse)
async def create_subscription_plan(
    data: PlanCreate,
    _: User = Depends(require_roles("super_admin")),
    service: PlanService = Depends(get_plan_service),
):
    return service.create_plan(data)


@router.post("/admin/setup-subscription-plans", response_model=SetupPlansResponse)
async def setup_subscription_plans(
    _: User = Depends(require_roles("super_admin")),
    service: PlanService = Depends(get_plan_service),
):
    plans = service.setup_stripe_prices()
    return {"message": "Subscription plans setup complete", "plans": [PlanResponse.model_validate(p) for p in plans]}


@router.post("/subscription/subscribe", response_model=SubscribeResponse)
async def subscribe(
    data: SubscribeRequest,
    user: User = Depends(get_current_user),
    service: PlanService = Depends(get_plan_service),
):
    """Start the clinic's platform subscription with a free trial"""
    return service.subscribe(data, user)
