"""Rewards router - the points catalog a clinic offers and each patient's ledger"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_roles
from ...database import get_db
from ...models import User
from .schemas import (
    RedeemRequest,
    RedeemResponse,
    RewardCreate,
    RewardLedgerResponse,
    RewardOptionCreate,
    RewardOptionResponse,
    RewardResponse,
)
from .service import RewardService

router = APIRouter(prefix="/api/reward-options", tags=["Rewards"])
points_router = APIRouter(prefix="/api/rewards", tags=["Rewards"])

clinic_team = require_roles("clinic_admin", "staff")


def get_reward_service(db: Session = Depends(get_db)) -> RewardService:
    """Dependency injection for RewardService"""
    return RewardService(db)


@router.get("", response_model=list[RewardOptionResponse])
async def list_reward_options(
    user: User = Depends(get_current_user),
    service: RewardService = Depends(get_reward_service),
):
    return service.list_options(user)


@router.post("", response_model=RewardOptionResponse)
async def create_reward_option(
    data: RewardOptionCreate,
    request: Request,
    user: User = Depends(clinic_team),
    service: RewardService = Depends(get_reward_service),
):
    return service.create_option(data, user, request)


@points_router.get("/my-rewards", response_model=RewardLedgerResponse)
async def get_my_rewards(
    user: User = Depends(get_current_user),
    service: RewardService = Depends(get_reward_service),
):
    """The signed-in patient's points history and balance"""
    return service.my_rewards(user)


@points_router.post("/redeem", response_model=RedeemResponse)
async def redeem_points(
    data: RedeemRequest,
    request: Request,
    user: User = Depends(get_current_user),
    service: RewardService = Depends(get_reward_service),
):
    return service.redeem(user, data.optionId, request)


@points_router.post("", response_model=RewardResponse)
async def create_reward(
    data: RewardCreate,
    request: Request,
    user: User = Depends(clinic_team),
    service: RewardService = Depends(get_reward_service),
):
    """Manual points adjustment; negative points deduct"""
    return service.create_reward(data, user, request)


@points_router.get("/{client_id}", response_model=RewardLedgerResponse)
async def get_client_rewards(
    client_id: str,
    user: User = Depends(require_roles("clinic_admin", "staff", "super_admin")),
    service: RewardService = Depends(get_reward_service),
):
    return service.client_rewards(user, client_id)
