"""
Rewards service - the reward catalog and each patient's points ledger.

Points are earned on payments and spent on catalog options. The balance is
the sum of the ledger; redemptions are stored as negative entries.
"""

import logging
import math
from typing import Optional

from fastapi import HTTPException, Request
from sqlalchemy import func
from sqlalchemy.orm import Session

from ...audit import log_audit_event
from ...auth import get_user_organization_id
from ...models import Client, Membership, Reward, RewardOption, User
from ...security_utils import sanitize_text
from ..people.service import get_client_profile
from .schemas import RewardCreate, RewardOptionCreate

logger = logging.getLogger(__name__)

# (minimum balance, points per dollar), highest first
EARNING_TIERS = ((5000, 2.5), (2500, 2.0), (1000, 1.5))
BASE_RATE = 1.0
MEMBER_BONUS = 0.5
MEMBERSHIP_SIGNUP_BONUS = 100


def get_balance(db: Session, client_id: str) -> int:
    total = db.query(func.coalesce(func.sum(Reward.points), 0)).filter(Reward.client_id == client_id).scalar()
    return int(total or 0)


def calculate_reward_points(db: Session, client_id: str, amount_spent: float) -> int:
    """
    Points for a payment. The earning rate grows with the current balance
    (1x, 1.5x, 2x, 2.5x) and active members earn an extra 0.5x.
    """
    balance = get_balance(db, client_id)
    multiplier = next((rate for minimum, rate in EARNING_TIERS if balance >= minimum), BASE_RATE)

    is_member = (
        db.query(Membership.id)
        .filter(Membership.client_id == client_id, Membership.status == "active")
        .first()
        is not None
    )
    if is_member:
        multiplier += MEMBER_BONUS

    points = math.floor(amount_spent * multiplier)
    logger.info(
        f"🎁 Reward calculation: ${amount_spent} x {multiplier} = {points} points "
        f"(balance: {balance}, member: {is_member})"
    )
    return points


def award_points(
    db: Session,
    client: Client,
    points: int,
    reason: str,
    reference_id: Optional[str] = None,
    reference_type: Optional[str] = None,
) -> Optional[Reward]:
    """
    Add a ledger entry without committing. A reference is only ever rewarded
    once; a repeat returns None.
    """
    if points <= 0:
        return None

    if reference_id and reference_type:
        existing = (
            db.query(Reward.id)
            .filter(
                Reward.client_id == client.id,
                Reward.reference_id == reference_id,
                Reward.reference_type == reference_type,
            )
            .first()
        )
        if existing:
            logger.info(f"Points for {reference_type} {reference_id} already awarded")
            return None

    reward = Reward(
        organization_id=client.organization_id,
        client_id=client.id,
        points=points,
        reason=reason,
        reference_id=reference_id,
        reference_type=reference_type,
    )
    db.add(reward)
    return reward


class RewardService:
    """Service layer for reward options and points"""

    def __init__(self, db: Session):
        self.db = db

    def _organization_id(self, user: User) -> str:
        organization_id = get_user_organization_id(self.db, user)
        if not organization_id:
            raise HTTPException(status_code=400, detail="User organization not found")
        return organization_id

    def _ledger(self, client_id: str) -> dict:
        rewards = (
            self.db.query(Reward)
            .filter(Reward.client_id == client_id)
            .order_by(Reward.created_at.desc())
            .all()
        )
        return {"rewards": rewards, "balance": get_balance(self.db, client_id)}

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    def list_options(self, user: User) -> list[RewardOption]:
        organization_id = self._organization_id(user)
        return (
            self.db.query(RewardOption)
            .filter(RewardOption.organization_id == organization_id)
            .order_by(RewardOption.sort_order.asc(), RewardOption.points_cost.asc())
            .all()
        )

    def create_option(self, data: RewardOptionCreate, user: User, request: Optional[Request] = None) -> RewardOption:
        organization_id = self._organization_id(user)
        option = RewardOption(
            organization_id=organization_id,
            name=data.name.strip(),
            description=sanitize_text(data.description),
            points_cost=data.pointsCost,
            category=data.category,
            discount_value=data.discountValue,
            is_active=data.isActive,
            sort_order=data.sortOrder,
        )
        self.db.add(option)
        self.db.commit()
        self.db.refresh(option)

        log_audit_event(
            self.db, user, "create", "reward_option", option.id,
            organization_id=organization_id, changes=data.model_dump(), request=request,
        )
        return option

    # ------------------------------------------------------------------
    # Points ledger
    # ------------------------------------------------------------------

    def my_rewards(self, user: User) -> dict:
        client = get_client_profile(self.db, user)
        return self._ledger(client.id)

    def client_rewards(self, user: User, client_id: str) -> dict:
        client = self.db.query(Client).filter(Client.id == client_id).first()
        if not client or (user.role != "super_admin" and client.organization_id != self._organization_id(user)):
            raise HTTPException(status_code=404, detail="Client not found")
        return self._ledger(client.id)

    def redeem(self, user: User, option_id: str, request: Optional[Request] = None) -> dict:
        client = get_client_profile(self.db, user)

        option = self.db.query(RewardOption).filter(RewardOption.id == option_id).first()
        if not option:
            raise HTTPException(status_code=404, detail="Reward option not found")
        if not option.is_active:
            raise HTTPException(status_code=400, detail="This reward option is no longer available")
        if option.organization_id != client.organization_id:
            raise HTTPException(status_code=403, detail="This reward is not available for your organization")

        if get_balance(self.db, client.id) < option.points_cost:
            raise HTTPException(status_code=400, detail="Insufficient points balance")

        reward = Reward(
            organization_id=client.organization_id,
            client_id=client.id,
            points=-option.points_cost,
            reason=f"Redeemed: {option.name}",
            reference_id=option.id,
            reference_type="reward_option",
        )
        self.db.add(reward)
        self.db.commit()
        self.db.refresh(reward)

        log_audit_event(
            self.db, user, "redeem", "reward", reward.id,
            organization_id=client.organization_id,
            changes={
                "optionId": option.id,
                "optionName": option.name,
                "pointsCost": option.points_cost,
                "discountValue": option.discount_value,
            },
            request=request,
        )
        logger.info(f"🎟️ Client {client.id} redeemed {option.points_cost} points for {option.name}")
        return {"message": "Points redeemed successfully", "reward": reward, "discountValue": option.discount_value}

    def create_reward(self, data: RewardCreate, user: User, request: Optional[Request] = None) -> Reward:
        client = self.db.query(Client).filter(Client.id == data.clientId).first()
        if not client or (user.role != "super_admin" and client.organization_id != self._organization_id(user)):
            raise HTTPException(status_code=404, detail="Client not found")

        reward = Reward(
            organization_id=client.organization_id,
            client_id=client.id,
            points=data.points,
            reason=sanitize_text(data.reason),
            reference_id=data.referenceId,
            reference_type=data.referenceType,
        )
        self.db.add(reward)
        self.db.commit()
        self.db.refresh(reward)

        log_audit_event(
            self.db, user, "create", "reward", reward.id,
            organization_id=client.organization_id, changes=data.model_dump(), request=request,
        )
        return reward
