"""Subscription plan repository"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import SubscriptionPlan


class PlanRepository:
    """Repository for subscription plan database operations"""

    @staticmethod
    def list_plans(db: Session, active_only: bool = False) -> list[SubscriptionPlan]:
        query = db.query(SubscriptionPlan)
        if active_only:
            query = query.filter(SubscriptionPlan.is_active.is_(True))
        return query.order_by(SubscriptionPlan.monthly_price.asc()).all()

    @staticmethod
    def get_by_id(db: Session, plan_id: str) -> Optional[SubscriptionPlan]:
        return db.query(SubscriptionPlan).filter(SubscriptionPlan.id == plan_id).first()

    @staticmethod
    def get_default_plan(db: Session) -> Optional[SubscriptionPlan]:
        """Plan given to newly registered clinics: enterprise, else the first plan"""
        enterprise = db.query(SubscriptionPlan).filter(SubscriptionPlan.tier == "enterprise").first()
        if enterprise:
            return enterprise
        return db.query(SubscriptionPlan).order_by(SubscriptionPlan.created_at.asc()).first()

    @staticmethod
    def create(db: Session, **data) -> SubscriptionPlan:
        plan = SubscriptionPlan(**data)
        db.add(plan)
        db.commit()
        db.refresh(plan)
        return plan
