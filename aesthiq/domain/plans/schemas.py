"""Subscription plan schemas"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from ...models import PLAN_TIERS


class PlanCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    tier: str
    description: Optional[str] = None
    monthlyPrice: float = Field(ge=0)
    yearlyPrice: Optional[float] = Field(None, ge=0)
    maxLocations: Optional[int] = None
    maxStaff: Optional[int] = None
    maxClients: Optional[int] = None
    features: list[str] = []
    limits: Optional[dict[str, Any]] = None
    isActive: bool = True

    @field_validator("tier")
    @classmethod
    def validate_tier(cls, v: str) -> str:
        if v not in PLAN_TIERS:
            raise ValueError(f"tier must be one of {', '.join(PLAN_TIERS)}")
        return v


class PlanResponse(BaseModel):
    id: str
    name: str
    tier: str
    description: Optional[str] = None
    monthlyPrice: float = Field(validation_alias="monthly_price")
    yearlyPrice: Optional[float] = Field(None, validation_alias="yearly_price")
    stripePriceIdMonthly: Optional[str] = Field(None, validation_alias="stripe_price_id_monthly")
    stripePriceIdYearly: Optional[str] = Field(None, validation_alias="stripe_price_id_yearly")
    maxLocations: Optional[int] = Field(None, validation_alias="max_locations")
    maxStaff: Optional[int] = Field(None, validation_alias="max_staff")
    maxClients: Optional[int] = Field(None, validation_alias="max_clients")
    features: Optional[list[str]] = None
    limits: Optional[dict[str, Any]] = None
    isActive: bool = Field(True, validation_alias="is_active")
    createdAt: Optional[datetime] = Field(None, validation_alias="created_at")

    class Config:
        from_attributes = True
        populate_by_name = True


class SetupPlansResponse(BaseModel):
    message: str
    plans: list[PlanResponse]


class SubscribeRequest(BaseModel):
    planId: str
    billingCycle: str
    paymentMethodId: Optional[str] = None

    @field_validator("billingCycle")
    @classmethod
    def validate_cycle(cls, v: str) -> str:
        if v not in {"monthly", "yearly"}:
            raise ValueError("billingCycle must be 'monthly' or 'yearly'")
        return v


class SubscribeResponse(BaseModel):
    message: str
    subscriptionId: str
    status: str
    trial: bool
    trialEndsAt: datetime
