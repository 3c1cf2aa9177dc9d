"""Membership tier and patient membership schemas"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from ...models import BILLING_CYCLES


class MembershipTierCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    monthlyPrice: float = Field(gt=0)
    yearlyPrice: Optional[float] = Field(None, gt=0)
    benefits: Optional[list[Any]] = None
    discountPercentage: Optional[float] = Field(None, ge=0, le=100)
    isActive: bool = True
    sortOrder: int = 0


class MembershipTierUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    benefits: Optional[list[Any]] = None
    discountPercentage: Optional[float] = Field(None, ge=0, le=100)
    isActive: Optional[bool] = None
    sortOrder: Optional[int] = None


class MembershipTierResponse(BaseModel):
    id: str
    organizationId: str = Field(validation_alias="organization_id")
    name: str
    description: Optional[str] = None
    monthlyPrice: float = Field(validation_alias="monthly_price")
    yearlyPrice: Optional[float] = Field(None, validation_alias="yearly_price")
    benefits: Optional[list[Any]] = None
    discountPercentage: Optional[float] = Field(None, validation_alias="discount_percentage")
    stripeProductId: Optional[str] = Field(None, validation_alias="stripe_product_id")
    stripePriceIdMonthly: Optional[str] = Field(None, validation_alias="stripe_price_id_monthly")
    stripePriceIdYearly: Optional[str] = Field(None, validation_alias="stripe_price_id_yearly")
    isActive: bool = Field(True, validation_alias="is_active")
    sortOrder: int = Field(0, validation_alias="sort_order")
    createdAt: Optional[datetime] = Field(None, validation_alias="created_at")

    class Config:
        from_attributes = True
        populate_by_name = True


class MembershipUpgrade(BaseModel):
    tierId: str  # tier id, or its name
    billingCycle: str = "monthly"

    @field_validator("billingCycle")
    @classmethod
    def validate_billing_cycle(cls, v: str) -> str:
        if v not in BILLING_CYCLES:
            raise ValueError(f"billingCycle must be one of {', '.join(BILLING_CYCLES)}")
        return v


class MembershipResponse(BaseModel):
    id: str
    organizationId: str = Field(validation_alias="organization_id")
    clientId: str = Field(validation_alias="client_id")
    tierId: Optional[str] = Field(None, validation_alias="tier_id")
    tierName: str = Field(validation_alias="tier_name")
    billingCycle: Optional[str] = Field(None, validation_alias="billing_cycle")
    monthlyFee: float = Field(validation_alias="monthly_fee")
    status: str
    startDate: Optional[datetime] = Field(None, validation_alias="start_date")
    endDate: Optional[datetime] = Field(None, validation_alias="end_date")
    stripeSubscriptionId: Optional[str] = Field(None, validation_alias="stripe_subscription_id")
    createdAt: Optional[datetime] = Field(None, validation_alias="created_at")

    class Config:
        from_attributes = True
        populate_by_name = True


class MyMembershipResponse(BaseModel):
    membership: Optional[MembershipResponse] = None


class MembershipUpgradeResponse(BaseModel):
    membership: MembershipResponse
    clientSecret: Optional[str] = None
    subscriptionId: Optional[str] = None
    requiresPayment: bool
