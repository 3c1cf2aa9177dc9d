"""Treatment catalog schemas"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, model_validator


class ServiceCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = None
    duration: int = Field(gt=0, le=24 * 60)  # minutes
    price: Optional[float] = Field(None, ge=0)
    depositRequired: bool = False
    depositAmount: Optional[float] = Field(None, ge=0)
    locationId: Optional[str] = None
    isActive: bool = True

    @model_validator(mode="after")
    def check_deposit(self):
        if self.depositRequired and self.price is not None and self.depositAmount is not None:
            if self.depositAmount > self.price:
                raise ValueError("depositAmount cannot exceed price")
        return self


class ServiceUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = None
    duration: Optional[int] = Field(None, gt=0, le=24 * 60)
    price: Optional[float] = Field(None, ge=0)
    depositRequired: Optional[bool] = None
    depositAmount: Optional[float] = Field(None, ge=0)
    locationId: Optional[str] = None
    isActive: Optional[bool] = None


class ServiceResponse(BaseModel):
    id: str
    organizationId: str = Field(validation_alias="organization_id")
    locationId: Optional[str] = Field(None, validation_alias="location_id")
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    duration: int
    price: Optional[float] = None
    depositRequired: bool = Field(False, validation_alias="deposit_required")
    depositAmount: Optional[float] = Field(None, validation_alias="deposit_amount")
    stripeProductId: Optional[str] = Field(None, validation_alias="stripe_product_id")
    stripePriceId: Optional[str] = Field(None, validation_alias="stripe_price_id")
    stripeDepositPriceId: Optional[str] = Field(None, validation_alias="stripe_deposit_price_id")
    isActive: bool = Field(True, validation_alias="is_active")
    createdAt: Optional[datetime] = Field(None, validation_alias="created_at")

    class Config:
        from_attributes = True
        populate_by_name = True
