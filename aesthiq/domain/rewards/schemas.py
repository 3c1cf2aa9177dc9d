"""Reward catalog and points ledger schemas"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class RewardOptionCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    pointsCost: int = Field(gt=0)
    category: str = Field(min_length=1, max_length=100)
    discountValue: Optional[float] = Field(None, ge=0)
    isActive: bool = True
    sortOrder: int = 0


class RewardOptionResponse(BaseModel):
    id: str
    organizationId: str = Field(validation_alias="organization_id")
    name: str
    description: Optional[str] = None
    pointsCost: int = Field(validation_alias="points_cost")
    category: str
    discountValue: Optional[float] = Field(None, validation_alias="discount_value")
    isActive: bool = Field(True, validation_alias="is_active")
    sortOrder: int = Field(0, validation_alias="sort_order")
    createdAt: Optional[datetime] = Field(None, validation_alias="created_at")

    class Config:
        from_attributes = True
        populate_by_name = True


class RewardCreate(BaseModel):
    """A manual points adjustment made by clinic staff"""

    clientId: str
    points: int
    reason: str = Field(min_length=1, max_length=255)
    referenceId: Optional[str] = None
    referenceType: Optional[str] = Field(None, max_length=30)

    @field_validator("points")
    @classmethod
    def validate_points(cls, v: int) -> int:
        if v == 0:
            raise ValueError("points must not be zero")
        return v


class RedeemRequest(BaseModel):
    optionId: str


class RewardResponse(BaseModel):
    id: str
    organizationId: str = Field(validation_alias="organization_id")
    clientId: str = Field(validation_alias="client_id")
    points: int
    reason: Optional[str] = None
    referenceId: Optional[str] = Field(None, validation_alias="reference_id")
    referenceType: Optional[str] = Field(None, validation_alias="reference_type")
    createdAt: Optional[datetime] = Field(None, validation_alias="created_at")

    class Config:
        from_attributes = True
        populate_by_name = True


class RewardLedgerResponse(BaseModel):
    rewards: list[RewardResponse]
    balance: int


class RedeemResponse(BaseModel):
    message: str
    reward: RewardResponse
    discountValue: Optional[float] = None
