"""Organization domain schemas"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from ...security_utils import slugify


class OrganizationCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    slug: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    website: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    subscriptionPlanId: Optional[str] = None
    whiteLabelSettings: Optional[dict[str, Any]] = None
    isActive: bool = True

    @field_validator("slug")
    @classmethod
    def validate_slug(cls, v: str) -> str:
        slug = slugify(v)
        if not slug:
            raise ValueError("slug must contain letters or digits")
        return slug


class OrganizationResponse(BaseModel):
    id: str
    name: str
    slug: str
    description: Optional[str] = None
    website: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    subscriptionPlanId: Optional[str] = Field(None, validation_alias="subscription_plan_id")
    subscriptionStatus: Optional[str] = Field(None, validation_alias="subscription_status")
    trialEndsAt: Optional[datetime] = Field(None, validation_alias="trial_ends_at")
    stripeConnectAccountId: Optional[str] = Field(None, validation_alias="stripe_connect_account_id")
    stripeAccountStatus: Optional[str] = Field(None, validation_alias="stripe_account_status")
    payoutsEnabled: bool = Field(False, validation_alias="payouts_enabled")
    capabilitiesTransfers: Optional[str] = Field(None, validation_alias="capabilities_transfers")
    hasExternalAccount: bool = Field(False, validation_alias="has_external_account")
    businessFeaturesEnabled: bool = Field(False, validation_alias="business_features_enabled")
    whiteLabelSettings: Optional[dict[str, Any]] = Field(None, validation_alias="white_label_settings")
    isActive: bool = Field(True, validation_alias="is_active")
    createdAt: Optional[datetime] = Field(None, validation_alias="created_at")

    class Config:
        from_attributes = True
        populate_by_name = True


class PublicOrganizationResponse(BaseModel):
    """Only what a white-label sign-up page needs"""

    id: str
    name: str
    slug: str
    whiteLabelSettings: Optional[dict[str, Any]] = Field(None, validation_alias="white_label_settings")
    isActive: bool = Field(True, validation_alias="is_active")

    class Config:
        from_attributes = True
        populate_by_name = True
