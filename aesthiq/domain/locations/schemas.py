"""Location schemas"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class LocationCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    slug: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    timezone: str = "America/New_York"
    isDefault: bool = False


class LocationResponse(BaseModel):
    id: str
    organizationId: str = Field(validation_alias="organization_id")
    name: str
    slug: str
    phone: Optional[str] = None
    email: Optional[str] = None
    timezone: Optional[str] = None
    isDefault: bool = Field(False, validation_alias="is_default")
    isActive: bool = Field(True, validation_alias="is_active")
    createdAt: Optional[datetime] = Field(None, validation_alias="created_at")

    class Config:
        from_attributes = True
        populate_by_name = True


class BookingLinkResponse(BaseModel):
    url: str
    slug: str
    qrCode: str
