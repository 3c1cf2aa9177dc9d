"""Staff and client schemas"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from ...models import STAFF_ROLES


class StaffCreate(BaseModel):
    """A clinic admin invites a team member; an account is created for them"""

    email: EmailStr
    firstName: str = Field(min_length=1, max_length=255)
    lastName: str = Field(min_length=1, max_length=255)
    phone: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = Field(None, min_length=8, max_length=128)
    role: str = "provider"
    title: Optional[str] = None
    bio: Optional[str] = None
    canBookOnline: bool = True
    organizationId: Optional[str] = None  # super admin only

    @field_validator("role")
    @classmethod
    def validate_role(cls, v: str) -> str:
        if v not in STAFF_ROLES:
            raise ValueError(f"role must be one of {', '.join(STAFF_ROLES)}")
        return v


class StaffResponse(BaseModel):
    id: str
    userId: str
    organizationId: str
    role: str
    title: Optional[str] = None
    bio: Optional[str] = None
    canBookOnline: bool = True
    isActive: bool = True
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    email: Optional[str] = None

    @classmethod
    def from_staff(cls, staff) -> "StaffResponse":
        user = staff.user
        return cls(
            id=staff.id,
            userId=staff.user_id,
            organizationId=staff.organization_id,
            role=staff.role,
            title=staff.title,
            bio=staff.bio,
            canBookOnline=bool(staff.can_book_online),
            isActive=bool(staff.is_active),
            firstName=user.first_name if user else None,
            lastName=user.last_name if user else None,
            email=user.email if user else None,
        )


class ClientCreate(BaseModel):
    firstName: str = Field(min_length=1, max_length=255)
    lastName: str = Field(min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    notes: Optional[str] = None
    organizationId: Optional[str] = None  # super admin only


class ClientResponse(BaseModel):
    id: str
    userId: Optional[str] = Field(None, validation_alias="user_id")
    organizationId: str = Field(validation_alias="organization_id")
    firstName: str = Field(validation_alias="first_name")
    lastName: str = Field(validation_alias="last_name")
    email: Optional[str] = None
    phone: Optional[str] = None
    notes: Optional[str] = None
    status: Optional[str] = None
    isActive: bool = Field(True, validation_alias="is_active")
    createdAt: Optional[datetime] = Field(None, validation_alias="created_at")

    class Config:
        from_attributes = True
        populate_by_name = True


class PatientInvite(BaseModel):
    email: EmailStr
    firstName: str = Field(min_length=1, max_length=255)
    lastName: str = Field(min_length=1, max_length=255)
    phone: Optional[str] = None


class InvitedClient(BaseModel):
    id: str
    firstName: str = Field(validation_alias="first_name")
    lastName: str = Field(validation_alias="last_name")
    email: Optional[str] = None
    status: Optional[str] = None

    class Config:
        from_attributes = True
        populate_by_name = True


class PatientInviteResponse(BaseModel):
    success: bool
    message: str
    invitationLink: str
    emailSent: bool
    client: InvitedClient
