"""Auth domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from ...models import USER_ROLES


class RegisterRequest(BaseModel):
    """Schema for self-service registration"""

    email: EmailStr
    username: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=8, max_length=128)
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    phone: Optional[str] = None
    role: Optional[str] = None
    organizationSlug: Optional[str] = None
    businessName: Optional[str] = None

    @field_validator("role")
    @classmethod
    def validate_role(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in USER_ROLES:
            raise ValueError(f"role must be one of {', '.join(USER_ROLES)}")
        return v


class LoginRequest(BaseModel):
    email: str
    password: str


class UserResponse(BaseModel):
    """Public view of a user; the password hash is never part of it"""

    id: str
    email: str
    username: str
    firstName: Optional[str] = Field(None, validation_alias="first_name")
    lastName: Optional[str] = Field(None, validation_alias="last_name")
    phone: Optional[str] = None
    role: str
    isActive: bool = Field(True, validation_alias="is_active")
    emailVerified: bool = Field(False, validation_alias="email_verified")
    createdAt: Optional[datetime] = Field(None, validation_alias="created_at")

    class Config:
        from_attributes = True
        populate_by_name = True


class UserEnvelope(BaseModel):
    user: UserResponse
