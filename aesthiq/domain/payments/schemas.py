"""Appointment payment schemas"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from ..appointments.schemas import AppointmentResponse, TimeRange

PAYMENT_TYPES = ("full", "deposit")


class ClientInfo(BaseModel):
    """Who is booking, for guests without an account"""

    firstName: str = Field(min_length=1, max_length=255)
    lastName: str = Field(min_length=1, max_length=255)
    email: EmailStr
    phone: Optional[str] = None


class BookWithPayment(TimeRange):
    serviceId: str
    locationId: str
    staffId: str
    paymentType: str = "full"
    notes: Optional[str] = None
    clientInfo: Optional[ClientInfo] = None

    @field_validator("paymentType")
    @classmethod
    def validate_payment_type(cls, v: str) -> str:
        if v not in PAYMENT_TYPES:
            raise ValueError(f"paymentType must be one of {', '.join(PAYMENT_TYPES)}")
        return v


class BookWithPaymentResponse(BaseModel):
    appointmentId: str
    clientSecret: Optional[str] = None
    paymentAmount: float
    paymentType: str


class FinalizePayment(BaseModel):
    appointmentId: Optional[str] = None
    paymentIntentId: Optional[str] = None


class FinalizePaymentResponse(BaseModel):
    success: bool
    appointment: AppointmentResponse


class BalanceCharge(BaseModel):
    finalTotal: float = Field(gt=0)


class BalanceChargeResponse(BaseModel):
    message: str
    finalTotal: float
    remainingBalance: float
    paymentIntentId: str
    clientSecret: Optional[str] = None


class TransactionResponse(BaseModel):
    id: str
    organizationId: str = Field(validation_alias="organization_id")
    clientId: str = Field(validation_alias="client_id")
    appointmentId: Optional[str] = Field(None, validation_alias="appointment_id")
    amount: float
    type: str
    status: str
    stripePaymentIntentId: Optional[str] = Field(None, validation_alias="stripe_payment_intent_id")
    description: Optional[str] = None
    createdAt: Optional[datetime] = Field(None, validation_alias="created_at")

    class Config:
        from_attributes = True
        populate_by_name = True


class PaymentSummary(BaseModel):
    totalAmount: Optional[float] = None
    totalPaid: float
    remainingBalance: float
    depositPaid: Optional[float] = None


class TransactionsResponse(BaseModel):
    transactions: list[TransactionResponse]
    summary: PaymentSummary
