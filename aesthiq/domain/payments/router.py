"""Appointment payment router - online booking with payment and balance charges"""

from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from ...auth import get_current_user, get_optional_user, require_roles
from ...database import get_db
from ...models import User
from ..appointments.schemas import AppointmentResponse
from ..stripe_connect.stripe_service import StripeService, get_stripe_service
from .schemas import (
    BalanceCharge,
    BalanceChargeResponse,
    BookWithPayment,
    BookWithPaymentResponse,
    FinalizePayment,
    FinalizePaymentResponse,
    TransactionsResponse,
)
from .service import PaymentService

router = APIRouter(prefix="/api/appointments", tags=["Payments"])


def get_payment_service(
    db: Session = Depends(get_db),
    stripe_service: StripeService = Depends(get_stripe_service),
) -> PaymentService:
    """Dependency injection for PaymentService"""
    return PaymentService(db, stripe_service)


@router.post("/book-with-payment", response_model=BookWithPaymentResponse)
async def book_with_payment(
    data: BookWithPayment,
    request: Request,
    user: Optional[User] = Depends(get_optional_user),
    service: PaymentService = Depends(get_payment_service),
):
    """
    Book an appointment and start its payment. Signed-in patients book as
    themselves; guests pass clientInfo.
    """
    return service.book_with_payment(data, user, request)


@router.post("/finalize-payment", response_model=FinalizePaymentResponse)
async def finalize_payment(
    data: FinalizePayment,
    service: PaymentService = Depends(get_payment_service),
):
    appointment = service.finalize_payment(data)
    return {"success": True, "appointment": AppointmentResponse.from_appointment(appointment)}


@router.post("/{appointment_id}/finalize-payment", response_model=BalanceChargeResponse)
async def charge_balance(
    appointment_id: str,
    data: BalanceCharge,
    request: Request,
    user: User = Depends(require_roles("clinic_admin", "staff", "super_admin")),
    service: PaymentService = Depends(get_payment_service),
):
    return service.charge_balance(appointment_id, data, user, request)


@router.get("/{appointment_id}/transactions", response_model=TransactionsResponse)
async def list_transactions(
    appointment_id: str,
    user: User = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    return service.list_transactions(appointment_id, user)
