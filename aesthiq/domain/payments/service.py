"""
Payment service - appointments paid online through the clinic's Stripe account.

A booking creates the appointment and a pending transaction together with a
PaymentIntent on the connected account. The appointment is confirmed once
the PaymentIntent succeeds, either through finalize-payment or the webhook.
"""

import logging
from typing import Optional

from fastapi import HTTPException, Request
from sqlalchemy.orm import Session

from ...audit import log_audit_event
from ...auth import get_user_organization_id
from ...models import Appointment, Client, Location, Organization, Service, Staff, Transaction, User
from ...security_utils import sanitize_text
from ..appointments.service import AppointmentService
from ..people.service import get_client_profile
from ..rewards.service import award_points, calculate_reward_points
from ..stripe_connect.stripe_service import StripeService
from .schemas import BalanceCharge, BookWithPayment, FinalizePayment

logger = logging.getLogger(__name__)

# Transactions that pay for the booking itself, as opposed to a later balance charge
INITIAL_PAYMENT_TYPES = ("appointment_deposit", "appointment_full")


def complete_transaction(db: Session, transaction: Transaction, amount_paid: Optional[float] = None) -> None:
    """
    Mark a transaction paid, confirm its appointment and award points.
    Does not commit. Completing an already completed transaction is a no-op.
    """
    if transaction.status == "completed":
        return

    transaction.status = "completed"
    if amount_paid is not None:
        transaction.amount = amount_paid

    appointment = None
    if transaction.appointment_id:
        appointment = db.query(Appointment).filter(Appointment.id == transaction.appointment_id).first()
    if appointment:
        if transaction.type in INITIAL_PAYMENT_TYPES:
            appointment.deposit_paid = transaction.amount
        if appointment.status == "scheduled":
            appointment.status = "confirmed"

    client = db.query(Client).filter(Client.id == transaction.client_id).first()
    if client:
        service_name = appointment.service.name if appointment and appointment.service else "appointment"
        points = calculate_reward_points(db, client.id, transaction.amount)
        award_points(
            db,
            client,
            points,
            f"Service payment: {service_name}",
            reference_id=transaction.id,
            reference_type="payment",
        )
    logger.info(f"✅ Transaction {transaction.id} completed (${transaction.amount:.2f})")


def record_payment_outcome(
    db: Session, payment_intent_id: str, succeeded: bool, amount: Optional[float] = None
) -> Optional[Transaction]:
    """Apply a payment_intent webhook to the matching transaction"""
    transaction = (
        db.query(Transaction).filter(Transaction.stripe_payment_intent_id == payment_intent_id).first()
    )
    if not transaction:
        logger.debug(f"No transaction for PaymentIntent {payment_intent_id}")
        return None

    if succeeded:
        complete_transaction(db, transaction, amount)
    elif transaction.status == "pending":
        transaction.status = "failed"
        logger.warning(f"⚠️ Payment failed for transaction {transaction.id}")
    db.commit()
    return transaction


class PaymentService:
    """Service layer for appointment payments"""

    def __init__(self, db: Session, stripe_service: StripeService):
        self.db = db
        self.stripe = stripe_service

    def _connect_account(self, organization_id: str) -> str:
        organization = self.db.query(Organization).filter(Organization.id == organization_id).first()
        account_id = organization.stripe_connect_account_id if organization else None
        if not account_id:
            raise HTTPException(status_code=400, detail="This clinic is not accepting online payments yet")
        return account_id

    def _booking_client(self, data: BookWithPayment, user: Optional[User], organization_id: str) -> Client:
        if user and user.role == "patient":
            client = get_client_profile(self.db, user)
            if client.organization_id != organization_id:
                raise HTTPException(status_code=403, detail="This service is not offered by your clinic")
            return client

        info = data.clientInfo
        if not info:
            raise HTTPException(status_code=400, detail="Client information required for public booking")

        email = info.email.lower()
        client = (
            self.db.query(Client)
            .filter(Client.organization_id == organization_id, Client.email == email)
            .first()
        )
        if client:
            return client

        client = Client(
            organization_id=organization_id,
            first_name=info.firstName.strip(),
            last_name=info.lastName.strip(),
            email=email,
            phone=info.phone,
        )
        self.db.add(client)
        self.db.flush()
        logger.info(f"👤 Created client {client.id} from public booking")
        return client

    def _ensure_customer(self, client: Client, account_id: str) -> str:
        if not client.stripe_customer_id:
            customer = self.stripe.create_customer(
                email=client.email,
                name=f"{client.first_name} {client.last_name}".strip(),
                organization_id=client.organization_id,
                stripe_account=account_id,
                metadata={"clientId": client.id},
            )
            client.stripe_customer_id = customer["id"]
        return client.stripe_customer_id

    def book_with_payment(
        self, data: BookWithPayment, user: Optional[User] = None, request: Optional[Request] = None
    ) -> dict:
        service = self.db.query(Service).filter(Service.id == data.serviceId).first()
        if not service or not service.is_active:
            raise HTTPException(status_code=404, detail="Service not found")
        organization_id = service.organization_id

        location = self.db.query(Location).filter(Location.id == data.locationId).first()
        if (
            not location
            or location.organization_id != organization_id
            or (service.location_id and service.location_id != location.id)
        ):
            raise HTTPException(status_code=400, detail="Invalid location for this service")

        staff = self.db.query(Staff).filter(Staff.id == data.staffId).first()
        if not staff or staff.organization_id != organization_id or not staff.is_active:
            raise HTTPException(status_code=404, detail="Staff member not found")

        account_id = self._connect_account(organization_id)
        if not service.price:
            raise HTTPException(status_code=400, detail="This service has no price set for online payment")

        client = self._booking_client(data, user, organization_id)

        start, end = data.startTime, data.endTime
        if AppointmentService(self.db).has_conflict(staff.id, start, end):
            self.db.rollback()
            raise HTTPException(status_code=409, detail="Appointment time conflicts with existing booking")

        deposit = data.paymentType == "deposit" and service.deposit_required and service.deposit_amount
        amount = service.deposit_amount if deposit else service.price
        transaction_type = "appointment_deposit" if deposit else "appointment_full"

        appointment = Appointment(
            organization_id=organization_id,
            location_id=location.id,
            client_id=client.id,
            staff_id=staff.id,
            service_id=service.id,
            start_time=start,
            end_time=end,
            status="scheduled",
            notes=sanitize_text(data.notes),
            total_amount=service.price,
        )
        self.db.add(appointment)
        self.db.flush()

        try:
            customer_id = self._ensure_customer(client, account_id)
            intent = self.stripe.create_payment_intent(
                amount,
                customer_id=customer_id,
                stripe_account=account_id,
                metadata={
                    "appointmentId": appointment.id,
                    "clientId": client.id,
                    "serviceId": service.id,
                    "paymentType": transaction_type,
                },
            )
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Payment booking failed for service {service.id}: {str(e)}")
            raise HTTPException(status_code=500, detail="Failed to create appointment with payment") from e

        transaction = Transaction(
            organization_id=organization_id,
            client_id=client.id,
            appointment_id=appointment.id,
            amount=amount,
            type=transaction_type,
            status="pending",
            stripe_payment_intent_id=intent["id"],
            description=f"{'Deposit' if deposit else 'Payment'} for {service.name}",
        )
        self.db.add(transaction)
        self.db.commit()

        if user:
            log_audit_event(
                self.db, user, "create", "appointment", appointment.id,
                organization_id=organization_id,
                changes={"serviceId": service.id, "paymentType": transaction_type, "amount": amount},
                request=request,
            )
        logger.info(f"💳 Appointment {appointment.id} awaiting {transaction_type} of ${amount:.2f}")
        return {
            "appointmentId": appointment.id,
            "clientSecret": intent.get("client_secret"),
            "paymentAmount": amount,
            "paymentType": transaction_type,
        }

    def finalize_payment(self, data: FinalizePayment) -> Appointment:
        if not data.appointmentId or not data.paymentIntentId:
            raise HTTPException(status_code=400, detail="Appointment ID and Payment Intent ID required")

        appointment = self.db.query(Appointment).filter(Appointment.id == data.appointmentId).first()
        if not appointment:
            raise HTTPException(status_code=404, detail="Appointment not found")

        transaction = (
            self.db.query(Transaction)
            .filter(
                Transaction.appointment_id == appointment.id,
                Transaction.stripe_payment_intent_id == data.paymentIntentId,
            )
            .first()
        )
        if not transaction:
            raise HTTPException(status_code=400, detail="Payment does not match this appointment")

        account_id = self._connect_account(appointment.organization_id)
        intent = self.stripe.retrieve_payment_intent(data.paymentIntentId, stripe_account=account_id)
        if intent.get("status") != "succeeded":
            raise HTTPException(status_code=400, detail="Payment not confirmed")

        complete_transaction(self.db, transaction)
        self.db.commit()
        return AppointmentService(self.db).get(appointment.id)

    def _accessible_appointment(self, appointment_id: str, user: User) -> Appointment:
        appointment = self.db.query(Appointment).filter(Appointment.id == appointment_id).first()
        if not appointment:
            raise HTTPException(status_code=404, detail="Appointment not found")
        if user.role == "super_admin":
            return appointment
        if user.role == "patient":
            client = get_client_profile(self.db, user)
            allowed = appointment.client_id == client.id
        else:
            allowed = appointment.organization_id == get_user_organization_id(self.db, user)
        if not allowed:
            raise HTTPException(status_code=403, detail="Access denied")
        return appointment

    def _paid(self, appointment_id: str) -> float:
        completed = (
            self.db.query(Transaction)
            .filter(Transaction.appointment_id == appointment_id, Transaction.status == "completed")
            .all()
        )
        return sum(t.amount for t in completed)

    def charge_balance(
        self, appointment_id: str, data: BalanceCharge, user: User, request: Optional[Request] = None
    ) -> dict:
        """Charge what is left after the deposit, against the final total of the visit"""
        appointment = self._accessible_appointment(appointment_id, user)
        client = self.db.query(Client).filter(Client.id == appointment.client_id).first()
        if not client or not client.stripe_customer_id:
            raise HTTPException(status_code=400, detail="Client payment method not found")

        remaining = round(data.finalTotal - self._paid(appointment.id), 2)
        if remaining <= 0:
            raise HTTPException(status_code=400, detail="No remaining balance to charge")

        account_id = self._connect_account(appointment.organization_id)
        try:
            intent = self.stripe.create_payment_intent(
                remaining,
                customer_id=client.stripe_customer_id,
                stripe_account=account_id,
                metadata={
                    "appointmentId": appointment.id,
                    "clientId": client.id,
                    "paymentType": "appointment_balance",
                },
            )
        except Exception as e:
            logger.error(f"❌ Balance charge failed for appointment {appointment.id}: {str(e)}")
            raise HTTPException(status_code=500, detail="Failed to finalize payment") from e

        appointment.total_amount = data.finalTotal
        self.db.add(
            Transaction(
                organization_id=appointment.organization_id,
                client_id=client.id,
                appointment_id=appointment.id,
                amount=remaining,
                type="appointment_balance",
                status="pending",
                stripe_payment_intent_id=intent["id"],
                description="Remaining balance for appointment",
            )
        )
        self.db.commit()

        log_audit_event(
            self.db, user, "finalize_payment", "appointment", appointment.id,
            organization_id=appointment.organization_id,
            changes={"finalTotal": data.finalTotal, "remainingBalance": remaining},
            request=request,
        )
        return {
            "message": "Balance payment created",
            "finalTotal": data.finalTotal,
            "remainingBalance": remaining,
            "paymentIntentId": intent["id"],
            "clientSecret": intent.get("client_secret"),
        }

    def list_transactions(self, appointment_id: str, user: User) -> dict:
        appointment = self._accessible_appointment(appointment_id, user)
        transactions = (
            self.db.query(Transaction)
            .filter(Transaction.appointment_id == appointment.id)
            .order_by(Transaction.created_at.asc())
            .all()
        )
        total_paid = sum(t.amount for t in transactions if t.status == "completed")
        total = appointment.total_amount
        return {
            "transactions": transactions,
            "summary": {
                "totalAmount": total,
                "totalPaid": total_paid,
                "remainingBalance": max(round((total or 0) - total_paid, 2), 0),
                "depositPaid": appointment.deposit_paid,
            },
        }
