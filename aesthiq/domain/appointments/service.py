"""
Appointment service - booking, calendar queries and staff availability.
"""

import logging
from datetime import date, datetime, time, timedelta
from typing import Optional

from fastapi import HTTPException, Request
from sqlalchemy.orm import Session, joinedload

from ...audit import log_audit_event
from ...auth import get_user_organization_id, resolve_organization_id
from ...models import Appointment, Client, Location, Service, Staff, User
from ...security_utils import sanitize_text
from .schemas import AppointmentCreate

logger = logging.getLogger(__name__)

BUSINESS_DAY_START = time(9, 0)
BUSINESS_DAY_END = time(18, 0)
SLOT_MINUTES = 30


def _parse_date(value: str, field: str) -> date:
    try:
        return date.fromisoformat(value[:10])
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Invalid {field}") from e


def build_slots(day: date, staff_id: str, appointments: list) -> list[dict]:
    """30-minute slots across the business day; a slot is taken when any booking overlaps it"""
    slots = []
    cursor = datetime.combine(day, BUSINESS_DAY_START)
    end_of_day = datetime.combine(day, BUSINESS_DAY_END)
    step = timedelta(minutes=SLOT_MINUTES)

    while cursor < end_of_day:
        slot_end = cursor + step
        taken = any(a.start_time < slot_end and a.end_time > cursor for a in appointments)
        slots.append({"time": cursor.strftime("%H:%M"), "available": not taken, "staffId": staff_id})
        cursor = slot_end
    return slots


class AppointmentService:
    """Service layer for appointment operations"""

    def __init__(self, db: Session):
        self.db = db

    def _base_query(self):
        return self.db.query(Appointment).options(
            joinedload(Appointment.service),
            joinedload(Appointment.staff).joinedload(Staff.user),
            joinedload(Appointment.client),
        )

    def list_appointments(
        self,
        user: User,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        organization_id: Optional[str] = None,
    ) -> list[Appointment]:
        organization_id = resolve_organization_id(self.db, user, organization_id)
        query = self._base_query().filter(Appointment.organization_id == organization_id)

        # Calendar ranges are whole days
        if start_date:
            start = datetime.combine(_parse_date(start_date, "startDate"), time.min)
            query = query.filter(Appointment.start_time >= start)
        if end_date:
            end = datetime.combine(_parse_date(end_date, "endDate"), time.max)
            query = query.filter(Appointment.start_time <= end)

        return query.order_by(Appointment.start_time.asc()).all()

    def get(self, appointment_id: str) -> Optional[Appointment]:
        return self._base_query().filter(Appointment.id == appointment_id).first()

    def has_conflict(self, staff_id: str, start: datetime, end: datetime) -> bool:
        return (
            self.db.query(Appointment.id)
            .filter(
                Appointment.staff_id == staff_id,
                Appointment.status != "canceled",
                Appointment.start_time < end,
                Appointment.end_time > start,
            )
            .first()
            is not None
        )

    def _check_belongs(self, model, record_id: str, organization_id: str, label: str):
        record = self.db.query(model).filter(model.id == record_id).first()
        if not record or record.organization_id != organization_id:
            raise HTTPException(status_code=404, detail=f"{label} not found")
        return record

    def create_appointment(
        self, data: AppointmentCreate, user: User, request: Optional[Request] = None
    ) -> Appointment:
        organization_id = resolve_organization_id(self.db, user, data.organizationId)

        self._check_belongs(Location, data.locationId, organization_id, "Location")
        self._check_belongs(Client, data.clientId, organization_id, "Client")
        self._check_belongs(Staff, data.staffId, organization_id, "Staff member")
        service = self._check_belongs(Service, data.serviceId, organization_id, "Service")

        start, end = data.startTime, data.endTime

        if self.has_conflict(data.staffId, start, end):
            logger.info(f"⛔ Booking conflict for staff {data.staffId} at {start.isoformat()}")
            raise HTTPException(status_code=409, detail="Appointment time conflicts with existing booking")

        appointment = Appointment(
            organization_id=organization_id,
            location_id=data.locationId,
            client_id=data.clientId,
            staff_id=data.staffId,
            service_id=data.serviceId,
            start_time=start,
            end_time=end,
            status=data.status,
            notes=sanitize_text(data.notes),
            total_amount=data.totalAmount if data.totalAmount is not None else service.price,
        )
        self.db.add(appointment)
        self.db.commit()

        log_audit_event(
            self.db, user, "create", "appointment", appointment.id,
            organization_id=organization_id,
            changes=data.model_dump(mode="json"),
            request=request,
        )
        logger.info(f"📅 Appointment {appointment.id} booked for {start.isoformat()}")
        return self.get(appointment.id)

    def get_availability(self, user: User, staff_id: str, day: Optional[str]) -> dict:
        if not day:
            raise HTTPException(status_code=400, detail="Date parameter is required")
        target = _parse_date(day, "date")

        staff = self.db.query(Staff).filter(Staff.id == staff_id).first()
        if not staff:
            raise HTTPException(status_code=404, detail="Staff member not found")

        if user.role != "super_admin" and staff.organization_id != get_user_organization_id(self.db, user):
            raise HTTPException(status_code=403, detail="Staff not accessible")

        day_start = datetime.combine(target, time.min)
        day_end = day_start + timedelta(days=1)
        appointments = (
            self.db.query(Appointment)
            .filter(
                Appointment.staff_id == staff_id,
                Appointment.status != "canceled",
                Appointment.start_time < day_end,
                Appointment.end_time > day_start,
            )
            .all()
        )

        return {"date": target.isoformat(), "slots": build_slots(target, staff_id, appointments)}
