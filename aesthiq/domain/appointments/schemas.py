from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ...models import APPOINTMENT_STATUSES


def to_naive_utc(value: datetime) -> datetime:
    """Stored times are naive UTC; offsets are converted, naive input is taken as UTC"""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class TimeRange(BaseModel):
    startTime: datetime
    endTime: datetime

    @field_validator("startTime", "endTime")
    @classmethod
    def normalize_timezone(cls, v: datetime) -> datetime:
        return to_naive_utc(v)

    @model_validator(mode="after")
    def validate_time_range(self):
        if self.endTime <= self.startTime:
            raise ValueError("End time must be after start time")
        return self


class AppointmentCreate(TimeRange):
    locationId: str
    clientId: str
    staffId: str
    serviceId: str
    status: str = "scheduled"
    notes: Optional[str] = None
    totalAmount: Optional[float] = Field(None, ge=0)
    organizationId: Optional[str] = None  # super admin only

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: str) -> str:
        if v not in APPOINTMENT_STATUSES:
            raise ValueError(f"status must be one of {', '.join(APPOINTMENT_STATUSES)}")
        return v


class AppointmentResponse(BaseModel):
    id: str
    organizationId: str
    locationId: str
    clientId: str
    staffId: str
    serviceId: str
    startTime: datetime
    endTime: datetime
    status: str
    notes: Optional[str] = None
    totalAmount: Optional[float] = None
    depositPaid: Optional[float] = None
    serviceName: Optional[str] = None
    staffName: Optional[str] = None
    clientName: Optional[str] = None

    @classmethod
    def from_appointment(cls, appointment) -> "AppointmentResponse":
        staff_user = appointment.staff.user if appointment.staff else None
        return cls(
            id=appointment.id,
            organizationId=appointment.organization_id,
            locationId=appointment.location_id,
            clientId=appointment.client_id,
            staffId=appointment.staff_id,
            serviceId=appointment.service_id,
            startTime=appointment.start_time,
            endTime=appointment.end_time,
            status=appointment.status,
            notes=appointment.notes,
            totalAmount=appointment.total_amount,
            depositPaid=appointment.deposit_paid,
            serviceName=appointment.service.name if appointment.service else None,
            staffName=staff_user.display_name if staff_user else None,
            clientName=(
                f"{appointment.client.first_name} {appointment.client.last_name}"
                if appointment.client
                else None
            ),
        )


class TimeSlot(BaseModel):
    time: str  # HH:MM
    available: bool
    staffId: str


class AvailabilityResponse(BaseModel):
    date: str
    slots: list[TimeSlot]
