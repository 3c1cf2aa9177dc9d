"""Appointment and availability router"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from ..setup.service import require_business_setup_complete
from .schemas import AppointmentCreate, AppointmentResponse, AvailabilityResponse
from .service import AppointmentService

router = APIRouter(prefix="/api", tags=["Appointments"])


def get_appointment_service(db: Session = Depends(get_db)) -> AppointmentService:
    """Dependency injection for AppointmentService"""
    return AppointmentService(db)


@router.get(
    "/appointments",
    response_model=list[AppointmentResponse],
    dependencies=[Depends(require_business_setup_complete)],
)
async def list_appointments(
    startDate: Optional[str] = Query(None),
    endDate: Optional[str] = Query(None),
    organizationId: Optional[str] = Query(None),
    user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    appointments = service.list_appointments(user, startDate, endDate, organizationId)
    return [AppointmentResponse.from_appointment(a) for a in appointments]


@router.post(
    "/appointments",
    response_model=AppointmentResponse,
    dependencies=[Depends(require_business_setup_complete)],
)
async def create_appointment(
    data: AppointmentCreate,
    request: Request,
    user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    return AppointmentResponse.from_appointment(service.create_appointment(data, user, request))


@router.get("/availability/{staff_id}", response_model=AvailabilityResponse)
async def get_availability(
    staff_id: str,
    date: Optional[str] = Query(None),
    user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Open 30-minute slots for a staff member on a given day"""
    return service.get_availability(user, staff_id, date)
