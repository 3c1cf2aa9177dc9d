"""People router - /api/staff, /api/clients and patient invitations"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_roles
from ...database import get_db
from ...models import User
from ..setup.service import require_business_setup_complete
from .schemas import (
    ClientCreate,
    ClientResponse,
    PatientInvite,
    PatientInviteResponse,
    StaffCreate,
    StaffResponse,
)
from .service import PeopleService

router = APIRouter(prefix="/api", tags=["People"])


def get_people_service(db: Session = Depends(get_db)) -> PeopleService:
    """Dependency injection for PeopleService"""
    return PeopleService(db)


@router.get(
    "/staff",
    response_model=list[StaffResponse],
    dependencies=[Depends(require_business_setup_complete)],
)
async def list_staff(
    organizationId: Optional[str] = Query(None),
    user: User = Depends(get_current_user),
    service: PeopleService = Depends(get_people_service),
):
    return [StaffResponse.from_staff(s) for s in service.list_staff(user, organizationId)]


@router.post(
    "/staff",
    response_model=StaffResponse,
    dependencies=[Depends(require_business_setup_complete)],
)
async def create_staff(
    data: StaffCreate,
    request: Request,
    user: User = Depends(require_roles("clinic_admin", "super_admin")),
    service: PeopleService = Depends(get_people_service),
):
    return StaffResponse.from_staff(service.create_staff(data, user, request))


@router.get("/clients/me", response_model=ClientResponse)
async def get_my_client_record(
    user: User = Depends(get_current_user),
    service: PeopleService = Depends(get_people_service),
):
    """The signed-in patient's own client record"""
    return service.get_my_client_record(user)


@router.get(
    "/clients",
    response_model=list[ClientResponse],
    dependencies=[Depends(require_business_setup_complete)],
)
async def list_clients(
    organizationId: Optional[str] = Query(None),
    user: User = Depends(require_roles("clinic_admin", "staff", "super_admin")),
    service: PeopleService = Depends(get_people_service),
):
    return service.list_clients(user, organizationId)


@router.post(
    "/clients",
    response_model=ClientResponse,
    dependencies=[Depends(require_business_setup_complete)],
)
async def create_client(
    data: ClientCreate,
    request: Request,
    user: User = Depends(require_roles("clinic_admin", "staff", "super_admin")),
    service: PeopleService = Depends(get_people_service),
):
    return service.create_client(data, user, request)


@router.post("/patients/invite", response_model=PatientInviteResponse)
async def invite_patient(
    data: PatientInvite,
    request: Request,
    user: User = Depends(require_roles("clinic_admin", "staff")),
    service: PeopleService = Depends(get_people_service),
):
    """Invite a patient to register through the clinic's booking link"""
    return service.invite_patient(data, user, request)
