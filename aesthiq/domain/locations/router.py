"""Location router"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from ...auth import get_current_user, get_optional_user, require_roles
from ...database import get_db
from ...models import User
from .schemas import BookingLinkResponse, LocationCreate, LocationResponse
from .service import LocationService

router = APIRouter(prefix="/api/locations", tags=["Locations"])


def get_location_service(db: Session = Depends(get_db)) -> LocationService:
    """Dependency injection for LocationService"""
    return LocationService(db)


@router.get("", response_model=list[LocationResponse])
async def list_locations(
    user: Optional[User] = Depends(get_optional_user),
    service: LocationService = Depends(get_location_service),
):
    return service.list_locations(user)


@router.post("", response_model=LocationResponse)
async def create_location(
    data: LocationCreate,
    request: Request,
    user: User = Depends(require_roles("clinic_admin")),
    service: LocationService = Depends(get_location_service),
):
    return service.create_location(data, user, request)


@router.get("/booking-link", response_model=BookingLinkResponse)
async def get_booking_link(
    origin: Optional[str] = Query(None),
    locationId: Optional[str] = Query(None),
    user: User = Depends(get_current_user),
    service: LocationService = Depends(get_location_service),
):
    """Shareable patient sign-up link and its QR code"""
    return service.booking_link(user, origin, locationId)
