"""Location service"""

import logging
import secrets
from typing import Optional

from fastapi import HTTPException, Request
from sqlalchemy.orm import Session

from ...audit import log_audit_event
from ...auth import get_user_organization_id
from ...booking_link import build_booking_url, qr_code_data_uri
from ...config import FRONTEND_URL
from ...models import Location, Organization, User
from ...security_utils import slugify
from .schemas import LocationCreate

logger = logging.getLogger(__name__)


class LocationService:
    """Service layer for clinic locations"""

    def __init__(self, db: Session):
        self.db = db

    def list_locations(self, user: Optional[User]) -> list[Location]:
        """Members of a clinic see its locations; anyone else sees every active location"""
        organization_id = get_user_organization_id(self.db, user) if user else None
        query = self.db.query(Location)
        if organization_id:
            query = query.filter(Location.organization_id == organization_id)
        else:
            query = query.filter(Location.is_active.is_(True))
        return query.order_by(Location.is_default.desc(), Location.created_at.asc()).all()

    def get_active_location(self, location_id: str) -> Location:
        location = self.db.query(Location).filter(Location.id == location_id).first()
        if not location or not location.is_active:
            raise HTTPException(status_code=404, detail="Location not found")
        return location

    def _unique_slug(self, base: str) -> str:
        slug = base
        while self.db.query(Location.id).filter(Location.slug == slug).first():
            slug = f"{base}-{secrets.token_hex(3)}"
        return slug

    def create_location(self, data: LocationCreate, user: User, request: Optional[Request] = None) -> Location:
        organization_id = get_user_organization_id(self.db, user)
        if not organization_id:
            raise HTTPException(status_code=400, detail="Organization not found")

        organization = self.db.query(Organization).filter(Organization.id == organization_id).first()
        base_slug = slugify(data.slug or f"{organization.slug}-{data.name}")
        if not base_slug:
            raise HTTPException(status_code=400, detail="Invalid location slug")

        has_locations = self.db.query(Location.id).filter(Location.organization_id == organization_id).first()
        location = Location(
            organization_id=organization_id,
            name=data.name.strip(),
            slug=self._unique_slug(base_slug),
            phone=data.phone,
            email=data.email,
            timezone=data.timezone,
            # The first location of a clinic is its default
            is_default=data.isDefault or not has_locations,
        )
        self.db.add(location)
        self.db.commit()
        self.db.refresh(location)

        log_audit_event(
            self.db, user, "create", "location", location.id,
            organization_id=organization_id, changes=data.model_dump(), request=request,
        )
        logger.info(f"📍 Location {location.slug} created for organization {organization_id}")
        return location

    def booking_link(self, user: User, origin: Optional[str] = None, location_id: Optional[str] = None) -> dict:
        organization_id = get_user_organization_id(self.db, user)
        if not organization_id:
            raise HTTPException(status_code=404, detail="No organization found for user")

        organization = self.db.query(Organization).filter(Organization.id == organization_id).first()
        locations = (
            self.db.query(Location)
            .filter(Location.organization_id == organization_id, Location.is_active.is_(True))
            .order_by(Location.is_default.desc(), Location.created_at.asc())
            .all()
        )

        url = build_booking_url(origin or FRONTEND_URL, organization.slug, locations, location_id)
        return {"url": url, "slug": url.rsplit("/", 1)[-1], "qrCode": qr_code_data_uri(url)}
