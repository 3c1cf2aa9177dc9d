"""Catalog service - treatments a clinic offers"""

import logging
from typing import Optional

from fastapi import HTTPException, Request
from sqlalchemy import or_
from sqlalchemy.orm import Session

from ...audit import log_audit_event
from ...auth import get_user_organization_id
from ...models import Location, Organization, Service, User
from ...security_utils import sanitize_text
from ..stripe_connect.stripe_service import StripeService
from .schemas import ServiceCreate, ServiceUpdate

logger = logging.getLogger(__name__)

FIELD_MAP = {
    "name": "name",
    "description": "description",
    "category": "category",
    "duration": "duration",
    "price": "price",
    "depositRequired": "deposit_required",
    "depositAmount": "deposit_amount",
    "locationId": "location_id",
    "isActive": "is_active",
}


class CatalogService:
    """Service layer for clinic treatments"""

    def __init__(self, db: Session, stripe_service: StripeService):
        self.db = db
        self.stripe = stripe_service

    def list_services(self, user: Optional[User], location_id: Optional[str] = None) -> list[Service]:
        """
        With a location id anyone may browse that location's menu (plus the
        clinic's org-wide services). Without one the caller must be signed in
        and sees their own clinic's active services.
        """
        if location_id:
            location = self.db.query(Location).filter(Location.id == location_id).first()
            if not location or not location.is_active:
                raise HTTPException(status_code=404, detail="Location not found")
            return (
                self.db.query(Service)
                .filter(
                    Service.organization_id == location.organization_id,
                    Service.is_active.is_(True),
                    or_(Service.location_id == location_id, Service.location_id.is_(None)),
                )
                .order_by(Service.name.asc())
                .all()
            )

        if user is None:
            raise HTTPException(status_code=401, detail="Authentication required")

        organization_id = get_user_organization_id(self.db, user)
        if not organization_id:
            raise HTTPException(status_code=400, detail="User organization not found")

        return (
            self.db.query(Service)
            .filter(Service.organization_id == organization_id, Service.is_active.is_(True))
            .order_by(Service.name.asc())
            .all()
        )

    def _sync_stripe_prices(self, organization: Organization, service: Service) -> None:
        """Create the Stripe product and one-time prices on the clinic's Connect account"""
        account_id = organization.stripe_connect_account_id
        if not account_id:
            logger.info(f"⚠️ No Stripe Connect account for {organization.slug}; skipping Stripe product")
            return
        if not service.price:
            logger.info(f"⚠️ No price for service {service.name}; skipping Stripe product")
            return

        try:
            product = self.stripe.create_product(
                name=service.name,
                description=service.description or f"{service.name} service",
                stripe_account=account_id,
            )
            price = self.stripe.create_price(product["id"], service.price, stripe_account=account_id)
            service.stripe_product_id = product["id"]
            service.stripe_price_id = price["id"]

            if service.deposit_required and service.deposit_amount:
                deposit = self.stripe.create_price(product["id"], service.deposit_amount, stripe_account=account_id)
                service.stripe_deposit_price_id = deposit["id"]

            logger.info(f"✅ Stripe product {product['id']} created for service {service.name} on {account_id}")
        except Exception as e:
            # The service is still usable without online payment
            logger.error(f"❌ Failed to create Stripe product/prices for {service.name}: {str(e)}")

    def _check_location(self, location_id: Optional[str], organization_id: str) -> None:
        if location_id is None:
            return
        location = self.db.query(Location).filter(Location.id == location_id).first()
        if not location or location.organization_id != organization_id:
            raise HTTPException(status_code=404, detail="Location not found")

    def create_service(self, data: ServiceCreate, user: User, request: Optional[Request] = None) -> Service:
        organization_id = get_user_organization_id(self.db, user)
        if not organization_id:
            raise HTTPException(status_code=400, detail="User not associated with an organization")

        organization = self.db.query(Organization).filter(Organization.id == organization_id).first()
        if not organization:
            raise HTTPException(status_code=400, detail="Organization not found")

        self._check_location(data.locationId, organization_id)

        service = Service(
            organization_id=organization_id,
            location_id=data.locationId,
            name=data.name.strip(),
            description=sanitize_text(data.description),
            category=data.category,
            duration=data.duration,
            price=data.price,
            deposit_required=data.depositRequired,
            deposit_amount=data.depositAmount,
            is_active=data.isActive,
        )
        self._sync_stripe_prices(organization, service)

        self.db.add(service)
        self.db.commit()
        self.db.refresh(service)

        log_audit_event(
            self.db, user, "create", "service", service.id,
            organization_id=organization_id, changes=data.model_dump(), request=request,
        )
        return service

    def _get_owned_service(self, service_id: str, user: User) -> Service:
        service = self.db.query(Service).filter(Service.id == service_id).first()
        if not service:
            raise HTTPException(status_code=404, detail="Service not found")

        if user.role != "super_admin" and service.organization_id != get_user_organization_id(self.db, user):
            raise HTTPException(status_code=403, detail="Access denied")
        return service

    def update_service(
        self, service_id: str, data: ServiceUpdate, user: User, request: Optional[Request] = None
    ) -> Service:
        service = self._get_owned_service(service_id, user)

        updates = data.model_dump(exclude_unset=True)
        if "description" in updates:
            updates["description"] = sanitize_text(updates["description"])
        if "locationId" in updates:
            self._check_location(updates["locationId"], service.organization_id)
        for key, value in updates.items():
            setattr(service, FIELD_MAP[key], value)

        self.db.commit()
        self.db.refresh(service)
        log_audit_event(
            self.db, user, "update", "service", service.id,
            organization_id=service.organization_id, changes=updates, request=request,
        )
        return service

    def delete_service(self, service_id: str, user: User, request: Optional[Request] = None) -> None:
        service = self._get_owned_service(service_id, user)
        service.is_active = False
        self.db.commit()
        log_audit_event(
            self.db, user, "delete", "service", service.id,
            organization_id=service.organization_id, changes={"isActive": False}, request=request,
        )
