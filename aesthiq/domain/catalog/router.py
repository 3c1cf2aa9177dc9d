"""Catalog router - /api/services"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from ...auth import get_optional_user, require_roles
from ...database import get_db
from ...models import User
from ..stripe_connect.stripe_service import StripeService, get_stripe_service
from .schemas import ServiceCreate, ServiceResponse, ServiceUpdate
from .service import CatalogService

router = APIRouter(prefix="/api/services", tags=["Services"])

manage_services = require_roles("clinic_admin", "super_admin")


def get_catalog_service(
    db: Session = Depends(get_db),
    stripe_service: StripeService = Depends(get_stripe_service),
) -> CatalogService:
    """Dependency injection for CatalogService"""
    return CatalogService(db, stripe_service)


@router.get("", response_model=list[ServiceResponse])
async def list_services(
    locationId: Optional[str] = Query(None),
    user: Optional[User] = Depends(get_optional_user),
    service: CatalogService = Depends(get_catalog_service),
):
    return service.list_services(user, locationId)


@router.post("", response_model=ServiceResponse)
async def create_service(
    data: ServiceCreate,
    request: Request,
    user: User = Depends(manage_services),
    service: CatalogService = Depends(get_catalog_service),
):
    return service.create_service(data, user, request)


@router.put("/{service_id}", response_model=ServiceResponse)
async def update_service(
    service_id: str,
    data: ServiceUpdate,
    request: Request,
    user: User = Depends(manage_services),
    service: CatalogService = Depends(get_catalog_service),
):
    return service.update_service(service_id, data, user, request)


@router.delete("/{service_id}")
async def delete_service(
    service_id: str,
    request: Request,
    user: User = Depends(manage_services),
    service: CatalogService = Depends(get_catalog_service),
):
    service.delete_service(service_id, user, request)
    return {"message": "Service deleted successfully"}
