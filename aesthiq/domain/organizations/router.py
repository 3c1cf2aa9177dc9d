"""Organization router - tenant endpoints"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from ...auth import get_current_user, get_user_organization_id, require_roles
from ...database import get_db
from ...models import User
from .schemas import OrganizationCreate, OrganizationResponse, PublicOrganizationResponse
from .service import OrganizationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/organizations", tags=["Organizations"])
legacy_router = APIRouter(prefix="/api", tags=["Organizations"])


def get_organization_service(db: Session = Depends(get_db)) -> OrganizationService:
    """Dependency injection for OrganizationService"""
    return OrganizationService(db)


@router.get("", response_model=list[OrganizationResponse])
async def list_organizations(
    _: User = Depends(require_roles("super_admin")),
    service: OrganizationService = Depends(get_organization_service),
):
    """List every tenant (super admin console)"""
    return service.list_organizations()


@router.post("", response_model=OrganizationResponse)
async def create_organization(
    data: OrganizationCreate,
    request: Request,
    user: User = Depends(require_roles("super_admin")),
    service: OrganizationService = Depends(get_organization_service),
):
    return service.create_organization(data, user, request)


@router.get("/my-organization", response_model=OrganizationResponse)
async def get_my_organization(
    user: User = Depends(get_current_user),
    service: OrganizationService = Depends(get_organization_service),
):
    """Organization the signed-in user belongs to"""
    return service.get_my_organization(user)


@router.get("/by-slug/{slug}", response_model=PublicOrganizationResponse)
async def get_organization_by_slug(
    slug: str,
    service: OrganizationService = Depends(get_organization_service),
):
    """Public lookup used by the white-label patient sign-up page"""
    return service.get_public_by_slug(slug)


@router.get("/{organization_id}", response_model=OrganizationResponse)
async def get_organization(
    organization_id: str,
    user: User = Depends(get_current_user),
    service: OrganizationService = Depends(get_organization_service),
):
    return service.get_organization_for_user(organization_id, user)


@legacy_router.get("/organization", response_model=OrganizationResponse)
async def get_current_organization(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    service: OrganizationService = Depends(get_organization_service),
):
    if not get_user_organization_id(db, user):
        raise HTTPException(status_code=400, detail="No organization associated with user")
    return service.get_my_organization(user)
