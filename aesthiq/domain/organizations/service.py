"""Organization service - Business logic for tenants"""

import logging
import secrets
from typing import Optional

from fastapi import HTTPException, Request
from sqlalchemy.orm import Session

from ...audit import log_audit_event
from ...auth import get_user_organization_id
from ...models import Organization, User
from ...security_utils import sanitize_text, slugify
from .repository import OrganizationRepository
from .schemas import OrganizationCreate

logger = logging.getLogger(__name__)


class OrganizationService:
    """Service layer for organization business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = OrganizationRepository()

    def list_organizations(self) -> list[Organization]:
        return self.repo.list_organizations(self.db)

    def create_organization(
        self, data: OrganizationCreate, user: User, request: Optional[Request] = None
    ) -> Organization:
        if self.repo.slug_exists(self.db, data.slug):
            raise HTTPException(status_code=400, detail="Organization slug already exists")

        try:
            organization = self.repo.create(
                self.db,
                name=data.name.strip(),
                slug=data.slug,
                description=sanitize_text(data.description),
                website=data.website,
                phone=data.phone,
                email=data.email,
                subscription_plan_id=data.subscriptionPlanId,
                white_label_settings=data.whiteLabelSettings or {},
                is_active=data.isActive,
            )
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Failed to create organization {data.slug}: {str(e)}")
            raise HTTPException(status_code=500, detail="Failed to create organization") from e

        log_audit_event(
            self.db,
            user,
            "create",
            "organization",
            organization.id,
            organization_id=organization.id,
            changes=data.model_dump(mode="json"),
            request=request,
        )
        logger.info(f"✅ Organization created: {organization.slug}")
        return organization

    def get_my_organization(self, user: User) -> Organization:
        organization_id = get_user_organization_id(self.db, user)
        if not organization_id:
            raise HTTPException(status_code=404, detail="No organization found for user")

        organization = self.repo.get_by_id(self.db, organization_id)
        if not organization:
            raise HTTPException(status_code=404, detail="Organization not found")
        return organization

    def get_organization_for_user(self, organization_id: str, user: User) -> Organization:
        organization = self.repo.get_by_id(self.db, organization_id)
        if not organization:
            raise HTTPException(status_code=404, detail="Organization not found")

        if user.role != "super_admin" and get_user_organization_id(self.db, user) != organization.id:
            logger.warning(f"⚠️ User {user.email} denied access to organization {organization_id}")
            raise HTTPException(status_code=403, detail="Access denied")
        return organization

    def get_public_by_slug(self, slug: str) -> Organization:
        organization = self.repo.get_by_slug(self.db, slug)
        if not organization or not organization.is_active:
            raise HTTPException(status_code=404, detail="Clinic not found")
        return organization

    def unique_slug(self, name: str) -> str:
        """Slug for a new organization, suffixed when the plain one is taken"""
        base = slugify(name) or "clinic"
        slug = base
        while self.repo.slug_exists(self.db, slug):
            slug = f"{base}-{secrets.token_hex(3)}"
        return slug
