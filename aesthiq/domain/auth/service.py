"""Auth service - registration and credential checks"""

import logging
from datetime import datetime, timedelta

from fastapi import HTTPException
from sqlalchemy import or_
from sqlalchemy.orm import Session

from ...config import PLATFORM_TRIAL_DAYS
from ...models import Client, Staff, User
from ...security_utils import hash_password, verify_password
from ..organizations.repository import OrganizationRepository
from ..organizations.service import OrganizationService
from ..plans.repository import PlanRepository
from .schemas import LoginRequest, RegisterRequest

logger = logging.getLogger(__name__)

SELF_SERVICE_ROLES = ("clinic_admin", "staff", "patient")


class AuthService:
    """Service layer for sign-up and sign-in"""

    def __init__(self, db: Session):
        self.db = db
        self.organizations = OrganizationRepository()
        self.plans = PlanRepository()

    def register(self, data: RegisterRequest) -> User:
        """
        Create an account.

        With an organization slug the caller is always a patient of that
        clinic. Without one, only clinic administrators may sign up; they get
        a fresh organization and an admin staff record.
        """
        organization = None
        if data.organizationSlug:
            organization = self.organizations.get_by_slug(self.db, data.organizationSlug)
            if not organization or not organization.is_active:
                raise HTTPException(status_code=400, detail="Invalid clinic")
            role = "patient"
        else:
            role = data.role
            if role not in SELF_SERVICE_ROLES:
                raise HTTPException(status_code=400, detail="Invalid role for registration")
            if role == "staff":
                raise HTTPException(status_code=400, detail="Staff members must be invited by clinic administrators")
            if role == "patient":
                raise HTTPException(
                    status_code=400,
                    detail="Patients can only register via clinic invitation links. "
                    "Please contact your clinic for the correct registration link.",
                )

        email = data.email.lower()
        existing = self.db.query(User).filter(or_(User.email == email, User.username == data.username)).first()
        if existing:
            raise HTTPException(status_code=400, detail="User already exists")

        try:
            user = User(
                email=email,
                username=data.username,
                password=hash_password(data.password),
                first_name=data.firstName,
                last_name=data.lastName,
                phone=data.phone,
                role=role,
            )
            self.db.add(user)
            self.db.flush()

            if role == "patient":
                invited = (
                    self.db.query(Client)
                    .filter(
                        Client.organization_id == organization.id,
                        Client.email == user.email,
                        Client.user_id.is_(None),
                        Client.status == "invited",
                    )
                    .first()
                )
                if invited:
                    # Accepting an invitation claims the record the clinic created
                    invited.user_id = user.id
                    invited.status = "active"
                else:
                    self.db.add(
                        Client(
                            user_id=user.id,
                            organization_id=organization.id,
                            first_name=user.first_name or "",
                            last_name=user.last_name or "",
                            email=user.email,
                            phone=user.phone,
                        )
                    )
                logger.info(f"🆕 Patient {user.email} registered with clinic {organization.slug}")
            else:
                organization = self._create_clinic(user, data.businessName)

            self.db.commit()
            self.db.refresh(user)
        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Registration failed for {email}: {str(e)}")
            raise HTTPException(status_code=500, detail="Registration failed") from e

        logger.info(f"✅ New user created: {user.email} ({user.role})")
        return user

    def _create_clinic(self, user: User, business_name: str | None):
        name = (business_name or "").strip() or f"{user.display_name} Clinic".strip()
        plan = self.plans.get_default_plan(self.db)

        organization = self.organizations.create(
            self.db,
            commit=False,
            name=name,
            slug=OrganizationService(self.db).unique_slug(business_name or user.email.split("@")[0]),
            subscription_plan_id=plan.id if plan else None,
            subscription_status="trialing",
            trial_ends_at=datetime.utcnow() + timedelta(days=PLATFORM_TRIAL_DAYS),
            white_label_settings={},
            is_active=True,
        )
        self.db.add(
            Staff(
                user_id=user.id,
                organization_id=organization.id,
                role="admin",
                title="Clinic Administrator",
                is_active=True,
            )
        )
        logger.info(
            f"🏥 Created organization {organization.slug} for clinic admin {user.email}"
            f" with plan {plan.name if plan else 'none'}"
        )
        return organization

    def authenticate(self, data: LoginRequest) -> User:
        user = self.db.query(User).filter(User.email == data.email.strip().lower()).first()
        if not user or not verify_password(data.password, user.password):
            logger.warning(f"⚠️ Failed login attempt for {data.email}")
            raise HTTPException(status_code=401, detail="Invalid email or password")

        if not user.is_active:
            raise HTTPException(status_code=401, detail="Account is deactivated")

        logger.info(f"🔐 User signed in: {user.email}")
        return user
