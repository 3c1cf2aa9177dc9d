"""People service - clinic staff and the clinic's clients (patients)"""

import logging
from typing import Optional

from fastapi import HTTPException, Request
from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from ...audit import log_audit_event
from ...auth import get_user_organization_id, resolve_organization_id
from ...config import FRONTEND_URL
from ...models import Client, Organization, Staff, User
from ...security_utils import generate_secure_token, hash_password, sanitize_text
from .schemas import ClientCreate, PatientInvite, StaffCreate

logger = logging.getLogger(__name__)


def get_client_profile(db: Session, user: User) -> Client:
    """The client record behind a signed-in patient"""
    client = db.query(Client).filter(Client.user_id == user.id).first()
    if not client:
        raise HTTPException(status_code=404, detail="Client profile not found")
    return client


class PeopleService:
    """Service layer for staff and client records"""

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Staff
    # ------------------------------------------------------------------

    def list_staff(self, user: User, organization_id: Optional[str] = None) -> list[Staff]:
        organization_id = resolve_organization_id(self.db, user, organization_id)
        return (
            self.db.query(Staff)
            .options(joinedload(Staff.user))
            .filter(Staff.organization_id == organization_id, Staff.is_active.is_(True))
            .order_by(Staff.created_at.asc())
            .all()
        )

    def create_staff(self, data: StaffCreate, user: User, request: Optional[Request] = None) -> Staff:
        organization_id = resolve_organization_id(self.db, user, data.organizationId)

        email = data.email.lower()
        username = data.username or email
        if self.db.query(User.id).filter(or_(User.email == email, User.username == username)).first():
            raise HTTPException(status_code=400, detail="User already exists")

        try:
            account = User(
                email=email,
                username=username,
                # Without a password the invitee signs in only after a reset
                password=hash_password(data.password or generate_secure_token()),
                first_name=data.firstName,
                last_name=data.lastName,
                phone=data.phone,
                role="staff",
            )
            self.db.add(account)
            self.db.flush()

            staff = Staff(
                user_id=account.id,
                organization_id=organization_id,
                role=data.role,
                title=data.title,
                bio=sanitize_text(data.bio),
                can_book_online=data.canBookOnline,
            )
            self.db.add(staff)
            self.db.commit()
            self.db.refresh(staff)
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Failed to create staff member {email}: {str(e)}")
            raise HTTPException(status_code=500, detail="Failed to create staff member") from e

        log_audit_event(
            self.db, user, "create", "staff", staff.id,
            organization_id=organization_id,
            changes=data.model_dump(exclude={"password"}),
            request=request,
        )
        logger.info(f"👤 Staff member {email} added to organization {organization_id}")
        return staff

    # ------------------------------------------------------------------
    # Clients
    # ------------------------------------------------------------------

    def list_clients(self, user: User, organization_id: Optional[str] = None) -> list[Client]:
        organization_id = resolve_organization_id(self.db, user, organization_id)
        return (
            self.db.query(Client)
            .filter(Client.organization_id == organization_id)
            .order_by(Client.created_at.desc())
            .all()
        )

    def create_client(self, data: ClientCreate, user: User, request: Optional[Request] = None) -> Client:
        organization_id = resolve_organization_id(self.db, user, data.organizationId)

        client = Client(
            organization_id=organization_id,
            first_name=data.firstName.strip(),
            last_name=data.lastName.strip(),
            email=data.email.lower() if data.email else None,
            phone=data.phone,
            notes=sanitize_text(data.notes),
            status="active",
        )
        self.db.add(client)
        self.db.commit()
        self.db.refresh(client)

        log_audit_event(
            self.db, user, "create", "client", client.id,
            organization_id=organization_id, changes=data.model_dump(), request=request,
        )
        return client

    def get_my_client_record(self, user: User) -> Client:
        if user.role != "patient":
            raise HTTPException(status_code=403, detail="Only patients can access client records")

        client = self.db.query(Client).filter(Client.user_id == user.id).first()
        if not client:
            raise HTTPException(status_code=404, detail="Client record not found")
        return client

    def invite_patient(self, data: PatientInvite, user: User, request: Optional[Request] = None) -> dict:
        """
        Add an invited client record and build the clinic's registration link.
        The record becomes active once the patient signs up through the link.
        """
        organization_id = get_user_organization_id(self.db, user)
        if not organization_id:
            raise HTTPException(status_code=400, detail="No organization found for user")

        organization = self.db.query(Organization).filter(Organization.id == organization_id).first()
        if not organization:
            raise HTTPException(status_code=404, detail="Organization not found")

        email = data.email.lower()
        exists = (
            self.db.query(Client.id)
            .filter(Client.organization_id == organization_id, Client.email == email)
            .first()
        )
        if exists:
            raise HTTPException(status_code=400, detail="Patient with this email already exists")

        client = Client(
            organization_id=organization_id,
            first_name=data.firstName.strip(),
            last_name=data.lastName.strip(),
            email=email,
            phone=data.phone,
            status="invited",
        )
        self.db.add(client)
        self.db.commit()
        self.db.refresh(client)

        log_audit_event(
            self.db, user, "invite", "client", client.id,
            organization_id=organization_id, changes=data.model_dump(), request=request,
        )
        logger.info(f"✉️ Patient {email} invited to {organization.slug}")

        # No mail provider is wired in; the link is handed back for the clinic to share
        return {
            "success": True,
            "message": "Patient invited successfully (email notification pending)",
            "invitationLink": f"{FRONTEND_URL.rstrip('/')}/c/{organization.slug}/register",
            "emailSent": False,
            "client": client,
        }
