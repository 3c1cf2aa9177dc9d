"""Organization repository - Database operations for organizations"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import Organization


class OrganizationRepository:
    """Repository for organization database operations"""

    @staticmethod
    def list_organizations(db: Session) -> list[Organization]:
        return db.query(Organization).order_by(Organization.created_at.desc()).all()

    @staticmethod
    def get_by_id(db: Session, organization_id: str) -> Optional[Organization]:
        return db.query(Organization).filter(Organization.id == organization_id).first()

    @staticmethod
    def get_by_slug(db: Session, slug: str) -> Optional[Organization]:
        return db.query(Organization).filter(Organization.slug == slug).first()

    @staticmethod
    def get_by_connect_account(db: Session, account_id: str) -> Optional[Organization]:
        return db.query(Organization).filter(Organization.stripe_connect_account_id == account_id).first()

    @staticmethod
    def get_by_subscription(db: Session, subscription_id: str) -> Optional[Organization]:
        return db.query(Organization).filter(Organization.stripe_subscription_id == subscription_id).first()

    @staticmethod
    def slug_exists(db: Session, slug: str) -> bool:
        return db.query(Organization.id).filter(Organization.slug == slug).first() is not None

    @staticmethod
    def create(db: Session, commit: bool = True, **data) -> Organization:
        organization = Organization(**data)
        db.add(organization)
        if commit:
            db.commit()
            db.refresh(organization)
        else:
            db.flush()
        return organization

    @staticmethod
    def update(db: Session, organization: Organization, **updates) -> Organization:
        for key, value in updates.items():
            if hasattr(organization, key):
                setattr(organization, key, value)
        db.commit()
        db.refresh(organization)
        return organization
