import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base

USER_ROLES = ("super_admin", "clinic_admin", "staff", "patient")
STAFF_ROLES = ("admin", "receptionist", "provider")
SUBSCRIPTION_STATUSES = ("active", "past_due", "canceled", "trialing", "incomplete")
PLAN_TIERS = ("starter", "professional", "business", "enterprise", "medical_chain")
APPOINTMENT_STATUSES = (
    "scheduled",
    "confirmed",
    "in_progress",
    "completed",
    "canceled",
    "no_show",
    "cancellation_requested",
)
MEMBERSHIP_STATUSES = ("active", "suspended", "canceled")
BILLING_CYCLES = ("monthly", "yearly")
TRANSACTION_TYPES = ("appointment_deposit", "appointment_full", "appointment_balance")
TRANSACTION_STATUSES = ("pending", "completed", "failed")


def generate_id():
    """Generate a UUID primary key"""
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_id)
    email = Column(String(255), unique=True, index=True, nullable=False)
    username = Column(String(255), unique=True, index=True, nullable=False)
    password = Column(String(255), nullable=False)  # bcrypt hash
    first_name = Column(String(255), nullable=True)
    last_name = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    role = Column(String(20), nullable=False, default="patient")  # one of USER_ROLES
    email_verified = Column(Boolean, default=False)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    staff_profile = relationship("Staff", back_populates="user", uselist=False)
    client_profile = relationship("Client", back_populates="user", uselist=False)

    @property
    def display_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()


class Organization(Base):
    __tablename__ = "organizations"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), unique=True, index=True, nullable=False)
    description = Column(Text, nullable=True)
    website = Column(String(500), nullable=True)
    phone = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True)
    subscription_plan_id = Column(String(36), ForeignKey("subscription_plans.id"), nullable=True)
    subscription_status = Column(String(20), default="trialing")  # one of SUBSCRIPTION_STATUSES
    trial_ends_at = Column(DateTime, nullable=True)
    # Platform billing (the clinic pays Aesthiq)
    stripe_customer_id = Column(String(255), nullable=True)
    stripe_subscription_id = Column(String(255), nullable=True, index=True)
    # Stripe Connect (patients pay the clinic)
    stripe_connect_account_id = Column(String(255), nullable=True, index=True)
    stripe_account_status = Column(String(20), default="pending")  # pending, active
    payouts_enabled = Column(Boolean, default=False)
    capabilities_transfers = Column(String(20), default="inactive")  # active, inactive
    has_external_account = Column(Boolean, default=False)
    # Only flipped by verified Stripe webhooks
    business_features_enabled = Column(Boolean, default=False)
    settings = Column(JSON, nullable=True)
    white_label_settings = Column(JSON, nullable=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    subscription_plan = relationship("SubscriptionPlan")
    locations = relationship("Location", back_populates="organization")


class SubscriptionPlan(Base):
    __tablename__ = "subscription_plans"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(255), nullable=False)
    tier = Column(String(20), nullable=False)  # one of PLAN_TIERS
    description = Column(Text, nullable=True)
    monthly_price = Column(Float, nullable=False)
    yearly_price = Column(Float, nullable=True)
    stripe_price_id_monthly = Column(String(255), nullable=True)
    stripe_price_id_yearly = Column(String(255), nullable=True)
    max_locations = Column(Integer, nullable=True)  # None means unlimited
    max_staff = Column(Integer, nullable=True)
    max_clients = Column(Integer, nullable=True)
    features = Column(JSON, nullable=True)  # e.g. ["online_booking", "memberships"]
    limits = Column(JSON, nullable=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, server_default=func.now())


class Location(Base):
    __tablename__ = "locations"

    id = Column(String(36), primary_key=True, default=generate_id)
    organization_id = Column(String(36), ForeignKey("organizations.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), unique=True, index=True, nullable=False)
    phone = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True)
    timezone = Column(String(64), default="America/New_York")
    is_default = Column(Boolean, default=False)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, server_default=func.now())

    organization = relationship("Organization", back_populates="locations")


class Staff(Base):
    __tablename__ = "staff"

    id = Column(String(36), primary_key=True, default=generate_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    organization_id = Column(String(36), ForeignKey("organizations.id"), nullable=False, index=True)
    role = Column(String(20), nullable=False, default="provider")  # one of STAFF_ROLES
    title = Column(String(255), nullable=True)
    bio = Column(Text, nullable=True)
    can_book_online = Column(Boolean, default=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, server_default=func.now())

    user = relationship("User", back_populates="staff_profile")


class Client(Base):
    __tablename__ = "clients"

    id = Column(String(36), primary_key=True, default=generate_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=True, index=True)
    organization_id = Column(String(36), ForeignKey("organizations.id"), nullable=False, index=True)
    first_name = Column(String(255), nullable=False)
    last_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    notes = Column(Text, nullable=True)
    status = Column(String(20), default="active")  # invited, active, inactive
    # Customer on the clinic's connected Stripe account
    stripe_customer_id = Column(String(255), nullable=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, server_default=func.now())

    user = relationship("User", back_populates="client_profile")


class Service(Base):
    __tablename__ = "services"

    id = Column(String(36), primary_key=True, default=generate_id)
    organization_id = Column(String(36), ForeignKey("organizations.id"), nullable=False, index=True)
    location_id = Column(String(36), ForeignKey("locations.id"), nullable=True)  # None = all locations
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(100), nullable=True)
    duration = Column(Integer, nullable=False)  # minutes
    price = Column(Float, nullable=True)
    deposit_required = Column(Boolean, default=False)
    deposit_amount = Column(Float, nullable=True)
    stripe_product_id = Column(String(255), nullable=True)
    stripe_price_id = Column(String(255), nullable=True)
    stripe_deposit_price_id = Column(String(255), nullable=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, server_default=func.now())


class MembershipTier(Base):
    __tablename__ = "membership_tiers"

    id = Column(String(36), primary_key=True, default=generate_id)
    organization_id = Column(String(36), ForeignKey("organizations.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    monthly_price = Column(Float, nullable=False)
    yearly_price = Column(Float, nullable=True)
    benefits = Column(JSON, nullable=True)
    discount_percentage = Column(Float, nullable=True)
    stripe_product_id = Column(String(255), nullable=True)
    stripe_price_id_monthly = Column(String(255), nullable=True)
    stripe_price_id_yearly = Column(String(255), nullable=True)
    is_active = Column(Boolean, default=True)
    sort_order = Column(Integer, default=0)
    created_at = Column(DateTime, server_default=func.now())


class RewardOption(Base):
    __tablename__ = "reward_options"

    id = Column(String(36), primary_key=True, default=generate_id)
    organization_id = Column(String(36), ForeignKey("organizations.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    points_cost = Column(Integer, nullable=False)
    category = Column(String(100), nullable=False)
    discount_value = Column(Float, nullable=True)  # dollars off once redeemed
    is_active = Column(Boolean, default=True)
    sort_order = Column(Integer, default=0)
    created_at = Column(DateTime, server_default=func.now())


class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(String(36), primary_key=True, default=generate_id)
    organization_id = Column(String(36), ForeignKey("organizations.id"), nullable=False, index=True)
    location_id = Column(String(36), ForeignKey("locations.id"), nullable=False)
    client_id = Column(String(36), ForeignKey("clients.id"), nullable=False)
    staff_id = Column(String(36), ForeignKey("staff.id"), nullable=False, index=True)
    service_id = Column(String(36), ForeignKey("services.id"), nullable=False)
    start_time = Column(DateTime, nullable=False, index=True)
    end_time = Column(DateTime, nullable=False)
    status = Column(String(30), default="scheduled")  # one of APPOINTMENT_STATUSES
    notes = Column(Text, nullable=True)
    total_amount = Column(Float, nullable=True)
    deposit_paid = Column(Float, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    service = relationship("Service")
    staff = relationship("Staff")
    client = relationship("Client")


class Membership(Base):
    __tablename__ = "memberships"

    id = Column(String(36), primary_key=True, default=generate_id)
    organization_id = Column(String(36), ForeignKey("organizations.id"), nullable=False, index=True)
    client_id = Column(String(36), ForeignKey("clients.id"), nullable=False, index=True)
    tier_id = Column(String(36), ForeignKey("membership_tiers.id"), nullable=True)
    tier_name = Column(String(255), nullable=False)
    billing_cycle = Column(String(10), default="monthly")  # one of BILLING_CYCLES
    monthly_fee = Column(Float, nullable=False)
    # suspended until the first invoice is paid
    status = Column(String(20), nullable=False, default="suspended")  # one of MEMBERSHIP_STATUSES
    start_date = Column(DateTime, server_default=func.now())
    end_date = Column(DateTime, nullable=True)
    stripe_subscription_id = Column(String(255), nullable=True, index=True)
    created_at = Column(DateTime, server_default=func.now())


class Transaction(Base):
    __tablename__ = "transactions"

    id = Column(String(36), primary_key=True, default=generate_id)
    organization_id = Column(String(36), ForeignKey("organizations.id"), nullable=False, index=True)
    client_id = Column(String(36), ForeignKey("clients.id"), nullable=False)
    appointment_id = Column(String(36), ForeignKey("appointments.id"), nullable=True, index=True)
    amount = Column(Float, nullable=False)
    type = Column(String(30), nullable=False)  # one of TRANSACTION_TYPES
    status = Column(String(20), nullable=False, default="pending")  # one of TRANSACTION_STATUSES
    stripe_payment_intent_id = Column(String(255), nullable=True, index=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class Reward(Base):
    """Points ledger; redemptions are negative entries"""

    __tablename__ = "rewards"

    id = Column(String(36), primary_key=True, default=generate_id)
    organization_id = Column(String(36), ForeignKey("organizations.id"), nullable=False, index=True)
    client_id = Column(String(36), ForeignKey("clients.id"), nullable=False, index=True)
    points = Column(Integer, nullable=False)
    reason = Column(String(255), nullable=True)
    reference_id = Column(String(36), nullable=True)
    reference_type = Column(String(30), nullable=True)  # appointment, membership, reward_option
    created_at = Column(DateTime, server_default=func.now())


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(String(36), primary_key=True, default=generate_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    organization_id = Column(String(36), nullable=True)
    action = Column(String(50), nullable=False)  # create, update, delete
    resource = Column(String(50), nullable=False)
    resource_id = Column(String(36), nullable=True)
    changes = Column(JSON, nullable=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(500), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
