import json
import os
from itertools import count
from types import SimpleNamespace

# Settings are read at import time, so they must be in place before aesthiq loads
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["CSRF_ENABLED"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ.setdefault("DB_LOG_SLOW_QUERIES", "false")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from aesthiq import config  # noqa: E402
from aesthiq.database import Base, SessionLocal, engine  # noqa: E402
from aesthiq.domain.stripe_connect.stripe_service import account_readiness, get_stripe_service  # noqa: E402
from aesthiq.main import app  # noqa: E402
from aesthiq.models import (  # noqa: E402
    Client,
    Location,
    MembershipTier,
    Organization,
    RewardOption,
    Service,
    Staff,
    SubscriptionPlan,
    User,
)
from aesthiq.security_utils import hash_password  # noqa: E402

PASSWORD = "correct-horse-battery"
WEBHOOK_SECRET = "whsec_test"


def ready_account(account_id: str, organization_id: str, **overrides) -> dict:
    """A Connect account as Stripe returns it once onboarding is finished"""
    account = {
        "id": account_id,
        "object": "account",
        "payouts_enabled": True,
        "charges_enabled": True,
        "capabilities": {"card_payments": "active", "transfers": "active"},
        "external_accounts": {"data": [{"id": "ba_test_1", "object": "bank_account"}]},
        "requirements": {"currently_due": [], "eventually_due": [], "past_due": []},
        "metadata": {"organizationId": organization_id},
    }
    account.update(overrides)
    return account


class FakeStripeService:
    """In-memory stand-in for StripeService; every call is recorded in `calls`"""

    def __init__(self):
        self.calls: list[tuple[str, dict]] = []
        self.accounts: dict[str, dict] = {}
        self.payment_intents: dict[str, dict] = {}
        self.fail_with: Exception | None = None
        self._ids = count(1)

    def _record(self, name: str, /, **kwargs) -> int:
        self.calls.append((name, kwargs))
        if self.fail_with is not None:
            raise self.fail_with
        return next(self._ids)

    def called(self, name: str) -> list[dict]:
        return [kwargs for call, kwargs in self.calls if call == name]

    def is_available(self) -> bool:
        return True

    def create_customer(self, email, name, organization_id, stripe_account=None, metadata=None):
        n = self._record(
            "create_customer",
            email=email,
            name=name,
            organization_id=organization_id,
            stripe_account=stripe_account,
            metadata=metadata,
        )
        return {"id": f"cus_test_{n}", "email": email}

    def attach_payment_method(self, payment_method_id, customer_id):
        self._record("attach_payment_method", payment_method_id=payment_method_id, customer_id=customer_id)

    def create_subscription(self, customer_id, price_id, trial_days=None, stripe_account=None, metadata=None):
        n = self._record(
            "create_subscription",
            customer_id=customer_id,
            price_id=price_id,
            trial_days=trial_days,
            stripe_account=stripe_account,
            metadata=metadata,
        )
        return {
            "id": f"sub_test_{n}",
            "status": "trialing" if trial_days else "incomplete",
            "customer": customer_id,
            "latest_invoice": {"payment_intent": {"id": f"pi_sub_{n}", "client_secret": f"pi_sub_{n}_secret"}},
        }

    def create_product(self, name, description=None, stripe_account=None):
        n = self._record("create_product", name=name, description=description, stripe_account=stripe_account)
        return {"id": f"prod_test_{n}", "name": name}

    def create_price(self, product_id, amount, interval=None, stripe_account=None, currency="usd"):
        n = self._record(
            "create_price", product_id=product_id, amount=amount, interval=interval, stripe_account=stripe_account
        )
        return {"id": f"price_test_{n}", "product": product_id}

    def create_connect_account(self, name, email, organization_id):
        n = self._record("create_connect_account", name=name, email=email, organization_id=organization_id)
        account = {
            "id": f"acct_test_{n}",
            "payouts_enabled": False,
            "charges_enabled": False,
            "capabilities": {"card_payments": "inactive", "transfers": "inactive"},
            "external_accounts": {"data": []},
            "requirements": {"currently_due": ["external_account"], "eventually_due": [], "past_due": []},
            "metadata": {"organizationId": organization_id},
        }
        self.accounts[account["id"]] = account
        return account

    def create_account_link(self, account_id, organization_id):
        self._record("create_account_link", account_id=account_id, organization_id=organization_id)
        return {"url": f"https://connect.stripe.com/setup/e/{account_id}"}

    def retrieve_account(self, account_id):
        self._record("retrieve_account", account_id=account_id)
        return self.accounts[account_id]

    def check_account_status(self, account_id):
        return account_readiness(self.retrieve_account(account_id))

    def create_payment_intent(self, amount, customer_id=None, stripe_account=None, metadata=None, currency="usd"):
        n = self._record(
            "create_payment_intent",
            amount=amount,
            customer_id=customer_id,
            stripe_account=stripe_account,
            metadata=metadata,
        )
        intent = {
            "id": f"pi_test_{n}",
            "client_secret": f"pi_test_{n}_secret",
            "status": "requires_payment_method",
            "amount": int(round(amount * 100)),
            "metadata": metadata or {},
        }
        self.payment_intents[intent["id"]] = intent
        return intent

    def retrieve_payment_intent(self, payment_intent_id, stripe_account=None):
        self._record("retrieve_payment_intent", payment_intent_id=payment_intent_id, stripe_account=stripe_account)
        return self.payment_intents[payment_intent_id]

    def succeed(self, payment_intent_id: str) -> None:
        """What the browser's confirmPayment does once the card is accepted"""
        self.payment_intents[payment_intent_id]["status"] = "succeeded"

    def construct_event(self, payload, signature, secret):
        if signature != f"t=1,v1={secret}":
            raise ValueError("No signatures found matching the expected signature for payload")
        return json.loads(payload)


@pytest.fixture(autouse=True)
def reset_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def stripe_fake():
    fake = FakeStripeService()
    app.dependency_overrides[get_stripe_service] = lambda: fake
    yield fake
    app.dependency_overrides.pop(get_stripe_service, None)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_client(stripe_fake):
    """Factory for independent browser sessions against the same app"""
    clients = []

    def factory() -> TestClient:
        test_client = TestClient(app)
        clients.append(test_client)
        return test_client

    yield factory
    for test_client in clients:
        test_client.close()


@pytest.fixture
def client(make_client):
    return make_client()


def create_user(db, role: str, email: str, password: str = PASSWORD, **fields) -> User:
    user = User(
        email=email,
        username=fields.pop("username", email),
        password=hash_password(password),
        role=role,
        first_name=fields.pop("first_name", "Test"),
        last_name=fields.pop("last_name", role.replace("_", " ").title()),
        **fields,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def login(test_client: TestClient, email: str, password: str = PASSWORD):
    response = test_client.post("/api/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return response.json()["user"]


def register_clinic_admin(test_client: TestClient, email: str, business_name: str = "Glow Aesthetics"):
    response = test_client.post(
        "/api/auth/register",
        json={
            "email": email,
            "username": email.split("@")[0],
            "password": PASSWORD,
            "firstName": "Ava",
            "lastName": "Stone",
            "role": "clinic_admin",
            "businessName": business_name,
        },
    )
    assert response.status_code == 200, response.text
    return response.json()["user"]


def complete_business_setup(db, organization_id: str, account_id: str = "acct_ready_1") -> None:
    """Put an organization through the setup wizard directly in the database"""
    organization = db.query(Organization).filter(Organization.id == organization_id).first()
    plan = db.query(SubscriptionPlan).first()
    if plan is None:
        plan = SubscriptionPlan(name="Enterprise", tier="enterprise", monthly_price=299.0, yearly_price=2990.0)
        db.add(plan)
        db.flush()

    organization.subscription_plan_id = plan.id
    organization.subscription_status = "active"
    organization.stripe_connect_account_id = account_id
    db.add(Service(organization_id=organization_id, name="Botox", duration=30, price=350.0))
    db.add(MembershipTier(organization_id=organization_id, name="Glow Club", monthly_price=99.0))
    db.add(RewardOption(organization_id=organization_id, name="Free Facial", points_cost=500, category="service"))
    db.commit()


@pytest.fixture
def clinic(make_client, db):
    """A registered clinic admin with an organization that has finished business setup"""
    admin_client = make_client()
    user = register_clinic_admin(admin_client, "owner@example.com")
    organization = admin_client.get("/api/organizations/my-organization").json()
    complete_business_setup(db, organization["id"])

    location = Location(
        organization_id=organization["id"], name="Downtown", slug="glow-downtown", is_default=True
    )
    db.add(location)
    db.commit()

    return SimpleNamespace(
        client=admin_client,
        user=user,
        organization=organization,
        organization_id=organization["id"],
        location_id=location.id,
    )


@pytest.fixture
def super_admin(make_client, db):
    create_user(db, "super_admin", "root@example.com")
    admin_client = make_client()
    login(admin_client, "root@example.com")
    return admin_client


def add_staff_member(db, organization_id: str, email: str = "provider@example.com") -> Staff:
    user = create_user(db, "staff", email)
    staff = Staff(user_id=user.id, organization_id=organization_id, role="provider", title="Nurse Injector")
    db.add(staff)
    db.commit()
    db.refresh(staff)
    return staff


def add_client_record(db, organization_id: str, first_name: str = "Mia") -> Client:
    record = Client(organization_id=organization_id, first_name=first_name, last_name="Lopez")
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


def register_patient(test_client: TestClient, organization_slug: str, email: str = "mia@example.com"):
    """Sign up through a clinic's registration link; the session is started on test_client"""
    response = test_client.post(
        "/api/auth/register",
        json={
            "email": email,
            "username": email.split("@")[0],
            "password": PASSWORD,
            "firstName": "Mia",
            "lastName": "Lopez",
            "organizationSlug": organization_slug,
        },
    )
    assert response.status_code == 200, response.text
    return response.json()["user"]


@pytest.fixture
def webhook_secret(monkeypatch):
    monkeypatch.setattr(config, "STRIPE_WEBHOOK_SECRET", WEBHOOK_SECRET)
    return WEBHOOK_SECRET


def send_event(test_client: TestClient, event: dict, signature: str = f"t=1,v1={WEBHOOK_SECRET}"):
    return test_client.post(
        "/api/stripe/webhook",
        content=json.dumps(event),
        headers={"stripe-signature": signature, "content-type": "application/json"},
    )


def event(event_type: str, obj: dict) -> dict:
    return {"id": "evt_test_1", "type": event_type, "data": {"object": obj}}
