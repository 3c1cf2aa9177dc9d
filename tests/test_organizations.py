from fastapi import status

from aesthiq.models import AuditLog, Organization, SubscriptionPlan
from conftest import create_user, login, register_clinic_admin

PLAN = {
    "name": "Professional",
    "tier": "professional",
    "description": "For growing clinics",
    "monthlyPrice": 149.0,
    "yearlyPrice": 1490.0,
    "maxLocations": 3,
    "features": ["online_booking", "memberships"],
}


# ---------------------------------------------------------------------------
# Organizations
# ---------------------------------------------------------------------------


def test_super_admin_creates_and_lists_organizations(super_admin, db):
    response = super_admin.post(
        "/api/organizations",
        json={"name": "Radiance Med Spa", "slug": "Radiance Med Spa", "email": "hello@example.com"},
    )
    assert response.status_code == status.HTTP_200_OK
    created = response.json()
    assert created["slug"] == "radiance-med-spa"
    assert created["subscriptionStatus"] == "trialing"
    assert created["businessFeaturesEnabled"] is False

    listed = super_admin.get("/api/organizations")
    assert listed.status_code == status.HTTP_200_OK
    assert [org["id"] for org in listed.json()] == [created["id"]]

    audit = db.query(AuditLog).filter(AuditLog.resource == "organization").one()
    assert audit.action == "create"
    assert audit.resource_id == created["id"]


def test_duplicate_slug_is_rejected(super_admin):
    super_admin.post("/api/organizations", json={"name": "Radiance", "slug": "radiance"})
    response = super_admin.post("/api/organizations", json={"name": "Radiance Two", "slug": "radiance"})

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["message"] == "Organization slug already exists"


def test_clinic_admin_cannot_list_organizations(client):
    register_clinic_admin(client, "owner@example.com")

    response = client.get("/api/organizations")
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["message"] == "Insufficient permissions"


def test_my_organization(client):
    register_clinic_admin(client, "owner@example.com", business_name="Glow Aesthetics")

    response = client.get("/api/organizations/my-organization")
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["name"] == "Glow Aesthetics"

    alias = client.get("/api/organization")
    assert alias.status_code == status.HTTP_200_OK
    assert alias.json()["id"] == response.json()["id"]


def test_super_admin_has_no_organization(super_admin):
    response = super_admin.get("/api/organizations/my-organization")
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["message"] == "No organization found for user"

    alias = super_admin.get("/api/organization")
    assert alias.status_code == status.HTTP_400_BAD_REQUEST


def test_public_lookup_by_slug_exposes_public_fields_only(client, make_client, db):
    register_clinic_admin(client, "owner@example.com", business_name="Glow Aesthetics")

    anonymous = make_client()
    response = anonymous.get("/api/organizations/by-slug/glow-aesthetics")
    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["name"] == "Glow Aesthetics"
    assert "stripeConnectAccountId" not in body
    assert "subscriptionStatus" not in body

    db.query(Organization).update({Organization.is_active: False})
    db.commit()
    missing = anonymous.get("/api/organizations/by-slug/glow-aesthetics")
    assert missing.status_code == status.HTTP_404_NOT_FOUND
    assert missing.json()["message"] == "Clinic not found"


def test_organization_by_id_is_limited_to_members(make_client, super_admin):
    first = make_client()
    register_clinic_admin(first, "owner@example.com", business_name="Glow Aesthetics")
    second = make_client()
    register_clinic_admin(second, "other@example.com", business_name="Radiance")

    first_org = first.get("/api/organizations/my-organization").json()

    assert first.get(f"/api/organizations/{first_org['id']}").status_code == status.HTTP_200_OK
    assert super_admin.get(f"/api/organizations/{first_org['id']}").status_code == status.HTTP_200_OK

    denied = second.get(f"/api/organizations/{first_org['id']}")
    assert denied.status_code == status.HTTP_403_FORBIDDEN
    assert denied.json()["message"] == "Access denied"


def test_second_clinic_with_same_name_gets_distinct_slug(make_client, db):
    register_clinic_admin(make_client(), "owner@example.com", business_name="Glow Aesthetics")
    register_clinic_admin(make_client(), "other@example.com", business_name="Glow Aesthetics")

    slugs = sorted(org.slug for org in db.query(Organization).all())
    assert slugs[0] == "glow-aesthetics"
    assert slugs[1].startswith("glow-aesthetics-")


# ---------------------------------------------------------------------------
# Subscription plans
# ---------------------------------------------------------------------------


def test_plans_are_public_and_created_by_super_admin(super_admin, make_client):
    created = super_admin.post("/api/subscription-plans", json=PLAN)
    assert created.status_code == status.HTTP_200_OK
    assert created.json()["monthlyPrice"] == 149.0
    assert created.json()["features"] == ["online_booking", "memberships"]

    listed = make_client().get("/api/subscription-plans")
    assert listed.status_code == status.HTTP_200_OK
    assert [plan["name"] for plan in listed.json()] == ["Professional"]


def test_plan_tier_is_validated(super_admin):
    response = super_admin.post("/api/subscription-plans", json={**PLAN, "tier": "platinum"})
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["message"] == "Invalid data"


def test_clinic_admin_cannot_create_plans(client):
    register_clinic_admin(client, "owner@example.com")
    assert client.post("/api/subscription-plans", json=PLAN).status_code == status.HTTP_403_FORBIDDEN


def test_setup_subscription_plans_creates_platform_prices(super_admin, stripe_fake, db):
    super_admin.post("/api/subscription-plans", json=PLAN)
    super_admin.post(
        "/api/subscription-plans",
        json={"name": "Starter", "tier": "starter", "monthlyPrice": 49.0},
    )

    response = super_admin.post("/api/admin/setup-subscription-plans")
    assert response.status_code == status.HTTP_200_OK

    plans = {plan["name"]: plan for plan in response.json()["plans"]}
    assert plans["Professional"]["stripePriceIdMonthly"]
    assert plans["Professional"]["stripePriceIdYearly"]
    assert plans["Starter"]["stripePriceIdMonthly"]
    assert plans["Starter"]["stripePriceIdYearly"] is None

    # Platform products live on the platform account, not a connected one
    assert all(call["stripe_account"] is None for call in stripe_fake.called("create_product"))
    intervals = sorted(call["interval"] for call in stripe_fake.called("create_price"))
    assert intervals == ["month", "month", "year"]

    # Running again skips plans that already have prices
    stripe_fake.calls.clear()
    super_admin.post("/api/admin/setup-subscription-plans")
    assert stripe_fake.called("create_product") == []


def test_setup_subscription_plans_reports_stripe_failure(super_admin, stripe_fake):
    super_admin.post("/api/subscription-plans", json=PLAN)
    stripe_fake.fail_with = RuntimeError("Invalid API Key provided")

    response = super_admin.post("/api/admin/setup-subscription-plans")
    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert response.json()["message"] == "Failed to setup subscription plans"


def test_subscribe_starts_trial(client, stripe_fake, db):
    register_clinic_admin(client, "owner@example.com")
    plan = SubscriptionPlan(
        name="Business",
        tier="business",
        monthly_price=199.0,
        stripe_price_id_monthly="price_business_monthly",
    )
    db.add(plan)
    db.commit()

    response = client.post(
        "/api/subscription/subscribe",
        json={"planId": plan.id, "billingCycle": "monthly", "paymentMethodId": "pm_card_visa"},
    )
    assert response.status_code == status.HTTP_200_OK, response.text
    body = response.json()
    assert body["trial"] is True
    assert body["status"] == "trialing"

    [subscription_call] = stripe_fake.called("create_subscription")
    assert subscription_call["price_id"] == "price_business_monthly"
    assert subscription_call["trial_days"] == 30
    assert stripe_fake.called("attach_payment_method")[0]["payment_method_id"] == "pm_card_visa"

    db.expire_all()
    organization = db.query(Organization).one()
    assert organization.subscription_plan_id == plan.id
    assert organization.stripe_subscription_id == body["subscriptionId"]
    assert organization.stripe_customer_id.startswith("cus_test_")


def test_subscribe_requires_price_for_billing_cycle(client, db):
    register_clinic_admin(client, "owner@example.com")
    plan = SubscriptionPlan(name="Business", tier="business", monthly_price=199.0)
    db.add(plan)
    db.commit()

    response = client.post("/api/subscription/subscribe", json={"planId": plan.id, "billingCycle": "yearly"})
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["message"] == "Price not available for selected billing cycle"


def test_subscribe_unknown_plan(client):
    register_clinic_admin(client, "owner@example.com")

    response = client.post("/api/subscription/subscribe", json={"planId": "missing", "billingCycle": "monthly"})
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_super_admin_cannot_subscribe(make_client, db):
    create_user(db, "super_admin", "root@example.com")
    admin_client = make_client()
    login(admin_client, "root@example.com")

    response = admin_client.post("/api/subscription/subscribe", json={"planId": "x", "billingCycle": "monthly"})
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["message"] == "Organization not found"
