import pytest
import stripe
from fastapi import status

from aesthiq import config
from aesthiq.domain.stripe_connect.stripe_service import StripeNotConfiguredError, StripeService, account_readiness
from aesthiq.models import Organization
from conftest import event, ready_account, register_clinic_admin, send_event


def organization(db) -> Organization:
    db.expire_all()
    return db.query(Organization).one()


# ---------------------------------------------------------------------------
# Onboarding
# ---------------------------------------------------------------------------


def test_create_account_returns_onboarding_link(client, stripe_fake, db):
    register_clinic_admin(client, "owner@example.com")

    response = client.post("/api/stripe-connect/create-account")
    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["accountId"] == "acct_test_1"
    assert body["onboardingUrl"] == "https://connect.stripe.com/setup/e/acct_test_1"

    org = organization(db)
    assert org.stripe_connect_account_id == "acct_test_1"
    assert org.stripe_account_status == "pending"
    assert stripe_fake.called("create_connect_account")[0]["organization_id"] == org.id


def test_create_account_twice(client, stripe_fake):
    register_clinic_admin(client, "owner@example.com")
    client.post("/api/stripe-connect/create-account")

    response = client.post("/api/stripe-connect/create-account")
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    body = response.json()
    assert body["error_code"] == "ACCOUNT_EXISTS"
    assert body["account_id"] == "acct_test_1"
    assert len(stripe_fake.called("create_connect_account")) == 1


def test_platform_profile_not_configured(client, stripe_fake, db):
    register_clinic_admin(client, "owner@example.com")
    stripe_fake.fail_with = RuntimeError(
        "Please review the responsibilities of managing losses at "
        "https://dashboard.stripe.com/settings/connect/platform-profile"
    )

    response = client.post("/api/stripe-connect/create-account")
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["error_code"] == "PLATFORM_NOT_CONFIGURED"
    assert organization(db).stripe_connect_account_id is None


def test_account_creation_failure(client, stripe_fake):
    register_clinic_admin(client, "owner@example.com")
    stripe_fake.fail_with = RuntimeError("Invalid API Key provided")

    response = client.post("/api/stripe-connect/create-account")
    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    body = response.json()
    assert body["error_code"] == "CREATION_FAILED"
    assert body["error"] == "Invalid API Key provided"


def test_only_clinic_admins_onboard(super_admin):
    response = super_admin.post("/api/stripe-connect/create-account")
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_refresh_onboarding(client, stripe_fake):
    register_clinic_admin(client, "owner@example.com")

    missing = client.post("/api/stripe-connect/refresh-onboarding")
    assert missing.status_code == status.HTTP_400_BAD_REQUEST
    assert missing.json()["message"] == "No Stripe Connect account found"

    client.post("/api/stripe-connect/create-account")
    refreshed = client.post("/api/stripe-connect/refresh-onboarding")
    assert refreshed.status_code == status.HTTP_200_OK
    assert refreshed.json()["onboardingUrl"].endswith("acct_test_1")
    assert len(stripe_fake.called("create_account_link")) == 2


# ---------------------------------------------------------------------------
# Status
# ---------------------------------------------------------------------------


def test_status_without_account(client):
    register_clinic_admin(client, "owner@example.com")

    response = client.get("/api/stripe-connect/status")
    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["hasAccount"] is False
    assert body["businessFeaturesEnabled"] is False


def test_status_of_pending_account(client, db):
    register_clinic_admin(client, "owner@example.com")
    client.post("/api/stripe-connect/create-account")

    body = client.get("/api/stripe-connect/status").json()
    assert body["hasAccount"] is True
    assert body["payoutsEnabled"] is False
    assert body["businessFeaturesEnabled"] is False
    assert body["requirements"]["currently_due"] == ["external_account"]

    org = organization(db)
    assert org.payouts_enabled is False
    assert org.capabilities_transfers == "inactive"


def test_status_of_ready_account_refreshes_telemetry_only(client, stripe_fake, db):
    register_clinic_admin(client, "owner@example.com")
    client.post("/api/stripe-connect/create-account")
    org_id = organization(db).id
    stripe_fake.accounts["acct_test_1"] = ready_account("acct_test_1", org_id)

    body = client.get(f"/api/stripe-connect/status/{org_id}").json()
    assert body["businessFeaturesEnabled"] is True
    assert body["transfersActive"] is True
    assert body["hasExternalAccount"] is True

    org = organization(db)
    assert org.payouts_enabled is True
    assert org.has_external_account is True
    # Only verified webhooks flip the stored flag
    assert org.business_features_enabled is False


def test_status_of_other_organization_is_denied(make_client):
    owner = make_client()
    register_clinic_admin(owner, "owner@example.com")
    other = make_client()
    register_clinic_admin(other, "other@example.com", business_name="Radiance")

    owner_org = owner.get("/api/organizations/my-organization").json()
    response = other.get(f"/api/stripe-connect/status/{owner_org['id']}")
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["message"] == "Access denied"


def test_status_failure(client, stripe_fake):
    register_clinic_admin(client, "owner@example.com")
    client.post("/api/stripe-connect/create-account")
    stripe_fake.fail_with = RuntimeError("Stripe is down")

    response = client.get("/api/stripe-connect/status")
    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR


@pytest.mark.parametrize(
    "overrides",
    [
        {"payouts_enabled": False},
        {"capabilities": {"transfers": "pending"}},
        {"external_accounts": {"data": []}},
        {"requirements": {"currently_due": ["individual.verification.document"]}},
    ],
)
def test_account_is_not_ready_until_everything_is_in_place(overrides):
    assert account_readiness(ready_account("acct_1", "org_1", **overrides))["ready"] is False


def test_ready_account():
    readiness = account_readiness(ready_account("acct_1", "org_1"))
    assert readiness["ready"] is True
    assert readiness["requirements"] == {"currently_due": [], "eventually_due": [], "past_due": []}


# ---------------------------------------------------------------------------
# Webhook
# ---------------------------------------------------------------------------


def test_webhook_requires_secret(client, monkeypatch):
    monkeypatch.setattr(config, "STRIPE_WEBHOOK_SECRET", None)

    response = send_event(client, event("account.updated", {}))
    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert response.json()["message"] == "Webhook not configured"


def test_webhook_rejects_bad_signature(client, webhook_secret):
    response = send_event(client, event("account.updated", {}), signature="t=1,v1=forged")
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["message"] == "Invalid signature"


def test_account_updated_enables_business_features(client, db, webhook_secret):
    register_clinic_admin(client, "owner@example.com")
    client.post("/api/stripe-connect/create-account")
    org_id = organization(db).id

    response = send_event(client, event("account.updated", ready_account("acct_test_1", org_id)))
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"received": True}

    org = organization(db)
    assert org.business_features_enabled is True
    assert org.stripe_account_status == "active"
    assert org.capabilities_transfers == "active"


def test_account_updated_matches_by_account_id(client, db, webhook_secret):
    register_clinic_admin(client, "owner@example.com")
    client.post("/api/stripe-connect/create-account")

    account = ready_account("acct_test_1", "unknown-org", metadata={})
    send_event(client, event("account.updated", account))
    assert organization(db).business_features_enabled is True


def test_account_losing_readiness_disables_features(client, db, webhook_secret):
    register_clinic_admin(client, "owner@example.com")
    client.post("/api/stripe-connect/create-account")
    org_id = organization(db).id
    send_event(client, event("account.updated", ready_account("acct_test_1", org_id)))

    send_event(client, event("account.updated", ready_account("acct_test_1", org_id, payouts_enabled=False)))
    org = organization(db)
    assert org.business_features_enabled is False
    assert org.stripe_account_status == "pending"


def test_capability_updated_refetches_account(client, stripe_fake, db, webhook_secret):
    register_clinic_admin(client, "owner@example.com")
    client.post("/api/stripe-connect/create-account")
    org_id = organization(db).id
    stripe_fake.accounts["acct_test_1"] = ready_account("acct_test_1", org_id)

    response = send_event(client, event("capability.updated", {"id": "transfers", "account": "acct_test_1"}))
    assert response.status_code == status.HTTP_200_OK
    assert stripe_fake.called("retrieve_account") == [{"account_id": "acct_test_1"}]
    assert organization(db).business_features_enabled is True


def test_subscription_deleted_cancels(client, db, webhook_secret):
    register_clinic_admin(client, "owner@example.com")
    org = organization(db)
    org.stripe_subscription_id = "sub_live_1"
    org.subscription_status = "active"
    db.commit()

    send_event(client, event("customer.subscription.deleted", {"id": "sub_live_1", "status": "canceled"}))
    assert organization(db).subscription_status == "canceled"


def test_subscription_updated_by_metadata(client, db, webhook_secret):
    register_clinic_admin(client, "owner@example.com")
    org_id = organization(db).id

    subscription = {"id": "sub_other", "status": "past_due", "metadata": {"organizationId": org_id}}
    send_event(client, event("customer.subscription.updated", subscription))
    assert organization(db).subscription_status == "past_due"


def test_unknown_events_are_acknowledged(client, webhook_secret):
    response = send_event(client, event("invoice.paid", {"id": "in_1"}))
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"received": True}


# ---------------------------------------------------------------------------
# Stripe client wrapper
# ---------------------------------------------------------------------------


def test_price_is_sent_in_cents_on_connected_account(monkeypatch):
    sent = {}

    def fake_create(**params):
        sent.update(params)
        return {"id": "price_1", **params}

    monkeypatch.setattr(stripe.Price, "create", fake_create)
    price = StripeService(api_key="sk_test_123").create_price(
        "prod_1", 99.99, interval="month", stripe_account="acct_1"
    )

    assert price["id"] == "price_1"
    assert sent["unit_amount"] == 9999
    assert sent["recurring"] == {"interval": "month"}
    assert sent["stripe_account"] == "acct_1"
    assert sent["api_key"] == "sk_test_123"


def test_stripe_calls_need_a_secret_key():
    service = StripeService(api_key=None)
    assert service.is_available() is False
    with pytest.raises(StripeNotConfiguredError):
        service.create_product("Botox")
