import pytest
from fastapi import status

from aesthiq.models import Appointment, AuditLog, Client, Location, Organization, Reward, Service, Transaction
from conftest import add_staff_member, event, register_clinic_admin, register_patient, send_event

GUEST = {"firstName": "Nora", "lastName": "Reyes", "email": "Nora@example.com", "phone": "555-0199"}


@pytest.fixture
def botox(clinic, db) -> Service:
    return db.query(Service).filter(Service.organization_id == clinic.organization_id).one()


@pytest.fixture
def provider(clinic, db):
    return add_staff_member(db, clinic.organization_id)


def checkout(clinic, service, staff, start="2026-03-02T10:00:00Z", end="2026-03-02T10:30:00Z", **extra):
    return {
        "serviceId": service.id,
        "locationId": clinic.location_id,
        "staffId": staff.id,
        "startTime": start,
        "endTime": end,
        **extra,
    }


def require_deposit(db, service, amount=100.0):
    service.deposit_required = True
    service.deposit_amount = amount
    db.commit()


def pay(make_client, body):
    response = make_client().post("/api/appointments/book-with-payment", json=body)
    assert response.status_code == status.HTTP_200_OK, response.text
    return response.json()


# ---------------------------------------------------------------------------
# Booking
# ---------------------------------------------------------------------------


def test_guest_books_with_full_payment(clinic, make_client, db, stripe_fake, botox, provider):
    body = pay(make_client, checkout(clinic, botox, provider, clientInfo=GUEST, notes="<b>First visit</b>"))
    assert body["paymentAmount"] == 350.0
    assert body["paymentType"] == "appointment_full"
    assert body["clientSecret"] == "pi_test_2_secret"

    intent = stripe_fake.called("create_payment_intent")[0]
    assert intent["amount"] == 350.0
    assert intent["customer_id"] == "cus_test_1"
    assert intent["stripe_account"] == "acct_ready_1"
    assert intent["metadata"]["appointmentId"] == body["appointmentId"]

    appointment = db.query(Appointment).filter(Appointment.id == body["appointmentId"]).one()
    assert appointment.status == "scheduled"
    assert appointment.total_amount == 350.0
    assert appointment.notes == "First visit"

    guest = db.query(Client).filter(Client.id == appointment.client_id).one()
    assert guest.email == "nora@example.com"
    assert guest.organization_id == clinic.organization_id
    assert guest.stripe_customer_id == "cus_test_1"

    transaction = db.query(Transaction).one()
    assert transaction.status == "pending"
    assert transaction.amount == 350.0
    assert transaction.stripe_payment_intent_id == "pi_test_2"


def test_deposit_is_charged_when_the_service_takes_one(clinic, make_client, db, botox, provider):
    require_deposit(db, botox)

    body = pay(make_client, checkout(clinic, botox, provider, clientInfo=GUEST, paymentType="deposit"))
    assert body["paymentAmount"] == 100.0
    assert body["paymentType"] == "appointment_deposit"

    # Without a configured deposit the full price is due
    botox.deposit_required = False
    db.commit()
    full = pay(
        make_client,
        checkout(clinic, botox, provider, "2026-03-02T11:00:00Z", "2026-03-02T11:30:00Z",
                 clientInfo=GUEST, paymentType="deposit"),
    )
    assert full["paymentAmount"] == 350.0

    # The returning guest is matched by email
    assert db.query(Client).filter(Client.email == "nora@example.com").count() == 1


def test_guest_booking_needs_client_info(clinic, client, botox, provider):
    response = client.post("/api/appointments/book-with-payment", json=checkout(clinic, botox, provider))
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["message"] == "Client information required for public booking"

    invalid = client.post(
        "/api/appointments/book-with-payment",
        json=checkout(clinic, botox, provider, clientInfo=GUEST, paymentType="installments"),
    )
    assert invalid.status_code == status.HTTP_400_BAD_REQUEST
    assert invalid.json()["message"] == "Invalid data"


def test_booking_validates_location_and_staff(clinic, make_client, db, botox, provider):
    other = make_client()
    register_clinic_admin(other, "rival@example.com", business_name="Rival Spa")
    rival_org = other.get("/api/organizations/my-organization").json()["id"]
    rival_location = Location(organization_id=rival_org, name="Uptown", slug="rival-uptown")
    db.add(rival_location)
    db.commit()

    guest = make_client()
    wrong_location = checkout(clinic, botox, provider, clientInfo=GUEST, locationId=rival_location.id)
    response = guest.post("/api/appointments/book-with-payment", json=wrong_location)
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["message"] == "Invalid location for this service"

    wrong_staff = checkout(clinic, botox, provider, clientInfo=GUEST, staffId="missing")
    response = guest.post("/api/appointments/book-with-payment", json=wrong_staff)
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["message"] == "Staff member not found"

    missing = guest.post(
        "/api/appointments/book-with-payment", json=checkout(clinic, botox, provider, clientInfo=GUEST, serviceId="x")
    )
    assert missing.status_code == status.HTTP_404_NOT_FOUND
    assert db.query(Appointment).count() == 0


def test_paid_booking_respects_existing_appointments(clinic, make_client, db, stripe_fake, botox, provider):
    pay(make_client, checkout(clinic, botox, provider, clientInfo=GUEST))

    response = make_client().post(
        "/api/appointments/book-with-payment",
        json=checkout(
            clinic, botox, provider, "2026-03-02T12:15:00+02:00", "2026-03-02T12:45:00+02:00",
            clientInfo={**GUEST, "email": "late@example.com"},
        ),
    )
    assert response.status_code == status.HTTP_409_CONFLICT
    assert db.query(Appointment).count() == 1
    assert db.query(Client).filter(Client.email == "late@example.com").count() == 0
    assert len(stripe_fake.called("create_payment_intent")) == 1


def test_clinic_without_connect_account(clinic, make_client, db, botox, provider):
    organization = db.query(Organization).filter(Organization.id == clinic.organization_id).one()
    organization.stripe_connect_account_id = None
    db.commit()

    response = make_client().post(
        "/api/appointments/book-with-payment", json=checkout(clinic, botox, provider, clientInfo=GUEST)
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["message"] == "This clinic is not accepting online payments yet"


def test_stripe_failure_leaves_nothing_behind(clinic, make_client, db, stripe_fake, botox, provider):
    stripe_fake.fail_with = RuntimeError("api_connection_error")

    response = make_client().post(
        "/api/appointments/book-with-payment", json=checkout(clinic, botox, provider, clientInfo=GUEST)
    )
    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert response.json()["message"] == "Failed to create appointment with payment"
    assert db.query(Appointment).count() == 0
    assert db.query(Client).filter(Client.email == "nora@example.com").count() == 0


def test_signed_in_patient_books_as_themselves(clinic, make_client, db, botox, provider):
    patient = make_client()
    register_patient(patient, clinic.organization["slug"])

    response = patient.post("/api/appointments/book-with-payment", json=checkout(clinic, botox, provider))
    assert response.status_code == status.HTTP_200_OK, response.text

    appointment = db.query(Appointment).one()
    assert appointment.client.email == "mia@example.com"
    assert db.query(AuditLog).filter(AuditLog.resource == "appointment").count() == 1


def test_patient_cannot_book_another_clinic(clinic, make_client, db, botox, provider):
    other = make_client()
    register_clinic_admin(other, "rival@example.com", business_name="Rival Spa")
    rival_slug = other.get("/api/organizations/my-organization").json()["slug"]

    patient = make_client()
    register_patient(patient, rival_slug)
    response = patient.post("/api/appointments/book-with-payment", json=checkout(clinic, botox, provider))
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["message"] == "This service is not offered by your clinic"


# ---------------------------------------------------------------------------
# Finalizing
# ---------------------------------------------------------------------------


def test_finalize_confirms_appointment_and_awards_points(clinic, make_client, db, stripe_fake, botox, provider):
    require_deposit(db, botox)
    guest = make_client()
    booked = guest.post(
        "/api/appointments/book-with-payment",
        json=checkout(clinic, botox, provider, clientInfo=GUEST, paymentType="deposit"),
    ).json()
    intent_id = booked["clientSecret"].removesuffix("_secret")
    stripe_fake.succeed(intent_id)

    payload = {"appointmentId": booked["appointmentId"], "paymentIntentId": intent_id}
    response = guest.post("/api/appointments/finalize-payment", json=payload)
    assert response.status_code == status.HTTP_200_OK, response.text
    appointment = response.json()["appointment"]
    assert response.json()["success"] is True
    assert appointment["status"] == "confirmed"
    assert appointment["depositPaid"] == 100.0
    assert appointment["serviceName"] == "Botox"
    assert stripe_fake.called("retrieve_payment_intent")[0]["stripe_account"] == "acct_ready_1"

    # Finalizing again does not pay out twice
    assert guest.post("/api/appointments/finalize-payment", json=payload).status_code == status.HTTP_200_OK
    rewards = db.query(Reward).filter(Reward.reference_type == "payment").all()
    assert [reward.points for reward in rewards] == [100]
    assert rewards[0].reason == "Service payment: Botox"
    assert db.query(Transaction).one().status == "completed"


def test_finalize_requires_a_succeeded_payment(clinic, make_client, db, botox, provider):
    guest = make_client()
    booked = pay(make_client, checkout(clinic, botox, provider, clientInfo=GUEST))
    intent_id = booked["clientSecret"].removesuffix("_secret")

    response = guest.post(
        "/api/appointments/finalize-payment",
        json={"appointmentId": booked["appointmentId"], "paymentIntentId": intent_id},
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["message"] == "Payment not confirmed"
    assert db.query(Appointment).one().status == "scheduled"

    missing = guest.post("/api/appointments/finalize-payment", json={"appointmentId": booked["appointmentId"]})
    assert missing.status_code == status.HTTP_400_BAD_REQUEST
    assert missing.json()["message"] == "Appointment ID and Payment Intent ID required"

    mismatched = guest.post(
        "/api/appointments/finalize-payment",
        json={"appointmentId": booked["appointmentId"], "paymentIntentId": "pi_elsewhere"},
    )
    assert mismatched.status_code == status.HTTP_400_BAD_REQUEST
    assert mismatched.json()["message"] == "Payment does not match this appointment"


def test_payment_webhooks_settle_transactions(clinic, make_client, db, botox, provider, webhook_secret):
    first = pay(make_client, checkout(clinic, botox, provider, clientInfo=GUEST))
    second = pay(
        make_client,
        checkout(clinic, botox, provider, "2026-03-02T11:00:00Z", "2026-03-02T11:30:00Z", clientInfo=GUEST),
    )
    paid_id = first["clientSecret"].removesuffix("_secret")
    failed_id = second["clientSecret"].removesuffix("_secret")

    ok = send_event(clinic.client, event("payment_intent.succeeded", {"id": paid_id, "amount_received": 35000}))
    assert ok.status_code == status.HTTP_200_OK
    send_event(clinic.client, event("payment_intent.payment_failed", {"id": failed_id}))

    db.expire_all()
    statuses = {t.stripe_payment_intent_id: t.status for t in db.query(Transaction).all()}
    assert statuses == {paid_id: "completed", failed_id: "failed"}
    confirmed = db.query(Appointment).filter(Appointment.id == first["appointmentId"]).one()
    assert confirmed.status == "confirmed"
    assert confirmed.deposit_paid == 350.0
    assert db.query(Appointment).filter(Appointment.id == second["appointmentId"]).one().status == "scheduled"


# ---------------------------------------------------------------------------
# Balance and transaction history
# ---------------------------------------------------------------------------


def deposit_paid_booking(clinic, make_client, db, stripe_fake, botox, provider, **extra):
    require_deposit(db, botox)
    booked = pay(make_client, checkout(clinic, botox, provider, paymentType="deposit", **extra))
    intent_id = booked["clientSecret"].removesuffix("_secret")
    stripe_fake.succeed(intent_id)
    finalized = make_client().post(
        "/api/appointments/finalize-payment",
        json={"appointmentId": booked["appointmentId"], "paymentIntentId": intent_id},
    )
    assert finalized.status_code == status.HTTP_200_OK, finalized.text
    return booked["appointmentId"]


def test_clinic_charges_the_remaining_balance(clinic, make_client, db, stripe_fake, botox, provider):
    appointment_id = deposit_paid_booking(clinic, make_client, db, stripe_fake, botox, provider, clientInfo=GUEST)

    response = clinic.client.post(f"/api/appointments/{appointment_id}/finalize-payment", json={"finalTotal": 400})
    assert response.status_code == status.HTTP_200_OK, response.text
    body = response.json()
    assert body["finalTotal"] == 400
    assert body["remainingBalance"] == 300.0
    assert body["paymentIntentId"] in stripe_fake.payment_intents
    assert body["clientSecret"] == f"{body['paymentIntentId']}_secret"

    charge = stripe_fake.called("create_payment_intent")[-1]
    assert charge["amount"] == 300.0
    assert charge["customer_id"] == "cus_test_1"
    assert charge["metadata"]["paymentType"] == "appointment_balance"

    history = clinic.client.get(f"/api/appointments/{appointment_id}/transactions").json()
    assert sorted(t["type"] for t in history["transactions"]) == ["appointment_balance", "appointment_deposit"]
    assert history["summary"] == {
        "totalAmount": 400.0,
        "totalPaid": 100.0,
        "remainingBalance": 300.0,
        "depositPaid": 100.0,
    }
    assert db.query(AuditLog).filter(AuditLog.action == "finalize_payment").count() == 1

    settled = clinic.client.post(f"/api/appointments/{appointment_id}/finalize-payment", json={"finalTotal": 100})
    assert settled.status_code == status.HTTP_400_BAD_REQUEST
    assert settled.json()["message"] == "No remaining balance to charge"


def test_balance_charge_is_clinic_only(clinic, make_client, db, stripe_fake, botox, provider):
    patient = make_client()
    register_patient(patient, clinic.organization["slug"])
    appointment_id = deposit_paid_booking(clinic, make_client, db, stripe_fake, botox, provider, clientInfo=GUEST)

    response = patient.post(f"/api/appointments/{appointment_id}/finalize-payment", json={"finalTotal": 400})
    assert response.status_code == status.HTTP_403_FORBIDDEN

    other = make_client()
    register_clinic_admin(other, "rival@example.com", business_name="Rival Spa")
    foreign = other.post(f"/api/appointments/{appointment_id}/finalize-payment", json={"finalTotal": 400})
    assert foreign.status_code == status.HTTP_403_FORBIDDEN
    assert foreign.json()["message"] == "Access denied"


def test_patients_only_see_their_own_transactions(clinic, make_client, db, botox, provider):
    patient = make_client()
    register_patient(patient, clinic.organization["slug"])
    patient.post("/api/appointments/book-with-payment", json=checkout(clinic, botox, provider))
    own = db.query(Appointment).one().id

    response = patient.get(f"/api/appointments/{own}/transactions")
    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert len(body["transactions"]) == 1
    assert body["summary"]["totalPaid"] == 0
    assert body["summary"]["remainingBalance"] == 350.0

    neighbour = make_client()
    register_patient(neighbour, clinic.organization["slug"], "leo@example.com")
    denied = neighbour.get(f"/api/appointments/{own}/transactions")
    assert denied.status_code == status.HTTP_403_FORBIDDEN
    assert denied.json()["message"] == "Access denied"

    assert neighbour.get("/api/appointments/missing/transactions").status_code == status.HTTP_404_NOT_FOUND
