import pytest

from backoffice.models import BookingVersion

NEW_BOOKING = {
    "email": "John@Example.com",
    "firstName": "John",
    "lastName": "Doe",
    "tourPackageName": "Philippines Sunrise",
    "tourDate": "2030-09-01",
    "bookingType": "Single Booking",
}


@pytest.fixture
def booking(client, tour):
    response = client.post("/bookings", json=NEW_BOOKING)
    assert response.status_code == 201
    return response.json()


@pytest.fixture
def terms(client):
    response = client.post("/payment-terms/initialize-defaults")
    assert response.status_code == 200
    return {term["name"]: term for term in response.json()["terms"]}


class TestCreate:
    def test_booking_is_computed_from_the_tour(self, booking):
        data = booking["data"]
        assert booking["bookingId"].startswith("SB-PHS-20300901-JD")
        assert booking["email"] == "john@example.com"
        assert booking["accessToken"]
        assert data["fullName"] == "John Doe"
        assert data["returnDate"] == "2030-09-14"
        assert data["paymentCondition"] == "Standard Booking, P4"
        assert data["reservationFee"] == 250
        assert data["remainingBalance"] == 1750
        assert data["tourPackagePricingVersion"] == 1

    def test_custom_travel_date_price_applies(self, client, tour):
        response = client.post("/bookings", json={**NEW_BOOKING, "tourDate": "2030-06-01"})
        assert response.json()["data"]["discountedTourCost"] == 1800

    def test_unknown_tour(self, client):
        assert client.post("/bookings", json=NEW_BOOKING).status_code == 404

    def test_invalid_booking_type(self, client, tour):
        assert client.post("/bookings", json={**NEW_BOOKING, "bookingType": "Solo"}).status_code == 422

    def test_creation_is_versioned(self, db, booking):
        version = db.query(BookingVersion).filter(BookingVersion.booking_id == booking["id"]).one()
        assert version.change_type == "create"
        assert version.created_by == "admin-uid"


class TestUpdate:
    def test_edit_recomputes_dependent_columns(self, client, booking):
        response = client.patch(f"/bookings/{booking['id']}", json={"fields": {"firstName": "Jane"}})
        assert response.status_code == 200
        body = response.json()
        assert body["booking"]["data"]["fullName"] == "Jane Doe"
        assert body["booking"]["data"]["travellerInitials"] == "JD"
        assert body["versionId"]
        assert body["reminderJobId"] is None

    def test_enabling_reminders_queues_setup(self, client, booking, queued_jobs):
        response = client.patch(f"/bookings/{booking['id']}", json={"fields": {"enablePaymentReminder": True}})
        assert response.json()["reminderJobId"] == "job-1"
        assert queued_jobs == [("setup_payment_reminders", (booking["id"],))]

        response = client.patch(f"/bookings/{booking['id']}", json={"fields": {"enablePaymentReminder": False}})
        assert response.json()["remindersCancelled"] == 0

    def test_empty_update_is_rejected(self, client, booking):
        assert client.patch(f"/bookings/{booking['id']}", json={"fields": {}}).status_code == 422


class TestPaymentPlan:
    def test_installment_plan(self, client, booking, terms, queued_jobs):
        term_id = terms["P2 - Two Instalments"]["id"]
        response = client.post(f"/bookings/{booking['id']}/payment-plan", json={"paymentTermId": term_id})

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["paymentPlan"] == "P2"
        assert data["bookingStatus"] == "Installment 0/2"
        assert data["p1Amount"] == 875
        assert data["p2Amount"] == 875
        assert data["p3DueDate"] == ""
        assert data["enablePaymentReminder"] is True
        assert queued_jobs == [("setup_payment_reminders", (booking["id"],))]

    def test_full_payment_plan(self, client, booking, terms):
        term_id = terms["Full Payment Required Within 2 Days"]["id"]
        data = client.post(f"/bookings/{booking['id']}/payment-plan", json={"paymentTermId": term_id}).json()["data"]
        assert data["paymentPlan"] == "Full Payment"
        assert data["bookingStatus"] == "Waiting for Full Payment"
        assert data["fullPaymentAmount"] == 1750

    def test_installment_plan_charges_the_discounted_cost(self, client, tour, terms):
        booking = client.post("/bookings", json={**NEW_BOOKING, "tourDate": "2030-06-01"}).json()
        assert booking["data"]["p2Amount"] == 775

        term_id = terms["P2 - Two Instalments"]["id"]
        data = client.post(f"/bookings/{booking['id']}/payment-plan", json={"paymentTermId": term_id}).json()["data"]
        assert data["p1Amount"] == 775
        assert data["p2Amount"] == 775
        assert data["remainingBalance"] == 1550

    def test_full_payment_plan_charges_the_discounted_cost(self, client, tour, terms):
        booking = client.post("/bookings", json={**NEW_BOOKING, "tourDate": "2030-06-01"}).json()

        term_id = terms["Full Payment Required Within 2 Days"]["id"]
        data = client.post(f"/bookings/{booking['id']}/payment-plan", json={"paymentTermId": term_id}).json()["data"]
        assert data["fullPaymentAmount"] == 1550
        assert data["remainingBalance"] == 1550

    def test_plan_can_only_be_chosen_once(self, client, booking, terms):
        term_id = terms["P2 - Two Instalments"]["id"]
        client.post(f"/bookings/{booking['id']}/payment-plan", json={"paymentTermId": term_id})
        second = client.post(f"/bookings/{booking['id']}/payment-plan", json={"paymentTermId": term_id})
        assert second.status_code == 409

    def test_invalid_booking_term_cannot_be_selected(self, client, booking, terms):
        term_id = terms["Invalid Booking"]["id"]
        response = client.post(f"/bookings/{booking['id']}/payment-plan", json={"paymentTermId": term_id})
        assert response.status_code == 400

    def test_guest_selects_plan_through_access_token(self, client, booking, terms):
        token = booking["accessToken"]
        term_id = terms["P3 - Three Instalments"]["id"]
        response = client.post(f"/bookings/public/{token}/payment-plan", json={"paymentTermId": term_id})
        assert response.status_code == 200
        assert response.json()["data"]["paymentPlan"] == "P3"


class TestPublicView:
    def test_exposes_only_guest_fields(self, client, booking):
        response = client.get(f"/bookings/public/{booking['accessToken']}")
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["fullName"] == "John Doe"
        assert "tags" not in data
        assert "priceSnapshotDate" not in data

    def test_unknown_token(self, client):
        assert client.get("/bookings/public/nope").status_code == 404


class TestListingAndDeletion:
    def test_stats(self, client, booking):
        stats = client.get("/bookings/stats").json()
        assert stats["total"] == 1
        assert stats["byTourPackage"] == {"Philippines Sunrise": 1}

    def test_delete_all_requires_confirmation(self, client, booking):
        assert client.delete("/bookings").status_code == 400
        assert client.delete("/bookings", params={"confirm": True}).json() == {"deleted": 1}
        assert client.get("/bookings").json() == []

    def test_batch_delete(self, client, booking):
        response = client.post("/bookings/batch/delete", json={"ids": [booking["id"], "missing"]})
        assert response.json() == {"deleted": 1}
        assert client.get(f"/bookings/{booking['id']}").status_code == 404

    def test_delete_one(self, client, db, booking):
        assert client.delete(f"/bookings/{booking['id']}").status_code == 204
        versions = db.query(BookingVersion).filter(BookingVersion.booking_id == booking["id"]).all()
        assert {v.change_type for v in versions} == {"create", "delete"}


class TestTours:
    def test_create_and_slug_conflict(self, client, tour):
        payload = {"name": "Philippines Sunrise", "pricing": {"original": 1500, "deposit": 200}}
        assert client.post("/tours", json=payload).status_code == 409

        created = client.post("/tours", json={**payload, "name": "Vietnam Explorer", "tourCode": "VNE"})
        assert created.status_code == 201
        assert created.json()["slug"] == "vietnam-explorer"
        assert created.json()["currentVersion"] == 1

    def test_pricing_change_bumps_version(self, client, tour):
        response = client.put(
            f"/tours/{tour.id}",
            json={"pricing": {"original": 2100, "deposit": 250, "currency": "GBP"}, "priceChangeReason": "Fuel"},
        )
        body = response.json()
        assert body["currentVersion"] == 2
        assert body["pricingHistory"][0]["pricing"]["original"] == 2000
        assert body["pricingHistory"][0]["reason"] == "Fuel"

    def test_unchanged_pricing_keeps_version(self, client, tour):
        response = client.put(f"/tours/{tour.id}", json={"location": "Palawan"})
        assert response.json()["currentVersion"] == 1

    def test_delete(self, client, tour):
        assert client.delete(f"/tours/{tour.id}").status_code == 200
        assert client.get(f"/tours/{tour.id}").status_code == 404


class TestPaymentTerms:
    def test_defaults_are_only_seeded_once(self, client, terms):
        assert len(terms) == 6
        assert client.post("/payment-terms/initialize-defaults").status_code == 409

    def test_toggle_hides_term_from_active_list(self, client, terms):
        term_id = terms["P4 - Four Instalments"]["id"]
        assert client.patch(f"/payment-terms/{term_id}/toggle").json()["isActive"] is False
        active = client.get("/payment-terms/active").json()
        assert term_id not in [t["id"] for t in active]
        assert len(active) == 5


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}
