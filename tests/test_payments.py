from datetime import datetime, timedelta

import pytest
import stripe
from fastapi import HTTPException

from backoffice.domain.bookings.repository import BookingRepository
from backoffice.domain.payments import service as payments
from backoffice.domain.payments.schemas import ReservationPaymentRequest
from backoffice.domain.payments.service import StripePaymentService
from backoffice.models import StripePayment

NOW = datetime(2030, 1, 10, 12, 0)


@pytest.fixture
def stripe_calls(monkeypatch):
    """Records Stripe API calls and answers them with canned objects"""
    calls = {"intent_create": [], "intent_retrieve": [], "checkout": [], "refund": []}
    intents = {}

    def create_intent(**kwargs):
        calls["intent_create"].append(kwargs)
        return {"id": "pi_new", "client_secret": "secret_new", "status": "requires_payment_method"}

    def retrieve_intent(intent_id):
        calls["intent_retrieve"].append(intent_id)
        return intents[intent_id]

    def create_session(**kwargs):
        calls["checkout"].append(kwargs)
        return {"id": "cs_new", "url": "https://checkout.stripe.com/c/cs_new"}

    def create_refund(**kwargs):
        calls["refund"].append(kwargs)
        return {"id": "re_1", "amount": 25000, "currency": "gbp", "status": "succeeded", "reason": kwargs["reason"]}

    monkeypatch.setattr(payments, "STRIPE_SECRET_KEY", "sk_test_123")
    monkeypatch.setattr(stripe.PaymentIntent, "create", create_intent)
    monkeypatch.setattr(stripe.PaymentIntent, "retrieve", retrieve_intent)
    monkeypatch.setattr(stripe.checkout.Session, "create", create_session)
    monkeypatch.setattr(stripe.Refund, "create", create_refund)
    calls["intents"] = intents
    return calls


def reservation_request(tour):
    return ReservationPaymentRequest(
        email="John@Example.com",
        firstName="John",
        lastName="Doe",
        tourPackageId=tour.id,
        tourDate="2030-09-01",
    )


class TestReservationPayment:
    def test_creates_intent_for_the_deposit(self, db, tour, stripe_calls):
        result = StripePaymentService(db).init_reservation_payment(reservation_request(tour))

        assert result["reused"] is False
        assert result["clientSecret"] == "secret_new"
        assert result["amount"] == 250
        (create,) = stripe_calls["intent_create"]
        assert create["amount"] == 25000
        assert create["currency"] == payments.STRIPE_CURRENCY
        assert create["idempotency_key"] == f"reservationFee:john@example.com:{tour.id}"
        payment = db.query(StripePayment).one()
        assert payment.status == "reserve_pending"
        assert payment.stripe_intent_id == "pi_new"

    def test_reuses_unfinished_intent(self, db, tour, stripe_calls):
        existing = StripePayment(
            type="reservationFee",
            status="reserve_pending",
            email="john@example.com",
            tour_package_id=tour.id,
            amount=250,
            currency="GBP",
            stripe_intent_id="pi_old",
        )
        db.add(existing)
        db.commit()
        stripe_calls["intents"]["pi_old"] = {
            "id": "pi_old",
            "client_secret": "secret_old",
            "status": "requires_payment_method",
        }

        result = StripePaymentService(db).init_reservation_payment(reservation_request(tour))

        assert result == {
            "clientSecret": "secret_old",
            "paymentDocId": existing.id,
            "amount": 250,
            "currency": "GBP",
            "reused": True,
        }
        assert stripe_calls["intent_create"] == []
        db.refresh(existing)
        assert existing.meta["tourDate"] == "2030-09-01"

    def test_succeeded_intent_is_not_reused(self, db, tour, stripe_calls):
        db.add(
            StripePayment(
                type="reservationFee",
                status="reserve_pending",
                email="john@example.com",
                tour_package_id=tour.id,
                amount=250,
                stripe_intent_id="pi_done",
            )
        )
        db.commit()
        stripe_calls["intents"]["pi_done"] = {"id": "pi_done", "status": "succeeded"}

        result = StripePaymentService(db).init_reservation_payment(reservation_request(tour))

        assert result["reused"] is False
        assert len(stripe_calls["intent_create"]) == 1

    def test_unknown_tour(self, db, stripe_calls):
        request = ReservationPaymentRequest(
            email="john@example.com", firstName="John", lastName="Doe", tourPackageId="missing", tourDate="2030-09-01"
        )
        with pytest.raises(HTTPException) as exc:
            StripePaymentService(db).init_reservation_payment(request)
        assert exc.value.status_code == 404

    def test_unconfigured_stripe(self, db, tour, monkeypatch):
        monkeypatch.setattr(payments, "STRIPE_SECRET_KEY", None)
        with pytest.raises(HTTPException) as exc:
            StripePaymentService(db).init_reservation_payment(reservation_request(tour))
        assert exc.value.status_code == 503


class TestInstallmentCheckout:
    @pytest.fixture
    def booking(self, db):
        return BookingRepository.create_booking(
            db,
            {
                "bookingId": "SB-PHS-20300901-JD001",
                "emailAddress": "john@example.com",
                "tourPackageName": "Philippines Sunrise",
                "paymentPlan": "P2",
                "p1DueDate": "Feb 2, 2030",
                "p1Amount": 875,
                "p2DueDate": "Mar 2, 2030",
                "p2Amount": 875,
                "p3DueDate": "",
                "p3Amount": "",
            },
            access_token="guest-token",
        )

    def checkout(self, db, installment_id, now=NOW):
        return StripePaymentService(db).create_installment_checkout("guest-token", installment_id, now=now)

    def test_creates_session_with_a_24_hour_token(self, db, booking, stripe_calls):
        result = self.checkout(db, "p1")

        assert result["checkoutUrl"] == "https://checkout.stripe.com/c/cs_new"
        payment = db.query(StripePayment).one()
        assert payment.status == "installment_pending"
        assert payment.amount == 875
        assert payment.payment_token_expires_at == NOW + timedelta(hours=24)

        (session,) = stripe_calls["checkout"]
        assert session["line_items"][0]["price_data"]["unit_amount"] == 87500
        assert session["metadata"]["payment_token"] == payment.payment_token
        assert session["metadata"]["installment_id"] == "p1"

        db.refresh(booking)
        token = booking.data["paymentTokens"]["p1"]
        assert token["status"] == "processing"
        assert token["token"] == payment.payment_token
        assert token["expiresAt"] == (NOW + timedelta(hours=24)).isoformat()

    @pytest.mark.parametrize("installment_id", ["p5", "deposit"])
    def test_rejects_unknown_installment(self, db, booking, stripe_calls, installment_id):
        with pytest.raises(HTTPException) as exc:
            self.checkout(db, installment_id)
        assert exc.value.status_code == 400

    def test_rejects_term_outside_the_plan(self, db, booking, stripe_calls):
        with pytest.raises(HTTPException) as exc:
            self.checkout(db, "p3")
        assert exc.value.status_code == 400

    def test_rejects_paid_installment(self, db, booking, stripe_calls):
        BookingRepository.save_booking(db, booking, {**booking.data, "p1DatePaid": "Feb 1, 2030"})
        with pytest.raises(HTTPException) as exc:
            self.checkout(db, "p1")
        assert exc.value.status_code == 409

    def test_processing_token_blocks_until_it_expires(self, db, booking, stripe_calls):
        self.checkout(db, "p1")

        with pytest.raises(HTTPException) as exc:
            self.checkout(db, "p1", now=NOW + timedelta(hours=23))
        assert exc.value.status_code == 409

        self.checkout(db, "p1", now=NOW + timedelta(hours=25))
        assert len(stripe_calls["checkout"]) == 2

    def test_unknown_access_token(self, db, stripe_calls):
        with pytest.raises(HTTPException) as exc:
            StripePaymentService(db).create_installment_checkout("nope", "p1")
        assert exc.value.status_code == 404

    def test_checkout_endpoint(self, client, booking, stripe_calls):
        response = client.post("/payments/checkout/guest-token", json={"installmentId": "p2"})
        assert response.status_code == 200
        assert response.json()["sessionId"] == "cs_new"


class TestRefund:
    def make_payment(self, db, status="reserve_paid", intent="pi_123", booking=None):
        payment = StripePayment(
            type="reservationFee",
            status=status,
            email="john@example.com",
            amount=250,
            currency="GBP",
            stripe_intent_id=intent,
            booking_document_id=booking.id if booking else None,
        )
        db.add(payment)
        db.commit()
        return payment

    def test_refund_marks_payment_and_booking(self, db, stripe_calls):
        booking = BookingRepository.create_booking(db, {"bookingId": "SB-1", "paid": 250})
        payment = self.make_payment(db, booking=booking)

        result = StripePaymentService(db).refund_payment(payment.id)

        assert result == {"success": True, "refundId": "re_1", "amount": 250, "currency": "gbp", "status": "succeeded"}
        assert stripe_calls["refund"] == [{"payment_intent": "pi_123", "reason": "requested_by_customer"}]
        db.refresh(payment)
        db.refresh(booking)
        assert payment.status == "refunded"
        assert payment.refunded_at is not None
        assert payment.refund_details["refundId"] == "re_1"
        assert booking.data["status"] == "refunded"
        assert booking.data["refundedAt"]

    @pytest.mark.parametrize("status", ["reserve_pending", "installment_pending", "failed", "refunded"])
    def test_only_completed_payments_are_refunded(self, db, stripe_calls, status):
        payment = self.make_payment(db, status=status)

        with pytest.raises(HTTPException) as exc:
            StripePaymentService(db).refund_payment(payment.id)

        assert exc.value.status_code == 400
        assert stripe_calls["refund"] == []

    def test_payment_without_intent(self, db, stripe_calls):
        payment = self.make_payment(db, intent=None)
        with pytest.raises(HTTPException) as exc:
            StripePaymentService(db).refund_payment(payment.id)
        assert exc.value.status_code == 400

    def test_refund_endpoint(self, client, db, stripe_calls):
        payment = self.make_payment(db)
        response = client.post(f"/payments/{payment.id}/refund")
        assert response.status_code == 200
        assert response.json()["refundId"] == "re_1"
        assert client.post(f"/payments/{payment.id}/refund").status_code == 400
