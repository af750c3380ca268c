import asyncio
from datetime import datetime

import pytest

from backoffice.domain.bookings.repository import BookingRepository
from backoffice.domain.payment_reminders.service import (
    PaymentReminderService,
    get_applicable_terms,
    get_payment_reminder_subject,
    reminder_send_time,
)
from backoffice.models import EmailTemplate, ScheduledEmail


@pytest.fixture
def initial_emails(monkeypatch):
    sent = []

    async def fake_send(**kwargs):
        sent.append(kwargs)
        return {"messageId": f"init-{len(sent)}"}

    monkeypatch.setattr("backoffice.domain.payment_reminders.service.send_payment_reminders_enabled_email", fake_send)
    return sent


@pytest.fixture
def reminder_template(db):
    template = EmailTemplate(
        name="Payment Reminder",
        subject="Reminder",
        content="<p>Hi {{ fullName }}, {{ amount }} for {{ paymentTerm }} is due {{ dueDate }}</p>",
        status="active",
        variables=["fullName", "amount", "paymentTerm", "dueDate"],
    )
    db.add(template)
    db.commit()
    return template


@pytest.fixture
def booking(db):
    return BookingRepository.create_booking(
        db,
        {
            "bookingId": "SB-PHS-20300601-JD001",
            "emailAddress": "john@example.com",
            "fullName": "John Doe",
            "tourPackageName": "Philippines Sunrise",
            "paymentPlan": "P2",
            "paymentMethod": "Stripe",
            "p1DueDate": "Feb 2, 2030",
            "p1Amount": 875,
            "p1ScheduledReminderDate": "2030-01-26",
            "p2DueDate": "Mar 2, 2030",
            "p2Amount": 875,
            "p2ScheduledReminderDate": "",
        },
    )


def test_applicable_terms():
    assert get_applicable_terms("P3") == ["P1", "P2", "P3"]
    assert get_applicable_terms("Full Payment") == ["P1"]


def test_subjects():
    subject = get_payment_reminder_subject("P2", "P1", "Tour", "2030-02-02")
    assert subject == "Your 1st Installment for Tour is Due on 2030-02-02"
    assert get_payment_reminder_subject("P2", "P2", "Tour", "2030-03-02").startswith(
        "Reminder – Your Final Installment for Tour"
    )


def test_reminders_go_out_at_nine_in_singapore():
    assert reminder_send_time("2030-01-26") == datetime(2030, 1, 26, 1, 0)
    assert reminder_send_time("") is None


class TestSetup:
    def test_schedules_a_reminder_per_dated_term(self, db, booking, reminder_template, initial_emails):
        result = asyncio.run(PaymentReminderService(db).setup_reminders(booking.id))

        assert result["initialEmailSent"]
        assert result["skipped"] == ["P2"]
        assert len(result["scheduled"]) == 1

        email = db.query(ScheduledEmail).one()
        assert email.scheduled_for == datetime(2030, 1, 26, 1, 0)
        assert email.email_type == "payment-reminder"
        assert email.template_id == reminder_template.id
        assert email.subject == "Your 1st Installment for Philippines Sunrise is Due on 2030-02-02"
        assert "Hi John Doe, £875.00 for P1" in email.html_content

        db.refresh(booking)
        assert booking.data["p1ScheduledEmailLink"] == f"Scheduled: {email.id}"
        assert booking.data["sentInitialReminderLink"] == "https://mail.google.com/mail/u/0/#sent/init-1"
        assert initial_emails[0]["to"] == "john@example.com"

    def test_running_twice_does_not_duplicate(self, db, booking, reminder_template, initial_emails):
        service = PaymentReminderService(db)
        asyncio.run(service.setup_reminders(booking.id))
        second = asyncio.run(service.setup_reminders(booking.id))

        assert second["scheduled"] == []
        assert not second["initialEmailSent"]
        assert db.query(ScheduledEmail).count() == 1
        assert len(initial_emails) == 1

    def test_requires_plan_and_method(self, db, initial_emails):
        booking = BookingRepository.create_booking(db, {"emailAddress": "john@example.com", "paymentPlan": "P2"})
        result = asyncio.run(PaymentReminderService(db).setup_reminders(booking.id))
        assert result["error"] == "Payment plan and payment method are required"
        assert initial_emails == []


def test_cancel_clears_links(db, booking, reminder_template, initial_emails):
    service = PaymentReminderService(db)
    asyncio.run(service.setup_reminders(booking.id))
    db.refresh(booking)

    assert service.cancel_reminders(booking) == 1

    db.refresh(booking)
    assert booking.data["p1ScheduledEmailLink"] == ""
    assert db.query(ScheduledEmail).one().status == "cancelled"
    assert service.cancel_reminders(booking) == 0


def test_cancel_endpoint_for_unknown_booking(client):
    assert client.post("/bookings/missing/reminders/cancel").status_code == 404
