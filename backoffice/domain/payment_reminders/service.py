"""Payment reminder service - initial summary email and per-term scheduled reminders"""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...calculations.booking_calculations import first_due_date, get_plan_terms, to_date
from ...email_layouts import payment_reminder_template
from ...email_service import compile_mjml_to_html, format_gbp, send_payment_reminders_enabled_email
from ...models import Booking, EmailTemplate, ScheduledEmail
from ...services.gmail_service import get_sent_url
from ..bookings.repository import BookingRepository
from ..email_templates.rendering import render_template

logger = logging.getLogger(__name__)

PAYMENT_REMINDER_TEMPLATE_NAME = "Payment Reminder"
PAYMENT_REMINDER_EMAIL_TYPE = "payment-reminder"
REMINDER_FROM = "Bella | ImHereTravels <bella@imheretravels.com>"

# 09:00 in Asia/Singapore
REMINDER_SEND_HOUR_UTC = 1


def get_applicable_terms(payment_plan: Optional[str]) -> list[str]:
    """["P1"] .. ["P1", "P2", "P3", "P4"] for the selected plan"""
    count = get_plan_terms(payment_plan) if payment_plan != "Full Payment" else 0
    return [f"P{n}" for n in range(1, max(count, 1) + 1)]


def get_payment_reminder_subject(payment_plan: str, term: str, tour_package: str, due_date: str) -> str:
    term_number = int(term.replace("P", "") or 0)
    plan_number = get_plan_terms(payment_plan)

    if plan_number == 1 or term_number == plan_number:
        return f"Reminder – Your Final Installment for {tour_package} is Due on {due_date}"
    if term_number == 1:
        return f"Your 1st Installment for {tour_package} is Due on {due_date}"
    if term_number == 2:
        return f"Reminder – Your 2nd Installment for {tour_package} is Due on {due_date}"
    if term_number == 3:
        return f"Reminder – Your 3rd Installment for {tour_package} is Due on {due_date}"
    return f"Reminder – Your Payment for {tour_package} is Due on {due_date}"


def format_iso_date(value) -> str:
    parsed = to_date(first_due_date(value) if isinstance(value, str) else value)
    return parsed.strftime("%Y-%m-%d") if parsed else ""


def reminder_send_time(reminder_date: str) -> Optional[datetime]:
    """Naive UTC send time for a "yyyy-mm-dd" reminder date"""
    parsed = to_date(reminder_date)
    if not parsed:
        return None
    return datetime(parsed.year, parsed.month, parsed.day, REMINDER_SEND_HOUR_UTC, 0)


def build_term_data(data: dict, terms: list[str]) -> list[dict]:
    return [
        {
            "term": term,
            "amount": format_gbp(data.get(f"{term.lower()}Amount")),
            "dueDate": format_iso_date(data.get(f"{term.lower()}DueDate")),
            "datePaid": format_iso_date(data.get(f"{term.lower()}DatePaid")),
        }
        for term in terms
    ]


def build_reminder_variables(data: dict, term: str) -> dict:
    """Template variables for one term's reminder, read from current booking values"""
    terms = get_applicable_terms(data.get("paymentPlan"))
    visible_terms = terms[: terms.index(term) + 1] if term in terms else terms
    total = data.get("discountedTourCost") or data.get("originalTourCost")

    return {
        "fullName": data.get("fullName") or "",
        "tourPackage": data.get("tourPackageName") or "",
        "paymentMethod": data.get("paymentMethod") or "",
        "paymentTerm": term,
        "amount": format_gbp(data.get(f"{term.lower()}Amount")),
        "dueDate": format_iso_date(data.get(f"{term.lower()}DueDate")),
        "bookingId": data.get("bookingId") or "",
        "tourDate": format_iso_date(data.get("tourDate")),
        "paid": format_gbp(data.get("paid")),
        "remainingBalance": format_gbp(data.get("remainingBalance")),
        "totalAmount": format_gbp(total),
        "showTable": term != "P1",
        "termData": build_term_data(data, visible_terms),
    }


class PaymentReminderService:
    """Service layer for payment reminder scheduling"""

    def __init__(self, db: Session):
        self.db = db

    def get_reminder_template(self) -> Optional[EmailTemplate]:
        return (
            self.db.query(EmailTemplate)
            .filter(EmailTemplate.name == PAYMENT_REMINDER_TEMPLATE_NAME, EmailTemplate.status == "active")
            .first()
        )

    def render_reminder(self, template: Optional[EmailTemplate], variables: dict) -> str:
        if template:
            return render_template(template.content, variables)
        logger.warning("⚠️ Payment reminder template not found, using fallback layout")
        return compile_mjml_to_html(
            payment_reminder_template(
                variables["fullName"],
                variables["paymentTerm"],
                variables["amount"],
                variables["tourPackage"],
                variables["dueDate"],
            )
        )

    async def setup_reminders(self, booking_id: str) -> dict:
        """
        Send the initial summary and schedule a reminder per applicable term.

        Terms without a reminder date, or with a scheduled link already set,
        are skipped so the job can safely run more than once.
        """
        booking = BookingRepository.get_by_id(self.db, booking_id)
        if not booking:
            raise HTTPException(status_code=404, detail="Booking not found")

        data = dict(booking.data or {})
        payment_plan = data.get("paymentPlan")
        result = {"bookingId": booking_id, "initialEmailSent": False, "scheduled": [], "skipped": []}

        if not payment_plan or not data.get("paymentMethod"):
            logger.warning(f"⚠️ Booking {booking_id}: payment plan or method missing, reminders not set up")
            result["error"] = "Payment plan and payment method are required"
            return result
        if not data.get("emailAddress"):
            logger.warning(f"⚠️ Booking {booking_id}: email address missing, reminders not set up")
            result["error"] = "Email address is required"
            return result

        terms = get_applicable_terms(payment_plan)

        if not data.get("sentInitialReminderLink"):
            try:
                sent = await send_payment_reminders_enabled_email(
                    to=data["emailAddress"],
                    full_name=data.get("fullName") or "",
                    tour_package=data.get("tourPackageName") or "",
                    payment_plan=payment_plan,
                    payment_method=data.get("paymentMethod"),
                    term_rows=build_term_data(data, terms),
                    remaining_balance=data.get("remainingBalance"),
                )
                if sent.get("messageId"):
                    data["sentInitialReminderLink"] = get_sent_url(sent["messageId"])
                result["initialEmailSent"] = True
                logger.info(f"📧 Initial reminder summary sent for booking {booking_id}")
            except Exception as e:
                # The scheduled reminders are still created below
                logger.error(f"❌ Error sending initial reminder email for {booking_id}: {e}")

        template = self.get_reminder_template()
        for term in terms:
            key = term.lower()
            reminder_date = data.get(f"{key}ScheduledReminderDate")
            if not reminder_date or data.get(f"{key}ScheduledEmailLink"):
                result["skipped"].append(term)
                continue

            scheduled_for = reminder_send_time(reminder_date)
            if not scheduled_for:
                logger.warning(f"⚠️ Invalid reminder date for {term}: {reminder_date}")
                result["skipped"].append(term)
                continue

            variables = build_reminder_variables(data, term)
            email = ScheduledEmail(
                to_address=data["emailAddress"],
                subject=get_payment_reminder_subject(
                    payment_plan, term, data.get("tourPackageName") or "", variables["dueDate"]
                ),
                html_content=self.render_reminder(template, variables),
                from_address=REMINDER_FROM,
                scheduled_for=scheduled_for,
                status="pending",
                attempts=0,
                max_attempts=3,
                email_type=PAYMENT_REMINDER_EMAIL_TYPE,
                booking_id=booking.id,
                template_id=template.id if template else None,
                template_variables=variables,
            )
            self.db.add(email)
            self.db.flush()
            data[f"{key}ScheduledEmailLink"] = f"Scheduled: {email.id}"
            result["scheduled"].append(email.id)
            logger.info(f"✅ Scheduled {term} reminder for booking {booking_id}: {email.id}")

        BookingRepository.save_booking(self.db, booking, data)
        return result

    def cancel_reminders(self, booking: Booking) -> int:
        """Cancel pending reminder emails and clear their links"""
        pending = (
            self.db.query(ScheduledEmail)
            .filter(
                ScheduledEmail.booking_id == booking.id,
                ScheduledEmail.email_type == PAYMENT_REMINDER_EMAIL_TYPE,
                ScheduledEmail.status == "pending",
            )
            .all()
        )
        if not pending:
            return 0

        data = dict(booking.data or {})
        for email in pending:
            email.status = "cancelled"
            email.updated_at = datetime.now(timezone.utc).replace(tzinfo=None)
            term = ((email.template_variables or {}).get("paymentTerm") or "").lower()
            if term and data.get(f"{term}ScheduledEmailLink") == f"Scheduled: {email.id}":
                data[f"{term}ScheduledEmailLink"] = ""

        BookingRepository.save_booking(self.db, booking, data)
        logger.info(f"🧹 Cancelled {len(pending)} pending reminders for booking {booking.id}")
        return len(pending)
