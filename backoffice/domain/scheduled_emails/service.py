"""Scheduled email service - queueing, lifecycle and the dispatcher"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...config import SCHEDULED_EMAIL_BATCH_SIZE
from ...email_service import send_email
from ...models import EmailTemplate, ScheduledEmail
from ...services.gmail_service import get_sent_url
from ..bookings.repository import BookingRepository
from ..email_templates.rendering import render_template
from ..payment_reminders.service import (
    PAYMENT_REMINDER_EMAIL_TYPE,
    build_reminder_variables,
    get_payment_reminder_subject,
)
from .schemas import ScheduledEmailCreate

logger = logging.getLogger(__name__)


class ScheduledEmailService:
    """Service layer for scheduled emails"""

    def __init__(self, db: Session):
        self.db = db

    # ========================================================================
    # CORE CRUD OPERATIONS
    # ========================================================================

    def create_scheduled_email(self, data: ScheduledEmailCreate, now: Optional[datetime] = None) -> ScheduledEmail:
        if data.scheduledFor <= (now or datetime.utcnow()):
            raise HTTPException(status_code=400, detail="Scheduled time must be in the future")

        email = ScheduledEmail(
            to_address=data.to,
            subject=data.subject,
            html_content=data.htmlContent,
            cc=data.cc,
            bcc=data.bcc,
            from_address=data.fromAddress,
            reply_to=data.replyTo,
            scheduled_for=data.scheduledFor,
            status="pending",
            attempts=0,
            max_attempts=data.maxAttempts,
            email_type=data.emailType,
            booking_id=data.bookingId,
            template_id=data.templateId,
            template_variables=data.templateVariables,
        )
        self.db.add(email)
        self.db.commit()
        self.db.refresh(email)
        logger.info(f"📧 Email scheduled for {email.scheduled_for.isoformat()}: {email.id}")
        return email

    def list_scheduled_emails(
        self,
        status: Optional[str] = None,
        email_type: Optional[str] = None,
        booking_id: Optional[str] = None,
        limit: int = 100,
    ) -> list[ScheduledEmail]:
        query = self.db.query(ScheduledEmail)
        if status:
            query = query.filter(ScheduledEmail.status == status)
        if email_type:
            query = query.filter(ScheduledEmail.email_type == email_type)
        if booking_id:
            query = query.filter(ScheduledEmail.booking_id == booking_id)
        return query.order_by(ScheduledEmail.scheduled_for.asc()).limit(limit).all()

    def get_scheduled_email(self, email_id: str) -> ScheduledEmail:
        email = self.db.query(ScheduledEmail).filter(ScheduledEmail.id == email_id).first()
        if not email:
            raise HTTPException(status_code=404, detail="Scheduled email not found")
        return email

    # ========================================================================
    # LIFECYCLE
    # ========================================================================

    def cancel_scheduled_email(self, email_id: str) -> ScheduledEmail:
        email = self.get_scheduled_email(email_id)
        if email.status != "pending":
            raise HTTPException(status_code=400, detail="Only pending emails can be cancelled")
        email.status = "cancelled"
        self.db.commit()
        self.db.refresh(email)
        return email

    def reschedule_email(self, email_id: str, scheduled_for: datetime) -> ScheduledEmail:
        email = self.get_scheduled_email(email_id)
        if email.status not in ("pending", "failed"):
            raise HTTPException(status_code=400, detail="Only pending or failed emails can be rescheduled")
        if scheduled_for <= datetime.utcnow():
            raise HTTPException(status_code=400, detail="Scheduled time must be in the future")

        email.scheduled_for = scheduled_for
        email.status = "pending"
        email.attempts = 0
        email.error_message = None
        self.db.commit()
        self.db.refresh(email)
        return email

    def skip_email(self, email_id: str) -> ScheduledEmail:
        email = self.get_scheduled_email(email_id)
        if email.status == "sent":
            raise HTTPException(status_code=400, detail="Cannot skip an email that has already been sent")
        if email.status == "cancelled":
            raise HTTPException(status_code=400, detail="Cannot skip an email that has been cancelled")
        if email.status == "skipped":
            raise HTTPException(status_code=400, detail="Email is already skipped")
        email.status = "skipped"
        self.db.commit()
        self.db.refresh(email)
        return email

    def _rerender_reminder(self, email: ScheduledEmail) -> Optional[tuple[str, str]]:
        """Fresh subject and body for a payment reminder, from current booking values"""
        booking = BookingRepository.get_by_id(self.db, email.booking_id)
        if not booking:
            logger.warning(f"⚠️ Booking {email.booking_id} not found, sending stored content")
            return None
        template = self.db.query(EmailTemplate).filter(EmailTemplate.id == email.template_id).first()
        if not template:
            logger.warning(f"⚠️ Template {email.template_id} not found, sending stored content")
            return None

        data = booking.data or {}
        term = (email.template_variables or {}).get("paymentTerm") or "P1"
        variables = {**(email.template_variables or {}), **build_reminder_variables(data, term)}
        subject = get_payment_reminder_subject(
            data.get("paymentPlan") or "", term, data.get("tourPackageName") or "", variables["dueDate"]
        )
        return subject, render_template(template.content, variables)

    async def resend_email(self, email_id: str) -> ScheduledEmail:
        """Send now; payment reminders are re-rendered with fresh booking data"""
        email = self.get_scheduled_email(email_id)
        if email.status not in ("sent", "skipped", "pending"):
            raise HTTPException(status_code=400, detail="Only sent, skipped, or pending emails can be sent or resent")

        subject, html_content = email.subject, email.html_content
        if email.email_type == PAYMENT_REMINDER_EMAIL_TYPE and email.booking_id and email.template_id:
            fresh = self._rerender_reminder(email)
            if fresh:
                subject, html_content = fresh

        result = await send_email(
            to=email.to_address,
            subject=subject,
            html_content=html_content,
            cc=email.cc or None,
            bcc=email.bcc or None,
            from_address=email.from_address,
            reply_to=email.reply_to,
        )
        email.subject = subject
        email.html_content = html_content
        email.status = "sent"
        email.sent_at = datetime.utcnow()
        email.message_id = result.get("messageId")
        email.attempts = (email.attempts or 0) + 1
        self._link_reminder_to_booking(email, result.get("threadId"))
        self.db.commit()
        self.db.refresh(email)
        logger.info(f"✅ Scheduled email resent: {email.id}")
        return email

    def _link_reminder_to_booking(self, email: ScheduledEmail, thread_id: Optional[str]) -> None:
        """
        Write the Gmail sent link onto the booking's "{term} Scheduled Email Link" column.

        Only Gmail sends carry a thread id; a Resend message id has no mailbox URL.
        """
        if email.email_type != PAYMENT_REMINDER_EMAIL_TYPE or not email.booking_id or not email.message_id:
            return
        if not thread_id:
            logger.info(f"ℹ️ Reminder {email.id} was not sent through Gmail, leaving the booking link unchanged")
            return
        term = ((email.template_variables or {}).get("paymentTerm") or "").lower()
        if not term:
            return
        booking = BookingRepository.get_by_id(self.db, email.booking_id)
        if not booking:
            return
        data = dict(booking.data or {})
        data[f"{term}ScheduledEmailLink"] = get_sent_url(email.message_id)
        BookingRepository.save_booking(self.db, booking, data)

    # ========================================================================
    # DISPATCHER
    # ========================================================================

    async def process_scheduled_emails(
        self, now: Optional[datetime] = None, batch_size: int = SCHEDULED_EMAIL_BATCH_SIZE
    ) -> dict:
        """Send pending emails that are due; returns {processed, sent, failed}"""
        now = now or datetime.utcnow()
        due = (
            self.db.query(ScheduledEmail)
            .filter(ScheduledEmail.status == "pending", ScheduledEmail.scheduled_for <= now)
            .order_by(ScheduledEmail.scheduled_for.asc())
            .limit(batch_size)
            .all()
        )
        logger.info(f"📧 Processing {len(due)} scheduled emails due by {now.isoformat()}")

        sent = 0
        failed = 0
        for email in due:
            try:
                result = await send_email(
                    to=email.to_address,
                    subject=email.subject,
                    html_content=email.html_content,
                    cc=email.cc or None,
                    bcc=email.bcc or None,
                    from_address=email.from_address,
                    reply_to=email.reply_to,
                )
                email.status = "sent"
                email.sent_at = datetime.utcnow()
                email.message_id = result.get("messageId")
                email.attempts = (email.attempts or 0) + 1
                email.error_message = None
                self._link_reminder_to_booking(email, result.get("threadId"))
                self.db.commit()
                sent += 1
                logger.info(f"✅ Scheduled email sent: {email.id}")
            except Exception as e:
                self.db.rollback()
                email.attempts = (email.attempts or 0) + 1
                email.error_message = str(e)
                if email.attempts >= (email.max_attempts or 3):
                    email.status = "failed"
                    failed += 1
                self.db.commit()
                logger.error(f"❌ Failed to send scheduled email {email.id} (attempt {email.attempts}): {e}")

        return {"processed": len(due), "sent": sent, "failed": failed}
