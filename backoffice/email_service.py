"""
Unified Email Service using Gmail API or Resend (fallback)
Traveller emails are written in MJML and compiled to HTML before sending
"""

import logging
from typing import Optional, Union

import resend
from mjml import mjml_to_html

from .config import FRONTEND_URL, GMAIL_SENDER, RESEND_API_KEY
from .email_layouts import (
    installment_receipt_template,
    payment_reminders_enabled_template,
    reservation_confirmation_template,
)
from .services import gmail_service

logger = logging.getLogger(__name__)

resend.api_key = RESEND_API_KEY


def compile_mjml_to_html(mjml_content: str) -> str:
    """Compile MJML template to production-ready HTML"""
    try:
        result = mjml_to_html(mjml_content)
        # mjml returns an object exposing .html/.errors; older releases returned a dict
        if isinstance(result, dict):
            if result.get("errors"):
                logger.warning(f"MJML compilation warnings: {result['errors']}")
            return result.get("html", "")
        if getattr(result, "errors", None):
            logger.warning(f"MJML compilation warnings: {result.errors}")
        return getattr(result, "html", str(result))
    except Exception as e:
        logger.error(f"MJML compilation error: {e}")
        raise RuntimeError(f"Failed to compile MJML template: {str(e)}") from e


def format_gbp(value) -> str:
    try:
        return f"£{float(value or 0):.2f}"
    except (TypeError, ValueError):
        return "£0.00"


async def send_email(
    to: Union[str, list[str]],
    subject: str,
    html_content: Optional[str] = None,
    mjml_content: Optional[str] = None,
    cc: Optional[list[str]] = None,
    bcc: Optional[list[str]] = None,
    from_address: Optional[str] = None,
    reply_to: Optional[str] = None,
) -> dict:
    """
    Send an email through Gmail (if configured) or Resend (fallback)

    Args:
        to: Recipient email(s)
        subject: Email subject line
        html_content: Ready HTML body
        mjml_content: MJML body, compiled to HTML when html_content is not given

    Returns:
        dict with messageId, threadId (Gmail only) and status
    """
    if html_content is None:
        html_content = compile_mjml_to_html(mjml_content or "")

    recipients = [to] if isinstance(to, str) else to
    sender = from_address or GMAIL_SENDER

    if gmail_service.is_configured():
        try:
            return await gmail_service.send_email(
                to=recipients,
                subject=subject,
                html_content=html_content,
                cc=cc,
                bcc=bcc,
                from_address=sender,
                reply_to=reply_to,
            )
        except gmail_service.GmailApiError as e:
            if not RESEND_API_KEY:
                raise
            logger.warning(f"⚠️ Gmail send failed, falling back to Resend: {e}")

    if not RESEND_API_KEY:
        logger.error("❌ No email service configured - Gmail credentials and RESEND_API_KEY missing")
        raise RuntimeError("Email service not configured")

    try:
        logger.info(f"📧 Sending email via Resend to: {recipients}")
        email_data = {"from": sender, "to": recipients, "subject": subject, "html": html_content}
        if cc:
            email_data["cc"] = cc
        if bcc:
            email_data["bcc"] = bcc
        if reply_to:
            email_data["reply_to"] = reply_to
        response = resend.Emails.send(email_data)
        logger.info(f"✅ Email sent successfully via Resend: {response}")
        return {"messageId": (response or {}).get("id"), "threadId": None, "status": "sent"}
    except Exception as e:
        logger.error(f"❌ Email send error to {recipients}: {e}")
        raise RuntimeError(f"Failed to send email: {str(e)}") from e


# ============================================
# Pre-built traveller emails
# ============================================


async def send_payment_reminders_enabled_email(
    to: str,
    full_name: str,
    tour_package: str,
    payment_plan: str,
    payment_method: str,
    term_rows: list[dict],
    remaining_balance,
) -> dict:
    mjml_content = payment_reminders_enabled_template(
        full_name, tour_package, payment_plan, payment_method, term_rows, format_gbp(remaining_balance)
    )
    return await send_email(
        to=to,
        subject=f"{full_name}, Monthly Payment Reminders for {tour_package}",
        mjml_content=mjml_content,
    )


async def send_reservation_confirmation(
    to: str, full_name: str, tour_package: str, booking_id: str, amount, access_token: Optional[str] = None
) -> dict:
    booking_url = f"{FRONTEND_URL}/booking-status/{access_token}" if access_token else None
    mjml_content = reservation_confirmation_template(full_name, tour_package, booking_id, format_gbp(amount), booking_url)
    return await send_email(to=to, subject=f"Reservation Confirmed – {tour_package}", mjml_content=mjml_content)


async def send_installment_receipt(
    to: str, full_name: str, term_label: str, amount, tour_package: str, remaining_balance
) -> dict:
    mjml_content = installment_receipt_template(
        full_name, term_label, format_gbp(amount), tour_package, format_gbp(remaining_balance)
    )
    return await send_email(to=to, subject=f"Payment Received – {tour_package}", mjml_content=mjml_content)
