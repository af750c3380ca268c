"""Scheduled email router - FastAPI endpoints for scheduled emails"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import AdminUser, ScheduledEmail
from .schemas import ProcessResult, RescheduleRequest, ScheduledEmailCreate, ScheduledEmailResponse
from .service import ScheduledEmailService

router = APIRouter(prefix="/scheduled-emails", tags=["Scheduled Emails"])


def get_scheduled_email_service(db: Session = Depends(get_db)) -> ScheduledEmailService:
    """Dependency injection for ScheduledEmailService"""
    return ScheduledEmailService(db)


def to_scheduled_email_response(e: ScheduledEmail) -> ScheduledEmailResponse:
    return ScheduledEmailResponse(
        id=e.id,
        to=e.to_address,
        subject=e.subject,
        htmlContent=e.html_content,
        cc=e.cc or [],
        bcc=e.bcc or [],
        fromAddress=e.from_address,
        replyTo=e.reply_to,
        scheduledFor=e.scheduled_for,
        status=e.status,
        attempts=e.attempts or 0,
        maxAttempts=e.max_attempts or 3,
        errorMessage=e.error_message,
        sentAt=e.sent_at,
        messageId=e.message_id,
        emailType=e.email_type,
        bookingId=e.booking_id,
        templateId=e.template_id,
        templateVariables=e.template_variables,
        createdAt=e.created_at,
        updatedAt=e.updated_at,
    )


@router.get("", response_model=list[ScheduledEmailResponse])
async def get_scheduled_emails(
    status: Optional[str] = Query(None),
    email_type: Optional[str] = Query(None, alias="emailType"),
    booking_id: Optional[str] = Query(None, alias="bookingId"),
    limit: int = Query(100, ge=1, le=500),
    current_user: AdminUser = Depends(get_current_user),
    service: ScheduledEmailService = Depends(get_scheduled_email_service),
):
    return [to_scheduled_email_response(e) for e in service.list_scheduled_emails(status, email_type, booking_id, limit)]


@router.post("", response_model=ScheduledEmailResponse, status_code=201)
async def create_scheduled_email(
    data: ScheduledEmailCreate,
    current_user: AdminUser = Depends(get_current_user),
    service: ScheduledEmailService = Depends(get_scheduled_email_service),
):
    return to_scheduled_email_response(service.create_scheduled_email(data))


@router.post("/process", response_model=ProcessResult)
async def process_due_emails(
    current_user: AdminUser = Depends(get_current_user),
    service: ScheduledEmailService = Depends(get_scheduled_email_service),
):
    """Run the dispatcher now instead of waiting for the daily job"""
    return ProcessResult(**await service.process_scheduled_emails())


@router.get("/{email_id}", response_model=ScheduledEmailResponse)
async def get_scheduled_email(
    email_id: str,
    current_user: AdminUser = Depends(get_current_user),
    service: ScheduledEmailService = Depends(get_scheduled_email_service),
):
    return to_scheduled_email_response(service.get_scheduled_email(email_id))


@router.post("/{email_id}/cancel", response_model=ScheduledEmailResponse)
async def cancel_scheduled_email(
    email_id: str,
    current_user: AdminUser = Depends(get_current_user),
    service: ScheduledEmailService = Depends(get_scheduled_email_service),
):
    return to_scheduled_email_response(service.cancel_scheduled_email(email_id))


@router.post("/{email_id}/reschedule", response_model=ScheduledEmailResponse)
async def reschedule_scheduled_email(
    email_id: str,
    data: RescheduleRequest,
    current_user: AdminUser = Depends(get_current_user),
    service: ScheduledEmailService = Depends(get_scheduled_email_service),
):
    return to_scheduled_email_response(service.reschedule_email(email_id, data.scheduledFor))


@router.post("/{email_id}/skip", response_model=ScheduledEmailResponse)
async def skip_scheduled_email(
    email_id: str,
    current_user: AdminUser = Depends(get_current_user),
    service: ScheduledEmailService = Depends(get_scheduled_email_service),
):
    return to_scheduled_email_response(service.skip_email(email_id))


@router.post("/{email_id}/resend", response_model=ScheduledEmailResponse)
async def resend_scheduled_email(
    email_id: str,
    current_user: AdminUser = Depends(get_current_user),
    service: ScheduledEmailService = Depends(get_scheduled_email_service),
):
    return to_scheduled_email_response(await service.resend_email(email_id))
