"""Gmail router - send messages and manage drafts from the back office mailbox"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, model_validator
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import AdminUser
from ...services import gmail_service
from ...services.gmail_service import GmailApiError
from ..email_templates.service import EmailTemplateService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/gmail", tags=["Gmail"])


class GmailMessageRequest(BaseModel):
    """Either raw subject/html or a stored template with variables"""

    to: list[str]
    subject: Optional[str] = None
    htmlContent: Optional[str] = None
    cc: list[str] = []
    bcc: list[str] = []
    fromAddress: Optional[str] = None
    replyTo: Optional[str] = None
    templateId: Optional[str] = None
    variables: dict[str, Any] = {}

    @model_validator(mode="after")
    def validate_content(self):
        if not self.to:
            raise ValueError("At least one recipient is required")
        if not self.templateId and not (self.subject and self.htmlContent):
            raise ValueError("Subject and htmlContent are required when no template is used")
        return self


class GmailSendResponse(BaseModel):
    messageId: Optional[str] = None
    threadId: Optional[str] = None
    status: str
    sentUrl: Optional[str] = None


class GmailDraftResponse(BaseModel):
    draftId: Optional[str] = None
    messageId: Optional[str] = None
    threadId: Optional[str] = None


def _gmail_error(e: GmailApiError) -> HTTPException:
    status = e.status_code if e.status_code and 400 <= e.status_code < 500 else 502
    return HTTPException(status_code=status, detail=str(e))


def _resolve_content(data: GmailMessageRequest, db: Session) -> tuple[str, str]:
    if not data.templateId:
        return data.subject, data.htmlContent
    templates = EmailTemplateService(db)
    template = templates.get_template(data.templateId)
    subject, html = templates.render(template, data.variables)
    templates.increment_usage(template.id)
    return data.subject or subject, html


@router.post("/send", response_model=GmailSendResponse)
async def send_message(
    data: GmailMessageRequest,
    current_user: AdminUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if not gmail_service.is_configured():
        raise HTTPException(status_code=503, detail="Gmail is not configured")
    subject, html = _resolve_content(data, db)
    try:
        result = await gmail_service.send_email(
            data.to, subject, html, data.cc, data.bcc, data.fromAddress, data.replyTo
        )
    except GmailApiError as e:
        raise _gmail_error(e) from e
    sent_url = gmail_service.get_sent_url(result["messageId"]) if result.get("messageId") else None
    return GmailSendResponse(**result, sentUrl=sent_url)


@router.post("/drafts", response_model=GmailDraftResponse, status_code=201)
async def create_draft(
    data: GmailMessageRequest,
    current_user: AdminUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if not gmail_service.is_configured():
        raise HTTPException(status_code=503, detail="Gmail is not configured")
    subject, html = _resolve_content(data, db)
    try:
        result = await gmail_service.create_draft(
            data.to, subject, html, data.cc, data.bcc, data.fromAddress, data.replyTo
        )
    except GmailApiError as e:
        raise _gmail_error(e) from e
    return GmailDraftResponse(**result)


@router.get("/drafts", response_model=list[GmailDraftResponse])
async def list_drafts(
    max_results: int = Query(20, ge=1, le=100, alias="maxResults"),
    current_user: AdminUser = Depends(get_current_user),
):
    try:
        drafts = await gmail_service.list_drafts(max_results)
    except GmailApiError as e:
        raise _gmail_error(e) from e
    return [GmailDraftResponse(**d) for d in drafts]


@router.post("/drafts/{draft_id}/send", response_model=GmailSendResponse)
async def send_draft(draft_id: str, current_user: AdminUser = Depends(get_current_user)):
    try:
        result = await gmail_service.send_draft(draft_id)
    except GmailApiError as e:
        raise _gmail_error(e) from e
    sent_url = gmail_service.get_sent_url(result["messageId"]) if result.get("messageId") else None
    return GmailSendResponse(**result, sentUrl=sent_url)


@router.delete("/drafts/{draft_id}", status_code=204)
async def delete_draft(draft_id: str, current_user: AdminUser = Depends(get_current_user)):
    try:
        await gmail_service.delete_draft(draft_id)
    except GmailApiError as e:
        raise _gmail_error(e) from e
