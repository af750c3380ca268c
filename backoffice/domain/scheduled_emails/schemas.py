"""Scheduled email schemas - Pydantic models for validation"""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, field_validator

SCHEDULED_EMAIL_STATUSES = ["pending", "sent", "failed", "cancelled", "skipped"]


def _to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class ScheduledEmailCreate(BaseModel):
    """Schema for scheduling an email"""

    to: str
    subject: str
    htmlContent: str
    scheduledFor: datetime
    cc: list[str] = []
    bcc: list[str] = []
    fromAddress: Optional[str] = None
    replyTo: Optional[str] = None
    emailType: Optional[str] = "custom"
    bookingId: Optional[str] = None
    templateId: Optional[str] = None
    templateVariables: Optional[dict[str, Any]] = None
    maxAttempts: int = 3

    @field_validator("to", "subject", "htmlContent")
    @classmethod
    def validate_required(cls, v):
        if not v or not v.strip():
            raise ValueError("Field is required")
        return v

    @field_validator("scheduledFor")
    @classmethod
    def normalize_scheduled_for(cls, v):
        return _to_naive_utc(v)


class RescheduleRequest(BaseModel):
    scheduledFor: datetime

    @field_validator("scheduledFor")
    @classmethod
    def normalize_scheduled_for(cls, v):
        return _to_naive_utc(v)


class ScheduledEmailResponse(BaseModel):
    id: str
    to: str
    subject: str
    htmlContent: str
    cc: list[str] = []
    bcc: list[str] = []
    fromAddress: Optional[str] = None
    replyTo: Optional[str] = None
    scheduledFor: datetime
    status: str
    attempts: int
    maxAttempts: int
    errorMessage: Optional[str] = None
    sentAt: Optional[datetime] = None
    messageId: Optional[str] = None
    emailType: Optional[str] = None
    bookingId: Optional[str] = None
    templateId: Optional[str] = None
    templateVariables: Optional[dict] = None
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


class ProcessResult(BaseModel):
    processed: int
    sent: int
    failed: int
