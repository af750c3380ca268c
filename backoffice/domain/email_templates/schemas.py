"""Email template schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, field_validator

TEMPLATE_STATUSES = ["active", "draft", "archived"]


def _validate_status(v):
    if v is not None and v not in TEMPLATE_STATUSES:
        raise ValueError(f"Status must be one of: {', '.join(TEMPLATE_STATUSES)}")
    return v


class VariableDefinition(BaseModel):
    name: str
    type: str = "string"
    description: Optional[str] = None
    defaultValue: Any = None


class EmailTemplateCreate(BaseModel):
    """Schema for creating an email template"""

    name: str
    subject: str
    content: str
    status: str = "draft"
    variables: Optional[list[str]] = None
    variableDefinitions: list[VariableDefinition] = []
    bccGroups: list[str] = []

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("Template name is required")
        if len(v) > 100:
            raise ValueError("Template name is too long (max 100 characters)")
        return v.strip()

    @field_validator("subject", "content")
    @classmethod
    def validate_required(cls, v):
        if not v or not v.strip():
            raise ValueError("Field is required")
        return v

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        return _validate_status(v)


class EmailTemplateUpdate(BaseModel):
    """Schema for updating an email template"""

    name: Optional[str] = None
    subject: Optional[str] = None
    content: Optional[str] = None
    status: Optional[str] = None
    variables: Optional[list[str]] = None
    variableDefinitions: Optional[list[VariableDefinition]] = None
    bccGroups: Optional[list[str]] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if v is not None:
            if not v.strip():
                raise ValueError("Template name is required")
            if len(v) > 100:
                raise ValueError("Template name is too long (max 100 characters)")
            return v.strip()
        return v

    @field_validator("subject", "content")
    @classmethod
    def validate_required(cls, v):
        if v is not None and not v.strip():
            raise ValueError("Field is required")
        return v

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        return _validate_status(v)


class EmailTemplateResponse(BaseModel):
    id: str
    name: str
    subject: str
    content: str
    variables: list[str] = []
    variableDefinitions: list[dict] = []
    status: str
    bccGroups: list[str] = []
    createdBy: Optional[str] = None
    usedCount: int = 0
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


class BulkStatusUpdate(BaseModel):
    templateIds: list[str]
    status: str

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        return _validate_status(v)


class BulkDeleteRequest(BaseModel):
    templateIds: list[str]


class PreviewRequest(BaseModel):
    content: Optional[str] = None
    subject: Optional[str] = None
    data: dict = {}


class PreviewResponse(BaseModel):
    subject: str
    html: str
    variables: list[str]


class ValidationResponse(BaseModel):
    isValid: bool
    errors: list[str]
    warnings: list[str] = []
