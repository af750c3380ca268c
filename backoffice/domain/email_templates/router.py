"""Email template router - FastAPI endpoints for email templates"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import AdminUser, EmailTemplate
from .rendering import extract_template_variables, render_template, template_warnings, validate_template_syntax
from .schemas import (
    BulkDeleteRequest,
    BulkStatusUpdate,
    EmailTemplateCreate,
    EmailTemplateResponse,
    EmailTemplateUpdate,
    PreviewRequest,
    PreviewResponse,
    ValidationResponse,
)
from .service import EmailTemplateService

router = APIRouter(prefix="/email-templates", tags=["Email Templates"])


def get_template_service(db: Session = Depends(get_db)) -> EmailTemplateService:
    """Dependency injection for EmailTemplateService"""
    return EmailTemplateService(db)


def to_template_response(t: EmailTemplate) -> EmailTemplateResponse:
    return EmailTemplateResponse(
        id=t.id,
        name=t.name,
        subject=t.subject,
        content=t.content,
        variables=t.variables or [],
        variableDefinitions=t.variable_definitions or [],
        status=t.status,
        bccGroups=t.bcc_groups or [],
        createdBy=t.created_by,
        usedCount=t.used_count or 0,
        createdAt=t.created_at,
        updatedAt=t.updated_at,
    )


# ============================================================================
# CORE CRUD OPERATIONS
# ============================================================================


@router.get("", response_model=list[EmailTemplateResponse])
async def get_templates(
    status: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    current_user: AdminUser = Depends(get_current_user),
    service: EmailTemplateService = Depends(get_template_service),
):
    return [to_template_response(t) for t in service.list_templates(status, search)]


@router.get("/stats")
async def get_template_stats(
    current_user: AdminUser = Depends(get_current_user),
    service: EmailTemplateService = Depends(get_template_service),
):
    return service.get_stats()


@router.post("/validate", response_model=ValidationResponse)
async def validate_template(
    data: PreviewRequest,
    current_user: AdminUser = Depends(get_current_user),
):
    """Check Jinja syntax without saving"""
    content = data.content or ""
    is_valid, errors = validate_template_syntax(content)
    warnings = template_warnings(content, data.subject or "")
    return ValidationResponse(isValid=is_valid, errors=errors, warnings=warnings)


@router.post("/preview", response_model=PreviewResponse)
async def preview_template(
    data: PreviewRequest,
    current_user: AdminUser = Depends(get_current_user),
):
    """Render unsaved template content with sample data"""
    content = data.content or ""
    return PreviewResponse(
        subject=render_template(data.subject or "", data.data),
        html=render_template(content, data.data),
        variables=extract_template_variables(content),
    )


@router.post("/batch/update-status")
async def bulk_update_status(
    data: BulkStatusUpdate,
    current_user: AdminUser = Depends(get_current_user),
    service: EmailTemplateService = Depends(get_template_service),
):
    updated = service.bulk_update_status(data.templateIds, data.status)
    return {"message": f"Updated {updated} templates", "updated": updated}


@router.post("/batch/delete")
async def bulk_delete(
    data: BulkDeleteRequest,
    current_user: AdminUser = Depends(get_current_user),
    service: EmailTemplateService = Depends(get_template_service),
):
    deleted = service.bulk_delete(data.templateIds)
    return {"message": f"Deleted {deleted} templates", "deleted": deleted}


@router.get("/{template_id}", response_model=EmailTemplateResponse)
async def get_template(
    template_id: str,
    current_user: AdminUser = Depends(get_current_user),
    service: EmailTemplateService = Depends(get_template_service),
):
    return to_template_response(service.get_template(template_id))


@router.post("", response_model=EmailTemplateResponse, status_code=201)
async def create_template(
    data: EmailTemplateCreate,
    current_user: AdminUser = Depends(get_current_user),
    service: EmailTemplateService = Depends(get_template_service),
):
    return to_template_response(service.create_template(data, created_by=current_user.firebase_uid))


@router.put("/{template_id}", response_model=EmailTemplateResponse)
async def update_template(
    template_id: str,
    data: EmailTemplateUpdate,
    current_user: AdminUser = Depends(get_current_user),
    service: EmailTemplateService = Depends(get_template_service),
):
    return to_template_response(service.update_template(template_id, data))


@router.delete("/{template_id}")
async def delete_template(
    template_id: str,
    current_user: AdminUser = Depends(get_current_user),
    service: EmailTemplateService = Depends(get_template_service),
):
    service.delete_template(template_id)
    return {"message": "Template deleted successfully"}


@router.post("/{template_id}/archive", response_model=EmailTemplateResponse)
async def archive_template(
    template_id: str,
    current_user: AdminUser = Depends(get_current_user),
    service: EmailTemplateService = Depends(get_template_service),
):
    return to_template_response(service.archive_template(template_id))


@router.post("/{template_id}/restore", response_model=EmailTemplateResponse)
async def restore_template(
    template_id: str,
    current_user: AdminUser = Depends(get_current_user),
    service: EmailTemplateService = Depends(get_template_service),
):
    return to_template_response(service.restore_template(template_id))


@router.post("/{template_id}/duplicate", response_model=EmailTemplateResponse, status_code=201)
async def duplicate_template(
    template_id: str,
    current_user: AdminUser = Depends(get_current_user),
    service: EmailTemplateService = Depends(get_template_service),
):
    return to_template_response(service.duplicate_template(template_id, created_by=current_user.firebase_uid))


@router.post("/{template_id}/use")
async def increment_template_usage(
    template_id: str,
    current_user: AdminUser = Depends(get_current_user),
    service: EmailTemplateService = Depends(get_template_service),
):
    service.get_template(template_id)
    service.increment_usage(template_id)
    return {"success": True}


@router.post("/{template_id}/preview", response_model=PreviewResponse)
async def preview_saved_template(
    template_id: str,
    data: PreviewRequest,
    current_user: AdminUser = Depends(get_current_user),
    service: EmailTemplateService = Depends(get_template_service),
):
    template = service.get_template(template_id)
    subject, html = service.render(template, data.data)
    return PreviewResponse(subject=subject, html=html, variables=template.variables or [])
