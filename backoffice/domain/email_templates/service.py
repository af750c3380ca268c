"""Email template service - Business logic for email templates"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ...models import EmailTemplate
from .rendering import extract_template_variables, render_template, validate_template_syntax
from .schemas import EmailTemplateCreate, EmailTemplateUpdate

logger = logging.getLogger(__name__)


class EmailTemplateService:
    """Service layer for email template business logic"""

    def __init__(self, db: Session):
        self.db = db

    # ========================================================================
    # CORE CRUD OPERATIONS
    # ========================================================================

    def list_templates(self, status: Optional[str] = None, search: Optional[str] = None) -> list[EmailTemplate]:
        query = self.db.query(EmailTemplate)
        if status:
            query = query.filter(EmailTemplate.status == status)
        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(EmailTemplate.name.ilike(pattern), EmailTemplate.subject.ilike(pattern)))
        return query.order_by(EmailTemplate.updated_at.desc()).all()

    def get_template(self, template_id: str) -> EmailTemplate:
        template = self.db.query(EmailTemplate).filter(EmailTemplate.id == template_id).first()
        if not template:
            raise HTTPException(status_code=404, detail="Template not found")
        return template

    def get_template_by_name(self, name: str) -> Optional[EmailTemplate]:
        return self.db.query(EmailTemplate).filter(func.lower(EmailTemplate.name) == name.lower()).first()

    def _check_syntax(self, content: str) -> None:
        is_valid, errors = validate_template_syntax(content)
        if not is_valid:
            raise HTTPException(status_code=400, detail=f"Template validation failed: {', '.join(errors)}")

    def create_template(self, data: EmailTemplateCreate, created_by: Optional[str] = None) -> EmailTemplate:
        self._check_syntax(data.content)
        template = EmailTemplate(
            name=data.name,
            subject=data.subject,
            content=data.content,
            status=data.status,
            variables=data.variables if data.variables is not None else extract_template_variables(data.content),
            variable_definitions=[d.model_dump() for d in data.variableDefinitions],
            bcc_groups=data.bccGroups,
            created_by=created_by,
            used_count=0,
        )
        self.db.add(template)
        self.db.commit()
        self.db.refresh(template)
        logger.info(f"✅ Created template {template.name} ({template.id})")
        return template

    def update_template(self, template_id: str, data: EmailTemplateUpdate) -> EmailTemplate:
        template = self.get_template(template_id)
        updates = data.model_dump(exclude_unset=True)

        if "content" in updates:
            self._check_syntax(data.content)
            template.content = data.content
            if data.variables is None:
                template.variables = extract_template_variables(data.content)
        if data.variables is not None:
            template.variables = data.variables
        if data.name is not None:
            template.name = data.name
        if data.subject is not None:
            template.subject = data.subject
        if data.status is not None:
            template.status = data.status
        if data.variableDefinitions is not None:
            template.variable_definitions = [d.model_dump() for d in data.variableDefinitions]
        if data.bccGroups is not None:
            template.bcc_groups = data.bccGroups

        template.updated_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(template)
        return template

    def delete_template(self, template_id: str) -> None:
        template = self.get_template(template_id)
        self.db.delete(template)
        self.db.commit()

    # ========================================================================
    # STATUS AND USAGE
    # ========================================================================

    def set_status(self, template_id: str, status: str) -> EmailTemplate:
        template = self.get_template(template_id)
        template.status = status
        self.db.commit()
        self.db.refresh(template)
        return template

    def archive_template(self, template_id: str) -> EmailTemplate:
        return self.set_status(template_id, "archived")

    def restore_template(self, template_id: str) -> EmailTemplate:
        """Bring an archived template back as a draft"""
        return self.set_status(template_id, "draft")

    def duplicate_template(self, template_id: str, created_by: Optional[str] = None) -> EmailTemplate:
        source = self.get_template(template_id)
        copy = EmailTemplate(
            name=f"{source.name} (Copy)",
            subject=source.subject,
            content=source.content,
            variables=list(source.variables or []),
            variable_definitions=list(source.variable_definitions or []),
            status="draft",
            bcc_groups=list(source.bcc_groups or []),
            created_by=created_by or source.created_by,
            used_count=0,
        )
        self.db.add(copy)
        self.db.commit()
        self.db.refresh(copy)
        logger.info(f"✅ Duplicated template {template_id} to {copy.id}")
        return copy

    def increment_usage(self, template_id: str) -> None:
        template = self.db.query(EmailTemplate).filter(EmailTemplate.id == template_id).first()
        if template:
            template.used_count = (template.used_count or 0) + 1
            self.db.commit()

    # ========================================================================
    # BULK OPERATIONS
    # ========================================================================

    def bulk_update_status(self, template_ids: list[str], status: str) -> int:
        if not template_ids:
            raise HTTPException(status_code=400, detail="No template IDs provided")
        updated = (
            self.db.query(EmailTemplate)
            .filter(EmailTemplate.id.in_(template_ids))
            .update({EmailTemplate.status: status, EmailTemplate.updated_at: datetime.utcnow()}, synchronize_session=False)
        )
        self.db.commit()
        return updated

    def bulk_delete(self, template_ids: list[str]) -> int:
        if not template_ids:
            raise HTTPException(status_code=400, detail="No template IDs provided")
        deleted = self.db.query(EmailTemplate).filter(EmailTemplate.id.in_(template_ids)).delete(synchronize_session=False)
        self.db.commit()
        return deleted

    def get_stats(self) -> dict:
        templates = self.db.query(EmailTemplate).all()

        by_status = {"active": 0, "draft": 0, "archived": 0}
        by_user: dict = {}
        for template in templates:
            by_status[template.status] = by_status.get(template.status, 0) + 1
            owner = template.created_by or "unknown"
            by_user[owner] = by_user.get(owner, 0) + 1

        last_created = max((t.created_at for t in templates if t.created_at), default=None)
        last_updated = max((t.updated_at for t in templates if t.updated_at), default=None)
        most_used = max(templates, key=lambda t: t.used_count or 0, default=None)

        return {
            "total": len(templates),
            "byStatus": by_status,
            "byUser": by_user,
            "recentActivity": {
                "lastCreated": last_created,
                "lastUpdated": last_updated,
                "mostUsed": most_used.name if most_used and most_used.used_count else None,
            },
        }

    # ========================================================================
    # RENDERING
    # ========================================================================

    def render(self, template: EmailTemplate, data: dict) -> tuple[str, str]:
        """Render a stored template's subject and body"""
        return render_template(template.subject, data), render_template(template.content, data)
