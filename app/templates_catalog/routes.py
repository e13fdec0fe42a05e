from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from sqlalchemy import update
from typing import Optional
import logging

from app.database import get_db
from app.models import DocumentTemplate, ServiceType, User
from app.templates_catalog.schemas import TemplateCreate, TemplateData, TemplateListData, TemplateUpdate
from app.auth.dependencies import require_admin
from app.core.rate_limit import rate_limit, RateLimitPresets
from app.core.responses import ApiResponse, success_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/templates", tags=["Templates"], dependencies=[Depends(rate_limit(RateLimitPresets.GENEROUS))])


def get_template_or_404(db: Session, template_id: str) -> DocumentTemplate:
    template = db.query(DocumentTemplate).filter(DocumentTemplate.id == template_id).first()
    if not template:
        raise HTTPException(status_code=404, detail="Template not found")
    return template

# ===== PUBLIC =====

@router.get("", response_model=ApiResponse[TemplateListData])
async def list_templates(
    service_type: Optional[ServiceType] = None,
    category: Optional[str] = None,
    db: Session = Depends(get_db)
):
    query = db.query(DocumentTemplate).filter(DocumentTemplate.is_active.is_(True))
    if service_type:
        query = query.filter(DocumentTemplate.service_type == service_type)
    if category:
        query = query.filter(DocumentTemplate.category == category)

    templates = query.order_by(
        DocumentTemplate.service_type, DocumentTemplate.category, DocumentTemplate.name
    ).all()
    return success_response(
        {"templates": templates, "total": len(templates)},
        "Templates retrieved successfully",
    )

@router.get("/{template_id}", response_model=ApiResponse[TemplateData])
async def get_template(template_id: str, db: Session = Depends(get_db)):
    """Fetch a template for download and bump its download counter."""
    template = get_template_or_404(db, template_id)
    if not template.is_active:
        raise HTTPException(status_code=403, detail="This template is not available")

    db.execute(
        update(DocumentTemplate)
        .where(DocumentTemplate.id == template_id)
        .values(download_count=DocumentTemplate.download_count + 1)
    )
    db.commit()
    db.refresh(template)
    return success_response({"template": template}, "Template retrieved successfully")

# ===== ADMIN =====

@router.post("", response_model=ApiResponse[TemplateData], status_code=status.HTTP_201_CREATED)
async def create_template(
    payload: TemplateCreate,
    current_user: User = Depends(require_admin()),
    db: Session = Depends(get_db)
):
    if not (payload.name and payload.file_url and payload.file_name and payload.category):
        raise HTTPException(status_code=400, detail="name, file_url, file_name and category are required")

    template = DocumentTemplate(**payload.dict(), created_by_id=current_user.id)
    db.add(template)
    db.commit()
    db.refresh(template)

    logger.info(f"Template {template.id} created by {current_user.id}")
    return success_response({"template": template}, "Template created successfully")

@router.patch("/{template_id}", response_model=ApiResponse[TemplateData])
async def update_template(
    template_id: str,
    payload: TemplateUpdate,
    current_user: User = Depends(require_admin()),
    db: Session = Depends(get_db)
):
    template = get_template_or_404(db, template_id)
    for field, value in payload.dict(exclude_unset=True, exclude_none=True).items():
        setattr(template, field, value)
    db.commit()
    db.refresh(template)
    return success_response({"template": template}, "Template updated successfully")

@router.delete("/{template_id}", response_model=ApiResponse[dict])
async def delete_template(
    template_id: str,
    current_user: User = Depends(require_admin()),
    db: Session = Depends(get_db)
):
    template = get_template_or_404(db, template_id)
    db.delete(template)
    db.commit()
    logger.info(f"Template {template_id} deleted by {current_user.id}")
    return success_response({}, "Template deleted successfully")
