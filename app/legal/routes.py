from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from sqlalchemy import desc
from datetime import datetime
from typing import Optional
import logging

from app.database import get_db
from app.models import LegalDocument, LegalDocumentType, User, UserRole
from app.legal.schemas import (
    SUPPORTED_LANGUAGES, LegalDocumentCreate, LegalDocumentData, LegalDocumentListData, LegalDocumentUpdate
)
from app.auth.dependencies import get_optional_user, require_admin
from app.core.rate_limit import rate_limit, RateLimitPresets
from app.core.responses import ApiResponse, success_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/legal", tags=["Legal"], dependencies=[Depends(rate_limit(RateLimitPresets.GENEROUS))])

DOCUMENT_TYPES = {
    "privacy": LegalDocumentType.PRIVACY,
    "terms": LegalDocumentType.TERMS,
}


def resolve_type(doc_type: str) -> LegalDocumentType:
    legal_type = DOCUMENT_TYPES.get(doc_type.lower())
    if legal_type is None:
        raise HTTPException(status_code=404, detail="Legal document type not found")
    return legal_type


def check_language(language: Optional[str]) -> None:
    if language not in SUPPORTED_LANGUAGES:
        raise HTTPException(status_code=400, detail=f"Language must be one of: {', '.join(SUPPORTED_LANGUAGES)}")


def get_typed_document(db: Session, legal_type: LegalDocumentType, document_id: str) -> LegalDocument:
    document = db.query(LegalDocument).filter(
        LegalDocument.id == document_id,
        LegalDocument.type == legal_type
    ).first()
    if not document:
        raise HTTPException(status_code=404, detail="Legal document not found")
    return document

@router.get("/{doc_type}", response_model=ApiResponse[LegalDocumentListData])
async def get_legal_documents(
    doc_type: str,
    include_inactive: bool = False,
    latest: bool = False,
    language: str = Query("en"),
    current_user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db)
):
    """Published privacy policy or terms. Inactive versions are only listed for admins."""
    legal_type = resolve_type(doc_type)
    query = db.query(LegalDocument).filter(
        LegalDocument.type == legal_type,
        LegalDocument.language == language
    )
    show_inactive = include_inactive and current_user is not None and current_user.role == UserRole.ADMIN
    if not show_inactive:
        query = query.filter(LegalDocument.is_active.is_(True))
    query = query.order_by(desc(LegalDocument.published_at), desc(LegalDocument.updated_at))

    if latest:
        document = query.first()
        if not document:
            raise HTTPException(status_code=404, detail="Legal document not found")
        return success_response({"document": document}, "Legal document retrieved successfully")

    return success_response({"documents": query.all()}, "Legal documents retrieved successfully")

@router.post("/{doc_type}", response_model=ApiResponse[LegalDocumentData], status_code=status.HTTP_201_CREATED)
async def create_legal_document(
    doc_type: str,
    payload: LegalDocumentCreate,
    current_user: User = Depends(require_admin()),
    db: Session = Depends(get_db)
):
    legal_type = resolve_type(doc_type)
    if not (payload.title and payload.slug and payload.content and payload.language):
        raise HTTPException(status_code=400, detail="title, slug, content and language are required")
    check_language(payload.language)

    if db.query(LegalDocument).filter(LegalDocument.slug == payload.slug).first():
        raise HTTPException(status_code=409, detail="A legal document with this slug already exists")

    document = LegalDocument(
        type=legal_type,
        title=payload.title,
        slug=payload.slug,
        content=payload.content,
        language=payload.language,
        version=payload.version,
        is_active=payload.is_active,
        published_at=payload.published_at or datetime.utcnow(),
    )
    db.add(document)
    db.commit()
    db.refresh(document)

    logger.info(f"Legal document {document.slug} ({legal_type.value}) created by {current_user.id}")
    return success_response({"document": document}, "Legal document created successfully")

@router.put("/{doc_type}/{document_id}", response_model=ApiResponse[LegalDocumentData])
async def update_legal_document(
    doc_type: str,
    document_id: str,
    payload: LegalDocumentUpdate,
    current_user: User = Depends(require_admin()),
    db: Session = Depends(get_db)
):
    document = get_typed_document(db, resolve_type(doc_type), document_id)
    update_data = payload.dict(exclude_unset=True, exclude_none=True)
    if "language" in update_data:
        check_language(update_data["language"])
    if "slug" in update_data and update_data["slug"] != document.slug:
        if db.query(LegalDocument).filter(LegalDocument.slug == update_data["slug"]).first():
            raise HTTPException(status_code=409, detail="A legal document with this slug already exists")

    for field, value in update_data.items():
        setattr(document, field, value)
    db.commit()
    db.refresh(document)
    return success_response({"document": document}, "Legal document updated successfully")

@router.delete("/{doc_type}/{document_id}", response_model=ApiResponse[dict])
async def delete_legal_document(
    doc_type: str,
    document_id: str,
    current_user: User = Depends(require_admin()),
    db: Session = Depends(get_db)
):
    document = get_typed_document(db, resolve_type(doc_type), document_id)
    db.delete(document)
    db.commit()
    logger.info(f"Legal document {document_id} deleted by {current_user.id}")
    return success_response({}, "Legal document deleted successfully")
