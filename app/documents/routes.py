from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status, UploadFile, File, Form, Query
from sqlalchemy.orm import Session, joinedload
from sqlalchemy import desc
from starlette.concurrency import run_in_threadpool
from typing import Optional
from datetime import datetime
import logging
import mimetypes

from app.database import get_db
from app.models import Case, Document, DocumentStatus, DocumentType, NotificationType, User, UserRole
from app.documents.schemas import (
    BulkApproveData, BulkDocumentApprove, DocumentCreate, DocumentData, DocumentListData, DocumentReject
)
from app.auth.dependencies import get_current_user, require_agent_or_admin
from app.core.rate_limit import rate_limit, RateLimitPresets
from app.core.responses import ApiResponse, paginate, resolve_pagination, success_response
from app.integrations import email, uploadthing
from app.services.notification_service import NotificationService, run_best_effort

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/documents", tags=["Documents"], dependencies=[Depends(rate_limit(RateLimitPresets.STANDARD))])

# Configuration
MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB
ALLOWED_MIME_TYPES = {
    "application/pdf",
    "image/jpeg", "image/png", "image/webp",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}
MAX_BULK_DOCUMENTS = 100


def get_mime_type(file: UploadFile) -> str:
    return file.content_type or mimetypes.guess_type(file.filename or "")[0] or "application/octet-stream"


def load_document(db: Session, document_id: str) -> Document:
    document = db.query(Document).options(
        joinedload(Document.case).joinedload(Case.client),
        joinedload(Document.uploaded_by)
    ).filter(Document.id == document_id).first()
    if not document:
        raise HTTPException(status_code=404, detail="Document not found")
    return document


def save_document_metadata(
    db: Session,
    current_user: User,
    background_tasks: BackgroundTasks,
    case_id: str,
    document_type: DocumentType,
    file_name: str,
    original_name: str,
    file_path: str,
    file_size: int,
    mime_type: str,
    file_key: Optional[str] = None,
) -> Document:
    case = db.query(Case).filter(Case.id == case_id).first()
    if not case:
        raise HTTPException(status_code=404, detail="Case not found")
    if current_user.role == UserRole.CLIENT and case.client_id != current_user.id:
        raise HTTPException(status_code=403, detail="You do not have permission to perform this action")

    document = Document(
        case_id=case.id,
        uploaded_by_id=current_user.id,
        file_name=file_name,
        original_name=original_name or file_name,
        file_path=file_path,
        file_key=file_key,
        file_size=file_size or 0,
        mime_type=mime_type,
        document_type=document_type,
    )
    db.add(document)
    db.commit()
    logger.info(f"Document {document.id} saved for case {case.reference_number} by {current_user.id}")

    if case.assigned_agent is not None and case.assigned_agent_id != current_user.id:
        NotificationService(db, background_tasks).notify(
            case.assigned_agent,
            NotificationType.DOCUMENT_UPLOADED,
            "New Document Uploaded",
            f"{current_user.full_name} uploaded {document.original_name} for case {case.reference_number}",
            case_id=case.id,
            action_url="/dashboard/documents",
        )
    return load_document(db, document.id)

# =====================================================
# DOCUMENT CRUD OPERATIONS
# =====================================================

@router.get("", response_model=ApiResponse[DocumentListData])
async def list_documents(
    page: int = Query(1),
    limit: Optional[int] = Query(None),
    case_id: Optional[str] = None,
    document_type: Optional[DocumentType] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """List documents, newest first. Clients only see their own uploads."""
    page, limit, offset = resolve_pagination(page, limit, default_limit=20)
    query = db.query(Document)
    if current_user.role == UserRole.CLIENT:
        query = query.filter(Document.uploaded_by_id == current_user.id)
    if case_id:
        query = query.filter(Document.case_id == case_id)
    if document_type:
        query = query.filter(Document.document_type == document_type)

    total = query.count()
    documents = query.options(
        joinedload(Document.case), joinedload(Document.uploaded_by)
    ).order_by(desc(Document.upload_date)).offset(offset).limit(limit).all()
    return success_response(
        {"documents": documents, "pagination": paginate(page, limit, total)},
        "Documents retrieved successfully",
    )

@router.post("", response_model=ApiResponse[DocumentData], status_code=status.HTTP_201_CREATED)
async def create_document(
    payload: DocumentCreate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Record metadata for a file the client already pushed to storage."""
    if not (payload.file_name and payload.file_path and payload.mime_type and payload.document_type and payload.case_id):
        raise HTTPException(
            status_code=400,
            detail="file_name, file_path, mime_type, document_type, and case_id are required"
        )
    document = save_document_metadata(
        db, current_user, background_tasks,
        case_id=payload.case_id,
        document_type=payload.document_type,
        file_name=payload.file_name,
        original_name=payload.original_name,
        file_path=payload.file_path,
        file_size=payload.file_size,
        mime_type=payload.mime_type,
        file_key=uploadthing.file_key_from_url(payload.file_path),
    )
    return success_response({"document": document}, "Document uploaded successfully")

@router.post(
    "/upload",
    response_model=ApiResponse[DocumentData],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit(RateLimitPresets.UPLOAD))],
)
async def upload_document(
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
    case_id: str = Form(...),
    document_type: DocumentType = Form(...),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Upload a file to storage and record it against a case."""
    if not file.filename:
        raise HTTPException(status_code=400, detail="No file provided")
    mime_type = get_mime_type(file)
    if mime_type not in ALLOWED_MIME_TYPES:
        raise HTTPException(status_code=400, detail="Invalid file type")

    content = await file.read()
    if len(content) > MAX_FILE_SIZE:
        raise HTTPException(status_code=400, detail="File size exceeds the maximum limit")

    case = db.query(Case).filter(Case.id == case_id).first()
    if not case:
        raise HTTPException(status_code=404, detail="Case not found")
    if current_user.role == UserRole.CLIENT and case.client_id != current_user.id:
        raise HTTPException(status_code=403, detail="You do not have permission to perform this action")

    try:
        uploaded = await run_in_threadpool(uploadthing.upload_file, content, file.filename, mime_type)
    except uploadthing.UploadError as e:
        logger.error(f"Document upload failed for case {case_id}: {e}")
        raise HTTPException(status_code=502, detail="Failed to upload document")

    document = save_document_metadata(
        db, current_user, background_tasks,
        case_id=case_id,
        document_type=document_type,
        file_name=uploaded.key,
        original_name=file.filename,
        file_path=uploaded.url,
        file_size=uploaded.size,
        mime_type=mime_type,
        file_key=uploaded.key,
    )
    return success_response({"document": document}, "Document uploaded successfully")

@router.get("/{document_id}", response_model=ApiResponse[DocumentData])
async def get_document(
    document_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    document = load_document(db, document_id)
    if current_user.role == UserRole.CLIENT and document.uploaded_by_id != current_user.id:
        raise HTTPException(status_code=403, detail="You do not have permission to perform this action")
    return success_response({"document": document}, "Document retrieved successfully")

@router.delete("/{document_id}", response_model=ApiResponse[dict])
async def delete_document(
    document_id: str,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    document = load_document(db, document_id)
    if current_user.role != UserRole.ADMIN and document.uploaded_by_id != current_user.id:
        raise HTTPException(status_code=403, detail="You do not have permission to perform this action")

    file_key = document.file_key
    db.delete(document)
    db.commit()
    if file_key:
        background_tasks.add_task(run_best_effort, "Delete document file", uploadthing.delete_files, [file_key])

    logger.info(f"Document {document_id} deleted by {current_user.id}")
    return success_response({}, "Document deleted successfully")

# =====================================================
# DOCUMENT REVIEW
# =====================================================

@router.post("/bulk/approve", response_model=ApiResponse[BulkApproveData])
async def bulk_approve_documents(
    payload: BulkDocumentApprove,
    current_user: User = Depends(require_agent_or_admin()),
    db: Session = Depends(get_db)
):
    if not payload.document_ids:
        raise HTTPException(status_code=400, detail="Document IDs are required")
    if len(payload.document_ids) > MAX_BULK_DOCUMENTS:
        raise HTTPException(status_code=400, detail=f"Cannot approve more than {MAX_BULK_DOCUMENTS} documents at once")

    approved = db.query(Document).filter(
        Document.id.in_(payload.document_ids),
        Document.status == DocumentStatus.PENDING
    ).update(
        {
            Document.status: DocumentStatus.APPROVED,
            Document.verified_by: current_user.id,
            Document.verified_at: datetime.utcnow(),
        },
        synchronize_session=False,
    )
    db.commit()

    logger.info(f"{approved} documents bulk approved by {current_user.id}")
    return success_response({"approved_count": approved}, f"{approved} documents approved successfully")

@router.patch("/{document_id}/approve", response_model=ApiResponse[DocumentData])
async def approve_document(
    document_id: str,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(require_agent_or_admin()),
    db: Session = Depends(get_db)
):
    document = load_document(db, document_id)
    document.status = DocumentStatus.APPROVED
    document.verified_by = current_user.id
    document.verified_at = datetime.utcnow()
    db.commit()

    document = load_document(db, document_id)
    client = document.case.client
    notifier = NotificationService(db, background_tasks)
    notifier.email(
        "Document verified email", email.send_document_verified_email,
        client.email, document.original_name, client.full_name,
    )
    notifier.notify(
        client,
        NotificationType.DOCUMENT_VERIFIED,
        "Document Approved",
        f"Your {document.original_name} has been verified and approved",
        case_id=document.case_id,
        action_url="/dashboard/documents",
        send_push=True,
    )

    logger.info(f"Document {document_id} approved by {current_user.id}")
    return success_response({"document": load_document(db, document_id)}, "Document approved successfully")

@router.patch("/{document_id}/reject", response_model=ApiResponse[DocumentData])
async def reject_document(
    document_id: str,
    payload: DocumentReject,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(require_agent_or_admin()),
    db: Session = Depends(get_db)
):
    reason = payload.reason.strip()
    if not reason:
        raise HTTPException(status_code=400, detail="Rejection reason is required")

    document = load_document(db, document_id)
    document.status = DocumentStatus.REJECTED
    document.rejected_by = current_user.id
    document.rejected_at = datetime.utcnow()
    document.rejection_reason = reason
    db.commit()

    document = load_document(db, document_id)
    client = document.case.client
    notifier = NotificationService(db, background_tasks)
    notifier.email(
        "Document rejected email", email.send_document_rejected_email,
        client.email, document.original_name, reason, client.full_name,
    )
    notifier.notify(
        client,
        NotificationType.DOCUMENT_REJECTED,
        "Document Rejected",
        f"Your {document.original_name} was rejected: {reason}",
        case_id=document.case_id,
        action_url="/dashboard/documents",
        send_push=True,
    )

    logger.info(f"Document {document_id} rejected by {current_user.id}")
    return success_response({"document": load_document(db, document_id)}, "Document rejected successfully")
