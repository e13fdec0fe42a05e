from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from app.models import DocumentStatus, DocumentType, ServiceType, CaseStatus
from app.core.responses import Pagination

class DocumentCreate(BaseModel):
    file_name: Optional[str] = None
    original_name: Optional[str] = None
    file_path: Optional[str] = None
    file_size: int = 0
    mime_type: Optional[str] = None
    document_type: Optional[DocumentType] = None
    case_id: Optional[str] = None

class DocumentReject(BaseModel):
    reason: str = ""

class BulkDocumentApprove(BaseModel):
    document_ids: List[str] = Field(default_factory=list)

class DocumentCaseSummary(BaseModel):
    id: str
    reference_number: str
    service_type: ServiceType
    status: CaseStatus

    class Config:
        from_attributes = True

class UploaderSummary(BaseModel):
    id: str
    first_name: str
    last_name: str

    class Config:
        from_attributes = True

class DocumentResponse(BaseModel):
    id: str
    case_id: str
    uploaded_by_id: str
    file_name: str
    original_name: str
    file_path: str
    file_size: int
    mime_type: str
    document_type: DocumentType
    status: DocumentStatus
    upload_date: datetime
    verified_by: Optional[str] = None
    verified_at: Optional[datetime] = None
    rejected_by: Optional[str] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    case: Optional[DocumentCaseSummary] = None
    uploaded_by: Optional[UploaderSummary] = None

    class Config:
        from_attributes = True

class DocumentData(BaseModel):
    document: DocumentResponse

class DocumentListData(BaseModel):
    documents: List[DocumentResponse]
    pagination: Pagination

class BulkApproveData(BaseModel):
    approved_count: int
