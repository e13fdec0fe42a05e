from pydantic import BaseModel, Field
from typing import Optional, List, Dict
from datetime import datetime
from app.models import CaseStatus, Priority, ServiceType, DocumentType, TransferReason
from app.auth.schemas import UserBasic
from app.core.responses import Pagination

# Request schemas
class CaseCreate(BaseModel):
    service_type: ServiceType
    priority: Priority = Priority.NORMAL

class CaseUpdate(BaseModel):
    service_type: Optional[ServiceType] = None
    status: Optional[CaseStatus] = None
    priority: Optional[Priority] = None
    internal_notes: Optional[str] = None

class CaseStatusUpdate(BaseModel):
    status: CaseStatus
    notes: Optional[str] = None

class CaseNoteCreate(BaseModel):
    note: str = ""

class CasePriorityUpdate(BaseModel):
    priority: Priority

class EstimatedCompletionUpdate(BaseModel):
    estimated_completion: Optional[datetime] = None

class DocumentRequest(BaseModel):
    document_types: List[DocumentType] = Field(default_factory=list)
    message: Optional[str] = Field(None, max_length=2000)

class CaseAssign(BaseModel):
    agent_id: Optional[str] = None

class CaseTransfer(BaseModel):
    new_agent_id: str
    reason: TransferReason
    handover_notes: Optional[str] = Field(None, max_length=5000)
    notify_client: bool = True
    notify_agent: bool = True

class BulkCaseOperation(BaseModel):
    operation: str
    case_ids: List[str] = Field(default_factory=list)
    assigned_agent_id: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = None

# Response schemas
class CaseResponse(BaseModel):
    id: str
    reference_number: str
    client_id: str
    assigned_agent_id: Optional[str] = None
    service_type: ServiceType
    status: CaseStatus
    priority: Priority
    submission_date: datetime
    last_updated: Optional[datetime] = None
    internal_notes: Optional[str] = None
    estimated_completion: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    client: Optional[UserBasic] = None
    assigned_agent: Optional[UserBasic] = None

    class Config:
        from_attributes = True

class StatusHistoryResponse(BaseModel):
    id: str
    case_id: str
    status: CaseStatus
    changed_by: str
    notes: Optional[str] = None
    timestamp: datetime
    changed_by_user: Optional[UserBasic] = None

    class Config:
        from_attributes = True

class TransferHistoryResponse(BaseModel):
    id: str
    case_id: str
    from_agent_id: Optional[str] = None
    from_agent_name: Optional[str] = None
    to_agent_id: str
    to_agent_name: str
    transferred_by: str
    reason: TransferReason
    handover_notes: Optional[str] = None
    notify_client: bool
    notify_agent: bool
    transferred_at: datetime

    class Config:
        from_attributes = True

# Envelope payloads
class CaseData(BaseModel):
    case: CaseResponse

class CaseListData(BaseModel):
    cases: List[CaseResponse]
    pagination: Pagination

class StatusHistoryData(BaseModel):
    history: List[StatusHistoryResponse]

class TransferHistoryData(BaseModel):
    transfers: List[TransferHistoryResponse]

class EmailsSent(BaseModel):
    client: bool
    agent: bool

class CaseTransferData(BaseModel):
    case: CaseResponse
    transfer: TransferHistoryResponse
    emails_sent: EmailsSent

class BulkResultData(BaseModel):
    updated_count: int

class CaseStats(BaseModel):
    total: int
    unassigned: int
    by_status: Dict[str, int]
    by_priority: Dict[str, int]
