from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime
from app.models import CaseStatus, Priority, ServiceType, UserRole
from app.auth.schemas import UserResponse
from app.core.responses import Pagination
from app.documents.schemas import DocumentResponse
from app.messaging.schemas import MessageResponse
from app.notifications.schemas import NotificationResponse

class UserProfileUpdate(BaseModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = None

class UserAdminUpdate(BaseModel):
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None

class PasswordChange(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=8, max_length=72)

class PushTokenUpdate(BaseModel):
    push_token: str = Field(..., min_length=1)

class UserListData(BaseModel):
    users: List[UserResponse]
    pagination: Pagination

class AvatarData(BaseModel):
    avatar_url: Optional[str] = None

class AccountDeletionRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=1000)

class AccountDeletionData(BaseModel):
    scheduled_for: datetime

class ExportedCase(BaseModel):
    id: str
    reference_number: str
    service_type: ServiceType
    status: CaseStatus
    priority: Priority
    submission_date: datetime
    last_updated: Optional[datetime] = None
    estimated_completion: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class DataExportData(BaseModel):
    user: UserResponse
    cases: List[ExportedCase]
    documents: List[DocumentResponse]
    messages: List[MessageResponse]
    notifications: List[NotificationResponse]
    exported_at: datetime
    format: str = "json"
