from pydantic import BaseModel, Field
from typing import Optional, List, Any
from datetime import datetime
from app.models import UserRole
from app.auth.schemas import UserBasic
from app.core.responses import Pagination

# ===== INVITE CODES =====

class InviteCodeCreate(BaseModel):
    role: UserRole
    expires_in_days: int = Field(7, ge=1, le=365)
    max_uses: int = Field(1, ge=1, le=100)
    purpose: str = Field("ADMIN_CREATED", min_length=1, max_length=100)

class InviteCodeValidate(BaseModel):
    code: Optional[str] = None

class InviteCodeResponse(BaseModel):
    id: str
    code: str
    role: UserRole
    max_uses: int
    used_count: int
    expires_at: datetime
    is_active: bool
    purpose: Optional[str] = None
    last_used_at: Optional[datetime] = None
    last_used_by_id: Optional[str] = None
    created_at: datetime
    created_by: Optional[UserBasic] = None

    class Config:
        from_attributes = True

class InviteCodeData(BaseModel):
    invite_code: InviteCodeResponse

class InviteCodeListData(BaseModel):
    invite_codes: List[InviteCodeResponse]
    pagination: Pagination

class InviteValidationData(BaseModel):
    valid: bool
    role: UserRole

# ===== ACTIVITY LOGS =====

class ActivityLogResponse(BaseModel):
    id: str
    user_id: Optional[str] = None
    action: str
    description: str
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    details: Optional[Any] = None
    timestamp: datetime
    user: Optional[UserBasic] = None

    class Config:
        from_attributes = True

class ActivityLogListData(BaseModel):
    logs: List[ActivityLogResponse]
    pagination: Pagination
