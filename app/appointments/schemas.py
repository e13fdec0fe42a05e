from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from app.models import AppointmentStatus
from app.auth.schemas import UserBasic

class AppointmentCreate(BaseModel):
    scheduled_at: datetime
    location: str = Field(..., min_length=1, max_length=255)
    notes: Optional[str] = Field(None, max_length=2000)
    assigned_agent_id: Optional[str] = None

class AppointmentCase(BaseModel):
    id: str
    reference_number: str

    class Config:
        from_attributes = True

class AppointmentResponse(BaseModel):
    id: str
    case_id: str
    client_id: str
    created_by_id: str
    assigned_agent_id: Optional[str] = None
    scheduled_at: datetime
    location: str
    notes: Optional[str] = None
    status: AppointmentStatus
    created_at: datetime
    updated_at: Optional[datetime] = None
    case: Optional[AppointmentCase] = None
    assigned_agent: Optional[UserBasic] = None
    created_by: Optional[UserBasic] = None

    class Config:
        from_attributes = True

class AppointmentData(BaseModel):
    appointment: Optional[AppointmentResponse] = None

class AppointmentListData(BaseModel):
    appointments: List[AppointmentResponse]
