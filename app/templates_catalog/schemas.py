from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from app.models import ServiceType

class TemplateCreate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    service_type: Optional[ServiceType] = None
    file_url: Optional[str] = None
    file_name: Optional[str] = None
    file_size: int = Field(0, ge=0)
    mime_type: Optional[str] = None
    category: Optional[str] = None
    is_required: bool = False
    version: str = "1.0"

class TemplateUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    service_type: Optional[ServiceType] = None
    file_url: Optional[str] = None
    file_name: Optional[str] = None
    file_size: Optional[int] = Field(None, ge=0)
    mime_type: Optional[str] = None
    category: Optional[str] = None
    is_required: Optional[bool] = None
    version: Optional[str] = None
    is_active: Optional[bool] = None

class TemplateResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    service_type: Optional[ServiceType] = None
    file_url: str
    file_name: str
    file_size: int
    mime_type: Optional[str] = None
    category: str
    is_required: bool
    download_count: int
    version: Optional[str] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

class TemplateData(BaseModel):
    template: TemplateResponse

class TemplateListData(BaseModel):
    templates: List[TemplateResponse]
    total: int
