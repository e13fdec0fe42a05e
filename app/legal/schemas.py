from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from app.models import LegalDocumentType

SUPPORTED_LANGUAGES = ("en", "fr")

class LegalDocumentCreate(BaseModel):
    title: Optional[str] = None
    slug: Optional[str] = None
    content: Optional[str] = None
    language: Optional[str] = None
    version: Optional[str] = Field(None, max_length=20)
    is_active: bool = True
    published_at: Optional[datetime] = None

class LegalDocumentUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    slug: Optional[str] = Field(None, min_length=1, max_length=255)
    content: Optional[str] = Field(None, min_length=1)
    language: Optional[str] = None
    version: Optional[str] = Field(None, max_length=20)
    is_active: Optional[bool] = None
    published_at: Optional[datetime] = None

class LegalDocumentResponse(BaseModel):
    id: str
    type: LegalDocumentType
    language: str
    title: str
    slug: str
    version: Optional[str] = None
    content: str
    is_active: bool
    published_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

class LegalDocumentData(BaseModel):
    document: LegalDocumentResponse

class LegalDocumentListData(BaseModel):
    documents: List[LegalDocumentResponse] = Field(default_factory=list)
    document: Optional[LegalDocumentResponse] = None
