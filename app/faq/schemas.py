from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime

class FAQCreate(BaseModel):
    question: str = Field(..., min_length=1, max_length=500)
    answer: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1, max_length=100)
    display_order: int = 0
    language: str = "en"
    is_active: bool = True

class FAQUpdate(BaseModel):
    question: Optional[str] = Field(None, min_length=1, max_length=500)
    answer: Optional[str] = Field(None, min_length=1)
    category: Optional[str] = Field(None, min_length=1, max_length=100)
    display_order: Optional[int] = None
    language: Optional[str] = None
    is_active: Optional[bool] = None

class FAQResponse(BaseModel):
    id: str
    question: str
    answer: str
    category: str
    display_order: int
    language: str
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

class FAQData(BaseModel):
    faq: FAQResponse

class FAQListData(BaseModel):
    faqs: List[FAQResponse]
    categories: List[str]
