from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from app.models import PaymentStatus
from app.core.responses import Pagination

class PaymentIntentCreate(BaseModel):
    amount: float = Field(..., gt=0)
    description: str = Field(..., min_length=1, max_length=500)
    currency: str = Field("usd", min_length=3, max_length=10)
    case_number: Optional[str] = None

class RefundCreate(BaseModel):
    payment_id: str
    amount: Optional[float] = Field(None, gt=0)
    reason: Optional[str] = Field(None, pattern="^(duplicate|fraudulent|requested_by_customer)$")

class PaymentResponse(BaseModel):
    id: str
    user_id: str
    stripe_intent_id: str
    amount: int
    currency: str
    description: str
    status: PaymentStatus
    case_number: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

class PaymentIntentData(BaseModel):
    payment: PaymentResponse
    client_secret: Optional[str] = None

class PaymentData(BaseModel):
    payment: PaymentResponse

class PaymentHistoryItem(BaseModel):
    id: str
    amount: float
    currency: str
    description: str
    status: str
    case_number: Optional[str] = None
    created_at: datetime

class PaymentHistoryData(BaseModel):
    payments: List[PaymentHistoryItem]
    pagination: Pagination

class RefundResponse(BaseModel):
    id: str
    payment_id: str
    stripe_refund_id: str
    amount: int
    reason: Optional[str] = None
    status: str
    created_at: datetime

    class Config:
        from_attributes = True

class RefundData(BaseModel):
    refund: RefundResponse
    payment: PaymentResponse

class WebhookAck(BaseModel):
    received: bool
