from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from app.models import MessageType
from app.auth.schemas import UserBasic
from app.core.responses import Pagination

class MessageCreate(BaseModel):
    recipient_id: Optional[str] = None
    content: str = ""
    case_id: Optional[str] = None
    subject: Optional[str] = Field(None, max_length=255)
    message_type: MessageType = MessageType.CHAT
    attachments: Optional[List[dict]] = None

class IncomingEmail(BaseModel):
    thread_id: str
    sender_id: str
    content: str = Field(..., min_length=1)
    subject: Optional[str] = None

class PresenceUpdate(BaseModel):
    online: bool
    platform: str = "web"

class TypingUpdate(BaseModel):
    recipient_id: str
    is_typing: bool

class MessageResponse(BaseModel):
    id: str
    sender_id: str
    recipient_id: str
    case_id: Optional[str] = None
    subject: Optional[str] = None
    content: str
    message_type: MessageType
    email_thread_id: Optional[str] = None
    is_read: bool
    read_at: Optional[datetime] = None
    sent_at: datetime
    attachments: Optional[List[dict]] = None
    sender: Optional[UserBasic] = None
    recipient: Optional[UserBasic] = None

    class Config:
        from_attributes = True

class MessageData(BaseModel):
    message: MessageResponse

class MessageListData(BaseModel):
    messages: List[MessageResponse]
    pagination: Pagination
