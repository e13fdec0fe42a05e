from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from app.models import NotificationType
from app.core.responses import Pagination

class NotificationCreate(BaseModel):
    user_id: Optional[str] = None
    title: str = ""
    message: str = ""
    type: NotificationType = NotificationType.SYSTEM_ANNOUNCEMENT
    case_id: Optional[str] = None
    action_url: Optional[str] = Field(None, max_length=500)
    send_push: bool = False

class NotificationResponse(BaseModel):
    id: str
    user_id: str
    case_id: Optional[str] = None
    type: NotificationType
    title: str
    message: str
    is_read: bool
    read_at: Optional[datetime] = None
    action_url: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True

class NotificationData(BaseModel):
    notification: NotificationResponse

class NotificationListData(BaseModel):
    notifications: List[NotificationResponse]
    unread_count: int
    pagination: Pagination

class MarkAllReadData(BaseModel):
    count: int
