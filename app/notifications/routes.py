from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from sqlalchemy import asc, desc, or_
from typing import Optional
from datetime import datetime
import logging

from app.database import get_db
from app.models import Notification, NotificationType, User
from app.notifications.schemas import (
    MarkAllReadData, NotificationCreate, NotificationData, NotificationListData
)
from app.auth.dependencies import get_current_user, require_agent_or_admin
from app.core.rate_limit import rate_limit, RateLimitPresets
from app.core.responses import ApiResponse, paginate, resolve_pagination, success_response
from app.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["Notifications"], dependencies=[Depends(rate_limit(RateLimitPresets.GENEROUS))])

SORT_COLUMNS = {
    "created_at": Notification.created_at,
    "type": Notification.type,
    "read_at": Notification.read_at,
}


def get_own_notification(db: Session, notification_id: str, current_user: User) -> Notification:
    notification = db.query(Notification).filter(Notification.id == notification_id).first()
    if not notification:
        raise HTTPException(status_code=404, detail="Notification not found")
    if notification.user_id != current_user.id:
        raise HTTPException(status_code=403, detail="You do not have permission to perform this action")
    return notification

@router.get("", response_model=ApiResponse[NotificationListData])
async def list_notifications(
    page: int = Query(1),
    limit: Optional[int] = Query(None),
    type: Optional[NotificationType] = None,
    status: Optional[str] = Query(None, pattern="^(read|unread)$"),
    search: Optional[str] = None,
    sort_by: str = Query("created_at", pattern="^(created_at|type|read_at)$"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """List the caller's notifications along with their unread count."""
    page, limit, offset = resolve_pagination(page, limit, default_limit=20)
    query = db.query(Notification).filter(Notification.user_id == current_user.id)
    if type:
        query = query.filter(Notification.type == type)
    if status == "read":
        query = query.filter(Notification.is_read.is_(True))
    elif status == "unread":
        query = query.filter(Notification.is_read.is_(False))
    if search:
        term = f"%{search.strip()}%"
        query = query.filter(or_(Notification.title.ilike(term), Notification.message.ilike(term)))

    total = query.count()
    order = asc if sort_order == "asc" else desc
    notifications = query.order_by(order(SORT_COLUMNS[sort_by])).offset(offset).limit(limit).all()

    unread_count = db.query(Notification).filter(
        Notification.user_id == current_user.id,
        Notification.is_read.is_(False)
    ).count()

    return success_response(
        {
            "notifications": notifications,
            "unread_count": unread_count,
            "pagination": paginate(page, limit, total),
        },
        "Notifications retrieved successfully",
    )

@router.post("", response_model=ApiResponse[NotificationData], status_code=status.HTTP_201_CREATED)
async def create_notification(
    payload: NotificationCreate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(require_agent_or_admin()),
    db: Session = Depends(get_db)
):
    if not payload.user_id or not payload.title.strip() or not payload.message.strip():
        raise HTTPException(status_code=400, detail="user_id, title and message are required")

    user = db.query(User).filter(User.id == payload.user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    notification = NotificationService(db, background_tasks).notify(
        user,
        payload.type,
        payload.title.strip(),
        payload.message.strip(),
        case_id=payload.case_id,
        action_url=payload.action_url,
        send_push=payload.send_push,
    )
    if notification is None:
        raise HTTPException(status_code=500, detail="Failed to create notification")

    logger.info(f"Notification {notification.id} created for {user.id} by {current_user.id}")
    return success_response({"notification": notification}, "Notification created successfully")

# Declared before /{notification_id} so the literal path wins
@router.put("/mark-all-read", response_model=ApiResponse[MarkAllReadData])
async def mark_all_read(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    count = db.query(Notification).filter(
        Notification.user_id == current_user.id,
        Notification.is_read.is_(False)
    ).update(
        {Notification.is_read: True, Notification.read_at: datetime.utcnow()},
        synchronize_session=False,
    )
    db.commit()
    return success_response({"count": count}, f"{count} notifications marked as read")

@router.patch("/{notification_id}", response_model=ApiResponse[NotificationData])
async def mark_notification_read(
    notification_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    notification = get_own_notification(db, notification_id, current_user)
    if not notification.is_read:
        notification.is_read = True
        notification.read_at = datetime.utcnow()
        db.commit()
        db.refresh(notification)
    return success_response({"notification": notification}, "Notification marked as read")

@router.delete("/{notification_id}", response_model=ApiResponse[dict])
async def delete_notification(
    notification_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    notification = get_own_notification(db, notification_id, current_user)
    db.delete(notification)
    db.commit()
    return success_response({}, "Notification deleted successfully")
