from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from sqlalchemy import func
from pydantic import BaseModel
from typing import Dict, Optional
import logging

from app.database import get_db
from app.models import Message, Notification, User, UserRole
from app.auth.dependencies import get_current_user
from app.cases.schemas import CaseStats
from app.core.rate_limit import rate_limit, RateLimitPresets
from app.core.responses import ApiResponse, success_response
from app.services.case_service import CaseService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/dashboard", tags=["Dashboard"], dependencies=[Depends(rate_limit(RateLimitPresets.GENEROUS))])

class DashboardStats(BaseModel):
    cases: CaseStats
    unread_notifications: int
    unread_messages: int
    users_by_role: Optional[Dict[str, int]] = None

@router.get("/stats", response_model=ApiResponse[DashboardStats])
async def get_dashboard_stats(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Case counts scoped to the caller's role, plus unread counters."""
    stats = {
        "cases": CaseService(db).get_case_stats(current_user),
        "unread_notifications": db.query(Notification).filter(
            Notification.user_id == current_user.id,
            Notification.is_read.is_(False)
        ).count(),
        "unread_messages": db.query(Message).filter(
            Message.recipient_id == current_user.id,
            Message.is_read.is_(False)
        ).count(),
    }
    if current_user.role == UserRole.ADMIN:
        users_by_role = {role.value: 0 for role in UserRole}
        for role, count in db.query(User.role, func.count(User.id)).group_by(User.role).all():
            users_by_role[role.value] = count
        stats["users_by_role"] = users_by_role

    return success_response(stats, "Dashboard statistics retrieved successfully")
