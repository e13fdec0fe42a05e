from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session, joinedload
from sqlalchemy import asc, desc, or_
from datetime import datetime
from typing import Optional
import csv
import io
import json
import logging

from app.database import get_db
from app.models import ActivityLog, InviteCode, User, UserRole
from app.admin.schemas import (
    ActivityLogListData, InviteCodeCreate, InviteCodeData, InviteCodeListData,
    InviteCodeValidate, InviteValidationData
)
from app.auth.dependencies import require_admin
from app.core.rate_limit import rate_limit, RateLimitPresets
from app.core.responses import ApiResponse, paginate, resolve_pagination, success_response
from app.services.activity_service import record_activity
from app.services.invite_service import create_invite_code, validate_invite_code

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin Tools"])

INVITE_SORT_COLUMNS = {
    "created_at": InviteCode.created_at,
    "role": InviteCode.role,
    "used_count": InviteCode.used_count,
    "expires_at": InviteCode.expires_at,
    "last_used_at": InviteCode.last_used_at,
}
EXPORT_ROW_LIMIT = 10000

# =====================================================
# INVITE CODES
# =====================================================

@router.post(
    "/invite-codes",
    response_model=ApiResponse[InviteCodeData],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit(RateLimitPresets.STANDARD))],
)
async def create_invite(
    payload: InviteCodeCreate,
    request: Request,
    current_user: User = Depends(require_admin()),
    db: Session = Depends(get_db)
):
    if payload.role not in (UserRole.AGENT, UserRole.ADMIN):
        raise HTTPException(status_code=400, detail="Invite codes can only be created for AGENT or ADMIN roles")

    invite = create_invite_code(
        db,
        payload.role,
        current_user.id,
        expires_in_days=payload.expires_in_days,
        max_uses=payload.max_uses,
        purpose=payload.purpose,
    )
    record_activity(
        db, current_user.id, "INVITE_CODE_CREATED",
        f"Created {payload.role.value} invite code",
        request=request,
        details={"role": payload.role.value, "max_uses": payload.max_uses, "purpose": payload.purpose},
    )
    db.commit()
    db.refresh(invite)

    logger.info(f"Invite code {invite.id} for {payload.role.value} created by {current_user.id}")
    return success_response({"invite_code": invite}, "Invite code created successfully")

@router.get(
    "/invite-codes",
    response_model=ApiResponse[InviteCodeListData],
    dependencies=[Depends(rate_limit(RateLimitPresets.STANDARD))],
)
async def list_invite_codes(
    page: int = Query(1),
    limit: Optional[int] = Query(None),
    role: Optional[UserRole] = None,
    status: Optional[str] = Query(None, pattern="^(active|expired|exhausted)$"),
    search: Optional[str] = None,
    sort_by: str = Query("created_at", pattern="^(created_at|role|used_count|expires_at|last_used_at)$"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    current_user: User = Depends(require_admin()),
    db: Session = Depends(get_db)
):
    page, limit, offset = resolve_pagination(page, limit, default_limit=20)
    now = datetime.utcnow()
    query = db.query(InviteCode)
    if role:
        query = query.filter(InviteCode.role == role)
    if status == "active":
        query = query.filter(
            InviteCode.is_active.is_(True),
            InviteCode.expires_at > now,
            InviteCode.used_count < InviteCode.max_uses,
        )
    elif status == "expired":
        query = query.filter(InviteCode.expires_at <= now)
    elif status == "exhausted":
        query = query.filter(InviteCode.used_count >= InviteCode.max_uses)
    if search:
        term = f"%{search.strip()}%"
        query = query.filter(or_(InviteCode.code.ilike(term), InviteCode.purpose.ilike(term)))

    total = query.count()
    order = asc if sort_order == "asc" else desc
    invites = query.options(joinedload(InviteCode.created_by)).order_by(
        order(INVITE_SORT_COLUMNS[sort_by])
    ).offset(offset).limit(limit).all()

    return success_response(
        {"invite_codes": invites, "pagination": paginate(page, limit, total)},
        "Invite codes retrieved successfully",
    )

@router.delete(
    "/invite-codes/{invite_id}",
    response_model=ApiResponse[InviteCodeData],
    dependencies=[Depends(rate_limit(RateLimitPresets.STANDARD))],
)
async def deactivate_invite_code(
    invite_id: str,
    request: Request,
    current_user: User = Depends(require_admin()),
    db: Session = Depends(get_db)
):
    invite = db.query(InviteCode).filter(InviteCode.id == invite_id).first()
    if not invite:
        raise HTTPException(status_code=404, detail="Invite code not found")

    invite.is_active = False
    record_activity(
        db, current_user.id, "INVITE_CODE_DEACTIVATED",
        f"Deactivated invite code {invite.code}",
        request=request,
    )
    db.commit()
    db.refresh(invite)

    logger.info(f"Invite code {invite_id} deactivated by {current_user.id}")
    return success_response({"invite_code": invite}, "Invite code deactivated successfully")

@router.post(
    "/invite-codes/validate",
    response_model=ApiResponse[InviteValidationData],
    dependencies=[Depends(rate_limit(RateLimitPresets.AUTH))],
)
async def validate_invite(payload: InviteCodeValidate, db: Session = Depends(get_db)):
    """Advisory check used by the registration form; registration re-validates."""
    invite = validate_invite_code(db, payload.code)
    return success_response({"valid": True, "role": invite.role}, "Invite code is valid")

# =====================================================
# ACTIVITY LOGS
# =====================================================

def filter_activity_logs(
    db: Session,
    user_id: Optional[str],
    action: Optional[str],
    start_date: Optional[datetime],
    end_date: Optional[datetime],
):
    query = db.query(ActivityLog)
    if user_id:
        query = query.filter(ActivityLog.user_id == user_id)
    if action:
        query = query.filter(ActivityLog.action == action)
    if start_date:
        query = query.filter(ActivityLog.timestamp >= start_date)
    if end_date:
        query = query.filter(ActivityLog.timestamp <= end_date)
    return query

@router.get(
    "/activity-logs",
    response_model=ApiResponse[ActivityLogListData],
    dependencies=[Depends(rate_limit(RateLimitPresets.STANDARD))],
)
async def list_activity_logs(
    page: int = Query(1),
    limit: Optional[int] = Query(None),
    user_id: Optional[str] = None,
    action: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    current_user: User = Depends(require_admin()),
    db: Session = Depends(get_db)
):
    page, limit, offset = resolve_pagination(page, limit, default_limit=50)
    query = filter_activity_logs(db, user_id, action, start_date, end_date)
    total = query.count()
    logs = query.options(joinedload(ActivityLog.user)).order_by(
        desc(ActivityLog.timestamp)
    ).offset(offset).limit(limit).all()
    return success_response(
        {"logs": logs, "pagination": paginate(page, limit, total)},
        "Activity logs retrieved successfully",
    )

@router.get("/activity-logs/export", dependencies=[Depends(rate_limit(RateLimitPresets.STRICT))])
async def export_activity_logs(
    user_id: Optional[str] = None,
    action: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    current_user: User = Depends(require_admin()),
    db: Session = Depends(get_db)
):
    """Download the filtered activity log as CSV."""
    logs = filter_activity_logs(db, user_id, action, start_date, end_date).options(
        joinedload(ActivityLog.user)
    ).order_by(desc(ActivityLog.timestamp)).limit(EXPORT_ROW_LIMIT).all()

    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(["timestamp", "user_id", "user_email", "action", "description", "ip_address", "user_agent", "metadata"])
    for log in logs:
        writer.writerow([
            log.timestamp.isoformat() if log.timestamp else "",
            log.user_id or "",
            log.user.email if log.user else "",
            log.action,
            log.description,
            log.ip_address or "",
            log.user_agent or "",
            json.dumps(log.details) if log.details else "",
        ])
    buffer.seek(0)

    logger.info(f"{len(logs)} activity logs exported by {current_user.id}")
    filename = f"activity-logs-{datetime.utcnow().strftime('%Y%m%d%H%M%S')}.csv"
    return StreamingResponse(
        iter([buffer.getvalue()]),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
