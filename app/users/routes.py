import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, HTTPException, Query, Request, UploadFile, status
from sqlalchemy import or_, update, desc
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from app import config
from app.auth.dependencies import get_current_user, require_admin, require_agent_or_admin
from app.auth.schemas import UserData
from app.auth.utils import get_password_hash, verify_password
from app.core.errors import ApiError
from app.core.rate_limit import rate_limit, RateLimitPresets
from app.core.responses import ApiResponse, paginate, resolve_pagination, success_response
from app.database import get_db
from app.integrations import uploadthing
from app.models import Case, Document, Message, Notification, User, UserRole
from app.services.activity_service import record_activity
from app.services.notification_service import run_best_effort
from app.users.schemas import (
    AccountDeletionData, AccountDeletionRequest, AvatarData, DataExportData, PasswordChange, PushTokenUpdate,
    UserAdminUpdate, UserListData, UserProfileUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["Users"])

MAX_AVATAR_SIZE = 4 * 1024 * 1024  # 4MB

# =====================================================
# CURRENT USER
# =====================================================

@router.put("/me", response_model=ApiResponse[UserData])
def update_profile(
    profile: UserProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    for field, value in profile.dict(exclude_unset=True).items():
        setattr(current_user, field, value)
    db.commit()
    db.refresh(current_user)
    return success_response({"user": current_user}, "Profile updated successfully")


@router.put("/me/password", response_model=ApiResponse[dict])
def change_password(
    payload: PasswordChange,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    if not verify_password(payload.current_password, current_user.password_hash):
        raise HTTPException(status_code=400, detail="Current password is incorrect")
    current_user.password_hash = get_password_hash(payload.new_password)
    record_activity(db, current_user.id, "PASSWORD_CHANGED", "User changed their password", request)
    db.commit()
    return success_response({}, "Password updated successfully")


@router.post("/me/push-token", response_model=ApiResponse[dict])
def register_push_token(
    payload: PushTokenUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    current_user.push_token = payload.push_token
    db.commit()
    return success_response({}, "Push token registered successfully")

# =====================================================
# DATA EXPORT AND ACCOUNT DELETION
# =====================================================

MESSAGE_EXPORT_LIMIT = 1000
NOTIFICATION_EXPORT_LIMIT = 500


@router.get(
    "/data-export",
    response_model=ApiResponse[DataExportData],
    dependencies=[Depends(rate_limit(RateLimitPresets.DATA_EXPORT))],
)
def export_my_data(
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Everything stored about the caller, as one JSON document."""
    cases = db.query(Case).filter(Case.client_id == current_user.id).order_by(desc(Case.submission_date)).all()
    documents = (
        db.query(Document)
        .filter(Document.uploaded_by_id == current_user.id)
        .order_by(desc(Document.upload_date))
        .all()
    )
    messages = (
        db.query(Message)
        .filter(or_(Message.sender_id == current_user.id, Message.recipient_id == current_user.id))
        .order_by(desc(Message.sent_at))
        .limit(MESSAGE_EXPORT_LIMIT)
        .all()
    )
    notifications = (
        db.query(Notification)
        .filter(Notification.user_id == current_user.id)
        .order_by(desc(Notification.created_at))
        .limit(NOTIFICATION_EXPORT_LIMIT)
        .all()
    )

    exported_at = datetime.utcnow()
    current_user.data_export_requests = (current_user.data_export_requests or 0) + 1
    current_user.last_data_export = exported_at
    record_activity(db, current_user.id, "DATA_EXPORTED", "User exported their personal data", request)
    db.commit()
    db.refresh(current_user)

    logger.info(f"Data export generated for user {current_user.id}")
    return success_response(
        {
            "user": current_user,
            "cases": cases,
            "documents": documents,
            "messages": messages,
            "notifications": notifications,
            "exported_at": exported_at,
            "format": "json",
        },
        "Data export generated successfully",
    )


@router.delete("/account", response_model=ApiResponse[AccountDeletionData])
def delete_my_account(
    request: Request,
    payload: Optional[AccountDeletionRequest] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Deactivate and anonymize the caller's account; the permanent purge happens after the grace period."""
    scheduled_for = datetime.utcnow() + timedelta(days=config.ACCOUNT_DELETION_GRACE_DAYS)
    original_email = current_user.email

    current_user.is_active = False
    current_user.email = f"deleted_{current_user.id}@deleted.local"
    current_user.push_token = None
    current_user.deletion_scheduled_for = scheduled_for
    current_user.deletion_reason = payload.reason if payload else None
    record_activity(
        db, current_user.id, "ACCOUNT_DELETION_REQUESTED", f"{original_email} requested account deletion", request,
        {"scheduledFor": scheduled_for.isoformat()},
    )
    db.commit()

    logger.info(f"Account deletion scheduled for user {current_user.id} on {scheduled_for.date()}")
    return success_response(
        {"scheduled_for": scheduled_for},
        f"Account deletion scheduled. Your data will be permanently removed after {config.ACCOUNT_DELETION_GRACE_DAYS} days",
    )

# =====================================================
# AVATAR
# =====================================================

@router.post(
    "/avatar",
    response_model=ApiResponse[AvatarData],
    dependencies=[Depends(rate_limit(RateLimitPresets.UPLOAD))],
)
async def upload_avatar(
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Replace the caller's avatar.

    The new file is stored first, then the row is switched over with a
    conditional update against the avatar URL read at the start of the
    request. If another request changed the avatar in between, nothing is
    overwritten: the freshly uploaded file is removed and the client gets 409.
    """
    if not (file.content_type or "").startswith("image/"):
        raise HTTPException(status_code=400, detail="Invalid file type. Only images are allowed")

    content = await file.read()
    if not content:
        raise HTTPException(status_code=400, detail="No file provided")
    if len(content) > MAX_AVATAR_SIZE:
        raise HTTPException(status_code=400, detail="File size exceeds the maximum limit of 4MB")

    previous_url = current_user.avatar_url
    user_id = current_user.id

    try:
        uploaded = await run_in_threadpool(
            uploadthing.upload_file, content, file.filename or "avatar", file.content_type
        )
    except uploadthing.UploadError as e:
        logger.error(f"Avatar upload failed for user {user_id}: {e}")
        raise HTTPException(status_code=502, detail="Failed to upload avatar")

    unchanged = User.avatar_url.is_(None) if previous_url is None else User.avatar_url == previous_url
    result = db.execute(
        update(User)
        .where(User.id == user_id, unchanged)
        .values(avatar_url=uploaded.url)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        db.rollback()
        logger.warning(f"Concurrent avatar update detected for user {user_id}; discarding {uploaded.key}")
        await run_in_threadpool(run_best_effort, "Delete orphaned avatar", uploadthing.delete_files, [uploaded.key])
        raise ApiError(
            "Avatar was updated by another request. Please try again.",
            status.HTTP_409_CONFLICT,
            code="AVATAR_CONFLICT",
        )
    db.commit()

    old_key = uploadthing.file_key_from_url(previous_url)
    if old_key and old_key != uploaded.key:
        background_tasks.add_task(run_best_effort, "Delete previous avatar", uploadthing.delete_files, [old_key])

    logger.info(f"Avatar updated for user {user_id}")
    return success_response({"avatar_url": uploaded.url}, "Avatar updated successfully")


@router.delete("/avatar", response_model=ApiResponse[AvatarData])
def delete_avatar(
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    old_key = uploadthing.file_key_from_url(current_user.avatar_url)
    current_user.avatar_url = None
    db.commit()
    if old_key:
        background_tasks.add_task(run_best_effort, "Delete avatar", uploadthing.delete_files, [old_key])
    return success_response({"avatar_url": None}, "Avatar removed successfully")

# =====================================================
# USER ADMINISTRATION
# =====================================================

@router.get("", response_model=ApiResponse[UserListData])
def list_users(
    page: int = Query(1),
    limit: Optional[int] = Query(None),
    role: Optional[UserRole] = None,
    search: Optional[str] = None,
    current_user: User = Depends(require_agent_or_admin()),
    db: Session = Depends(get_db)
):
    page, limit, offset = resolve_pagination(page, limit)
    query = db.query(User)
    if role:
        query = query.filter(User.role == role)
    if search:
        query = query.filter(or_(
            User.email.ilike(f"%{search}%"),
            User.first_name.ilike(f"%{search}%"),
            User.last_name.ilike(f"%{search}%"),
        ))
    total = query.count()
    users = query.order_by(desc(User.created_at)).offset(offset).limit(limit).all()
    return success_response(
        {"users": users, "pagination": paginate(page, limit, total)},
        "Users retrieved successfully",
    )


@router.get("/{user_id}", response_model=ApiResponse[UserData])
def get_user(
    user_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    if current_user.role == UserRole.CLIENT and current_user.id != user_id:
        raise HTTPException(status_code=403, detail="You do not have permission to perform this action")
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return success_response({"user": user}, "User retrieved successfully")


@router.patch("/{user_id}", response_model=ApiResponse[UserData])
def update_user(
    user_id: str,
    payload: UserAdminUpdate,
    request: Request,
    current_user: User = Depends(require_admin()),
    db: Session = Depends(get_db)
):
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    if user.id == current_user.id and payload.is_active is False:
        raise HTTPException(status_code=400, detail="You cannot deactivate your own account")

    changes = payload.dict(exclude_unset=True, exclude_none=True)
    for field, value in changes.items():
        setattr(user, field, value)
    record_activity(
        db, current_user.id, "USER_UPDATED", f"Updated user {user.email}", request,
        {"userId": user.id, "changes": {k: str(getattr(v, "value", v)) for k, v in changes.items()}},
    )
    db.commit()
    db.refresh(user)
    return success_response({"user": user}, "User updated successfully")
