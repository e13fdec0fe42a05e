import logging
import secrets
from datetime import datetime, timedelta
from typing import Optional

from fastapi import status
from sqlalchemy import update
from sqlalchemy.orm import Session

from app.core.errors import ApiError
from app.models import InviteCode, InviteUsage, UserRole

logger = logging.getLogger(__name__)


def generate_invite_code(role: UserRole) -> str:
    return f"{role.value.lower()}-{secrets.token_urlsafe(12)[:16]}"


def create_invite_code(
    db: Session,
    role: UserRole,
    created_by_id: Optional[str],
    expires_in_days: int = 7,
    max_uses: int = 1,
    purpose: str = "ADMIN_CREATED",
) -> InviteCode:
    """Add a new invite code to the session; the caller commits."""
    invite = InviteCode(
        code=generate_invite_code(role),
        role=role,
        created_by_id=created_by_id,
        max_uses=max_uses,
        expires_at=datetime.utcnow() + timedelta(days=expires_in_days),
        purpose=purpose,
    )
    db.add(invite)
    return invite


def check_invite_rules(invite: Optional[InviteCode]) -> InviteCode:
    """Advisory check only; consumption re-checks the same rules atomically."""
    if not invite:
        raise ApiError("Invalid or expired invite code", status.HTTP_403_FORBIDDEN, code="INVITE_INVALID")
    if not invite.is_active:
        raise ApiError("This invite code has been deactivated", status.HTTP_403_FORBIDDEN, code="INVITE_INACTIVE")
    if datetime.utcnow() > invite.expires_at:
        raise ApiError("This invite code has expired", status.HTTP_403_FORBIDDEN, code="INVITE_EXPIRED")
    if invite.used_count >= invite.max_uses:
        raise ApiError(
            "This invite code has reached its usage limit", status.HTTP_403_FORBIDDEN, code="INVITE_EXHAUSTED"
        )
    return invite


def validate_invite_code(db: Session, code: Optional[str]) -> InviteCode:
    invite = None
    if code:
        invite = db.query(InviteCode).filter(InviteCode.code == code.strip()).first()
    return check_invite_rules(invite)


def consume_invite_code(db: Session, invite: InviteCode, user_id: str) -> None:
    """Increment ``used_count`` only if the code is still usable, inside the caller's transaction."""
    now = datetime.utcnow()
    result = db.execute(
        update(InviteCode)
        .where(
            InviteCode.id == invite.id,
            InviteCode.is_active.is_(True),
            InviteCode.expires_at > now,
            InviteCode.used_count < InviteCode.max_uses,
        )
        .values(
            used_count=InviteCode.used_count + 1,
            last_used_at=now,
            last_used_by_id=user_id,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        logger.warning(f"Invite code {invite.code} could not be consumed by {user_id}")
        raise ApiError(
            "This invite code has reached its usage limit", status.HTTP_403_FORBIDDEN, code="INVITE_EXHAUSTED"
        )
    db.add(InviteUsage(invite_code_id=invite.id, user_id=user_id, used_at=now))
