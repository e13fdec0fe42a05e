from typing import Optional

from fastapi import Request
from sqlalchemy.orm import Session

from app.models import ActivityLog


def record_activity(
    db: Session,
    user_id: Optional[str],
    action: str,
    description: str,
    request: Optional[Request] = None,
    details: Optional[dict] = None,
) -> ActivityLog:
    """Add an activity log row to the current transaction; the caller commits."""
    ip_address = None
    user_agent = None
    if request is not None:
        forwarded = request.headers.get("x-forwarded-for")
        ip_address = forwarded.split(",")[0].strip() if forwarded else (request.client.host if request.client else None)
        user_agent = request.headers.get("user-agent")

    log = ActivityLog(
        user_id=user_id,
        action=action,
        description=description,
        ip_address=ip_address,
        user_agent=user_agent,
        details=details,
    )
    db.add(log)
    return log
