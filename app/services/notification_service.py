import logging
from typing import Callable, Optional

from fastapi import BackgroundTasks
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.integrations import firebase, push
from app.models import Notification, NotificationType, User

logger = logging.getLogger(__name__)


def run_best_effort(label: str, func: Callable, *args, **kwargs) -> None:
    """Run a side effect whose failure must never reach the caller."""
    try:
        func(*args, **kwargs)
    except Exception as e:
        logger.warning(f"{label} failed: {e}")


class NotificationService:
    """Persists in-app notifications and fans them out to realtime, email and push.

    Everything after the primary write is best-effort. When a ``BackgroundTasks``
    instance is supplied the fan-out runs after the response has been sent.
    """

    def __init__(self, db: Session, background_tasks: Optional[BackgroundTasks] = None):
        self.db = db
        self.background_tasks = background_tasks

    def dispatch(self, label: str, func: Callable, *args, **kwargs) -> None:
        if self.background_tasks is not None:
            self.background_tasks.add_task(run_best_effort, label, func, *args, **kwargs)
        else:
            run_best_effort(label, func, *args, **kwargs)

    def notify(
        self,
        user: User,
        type: NotificationType,
        title: str,
        message: str,
        case_id: Optional[str] = None,
        action_url: Optional[str] = None,
        send_push: bool = False,
    ) -> Optional[Notification]:
        """Store a notification for ``user`` and schedule its realtime/push delivery."""
        notification = Notification(
            user_id=user.id,
            case_id=case_id,
            type=type,
            title=title,
            message=message,
            action_url=action_url,
        )
        try:
            self.db.add(notification)
            self.db.commit()
            self.db.refresh(notification)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning(f"Failed to store notification for user {user.id}: {e}")
            return None

        self.dispatch(
            "Realtime notification",
            firebase.push_realtime_notification,
            user.id,
            notification.id,
            {"type": type.value, "title": title, "message": message, "actionUrl": action_url},
        )
        if send_push and user.push_token:
            self.dispatch(
                "Push notification",
                push.send_push_notification,
                user.push_token,
                title,
                message,
                {"type": type.value, "caseId": case_id, "notificationId": notification.id},
            )
        return notification

    def email(self, label: str, func: Callable, *args) -> None:
        self.dispatch(label, func, *args)
