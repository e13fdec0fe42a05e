import logging
import secrets
import time
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from sqlalchemy import desc, or_
from sqlalchemy.orm import Session, joinedload

from app.auth.dependencies import get_current_user
from app.core.rate_limit import rate_limit, RateLimitPresets
from app.core.responses import ApiResponse, paginate, resolve_pagination, success_response
from app.database import get_db
from app.integrations import email, firebase
from app.messaging.schemas import (
    IncomingEmail, MessageCreate, MessageData, MessageListData, PresenceUpdate, TypingUpdate
)
from app.models import Case, Message, MessageType, NotificationType, User, UserRole
from app.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/messages", tags=["Messages"], dependencies=[Depends(rate_limit(RateLimitPresets.GENEROUS))])
emails_router = APIRouter(prefix="/emails", tags=["Messages"])


def generate_thread_id(sender_id: str) -> str:
    return f"{int(time.time() * 1000)}-{sender_id[:8]}-{secrets.token_hex(4)}"


def load_message(db: Session, message_id: str) -> Optional[Message]:
    return db.query(Message).options(
        joinedload(Message.sender), joinedload(Message.recipient)
    ).filter(Message.id == message_id).first()


def fan_out_message(notifier: NotificationService, message: Message, sender: User, recipient: User) -> None:
    """Realtime mirror, in-app notification and, for email threads, an actual email."""
    if message.message_type == MessageType.CHAT:
        notifier.dispatch(
            "Chat mirror",
            firebase.mirror_chat_message,
            sender.id,
            recipient.id,
            {
                "id": message.id,
                "senderId": sender.id,
                "senderName": sender.full_name,
                "content": message.content,
                "caseId": message.case_id,
                "sentAt": message.sent_at.isoformat(),
                "isRead": False,
            },
        )
    else:
        notifier.email(
            "New message email", email.send_new_message_email,
            recipient.email, sender.full_name, message.content, recipient.full_name,
        )
    notifier.notify(
        recipient,
        NotificationType.NEW_MESSAGE,
        f"New message from {sender.full_name}",
        message.content[:200],
        case_id=message.case_id,
        action_url="/dashboard/messages",
        send_push=True,
    )

# =====================================================
# MESSAGES
# =====================================================

@router.post("", response_model=ApiResponse[MessageData], status_code=status.HTTP_201_CREATED)
async def send_message(
    payload: MessageCreate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    content = payload.content.strip()
    if not payload.recipient_id or not content:
        raise HTTPException(status_code=400, detail="Recipient and content are required")

    recipient = db.query(User).filter(User.id == payload.recipient_id).first()
    if not recipient:
        raise HTTPException(status_code=404, detail="Recipient not found")

    if payload.case_id:
        case = db.query(Case).filter(Case.id == payload.case_id).first()
        if not case:
            raise HTTPException(status_code=404, detail="Case not found")
        if current_user.role == UserRole.CLIENT and case.client_id != current_user.id:
            raise HTTPException(status_code=403, detail="You do not have permission to perform this action")

    message = Message(
        sender_id=current_user.id,
        recipient_id=recipient.id,
        case_id=payload.case_id,
        subject=payload.subject,
        content=content,
        message_type=payload.message_type,
        attachments=payload.attachments,
    )
    if payload.message_type == MessageType.EMAIL:
        message.email_thread_id = generate_thread_id(current_user.id)
    db.add(message)
    db.commit()
    db.refresh(message)

    fan_out_message(NotificationService(db, background_tasks), message, current_user, recipient)

    logger.info(f"Message {message.id} sent from {current_user.id} to {recipient.id}")
    return success_response({"message": load_message(db, message.id)}, "Message sent successfully")

@router.get("", response_model=ApiResponse[MessageListData])
async def list_messages(
    page: int = Query(1),
    limit: Optional[int] = Query(None),
    case_id: Optional[str] = None,
    message_type: Optional[MessageType] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    page, limit, offset = resolve_pagination(page, limit, default_limit=20)
    query = db.query(Message).filter(
        or_(Message.sender_id == current_user.id, Message.recipient_id == current_user.id)
    )
    if case_id:
        query = query.filter(Message.case_id == case_id)
    if message_type:
        query = query.filter(Message.message_type == message_type)

    total = query.count()
    messages = query.options(
        joinedload(Message.sender), joinedload(Message.recipient)
    ).order_by(desc(Message.sent_at)).offset(offset).limit(limit).all()
    return success_response(
        {"messages": messages, "pagination": paginate(page, limit, total)},
        "Messages retrieved successfully",
    )

@router.patch("/{message_id}/read", response_model=ApiResponse[MessageData])
async def mark_message_read(
    message_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    message = load_message(db, message_id)
    if not message:
        raise HTTPException(status_code=404, detail="Message not found")
    if message.recipient_id != current_user.id:
        raise HTTPException(status_code=403, detail="You do not have permission to perform this action")
    if not message.is_read:
        message.is_read = True
        message.read_at = datetime.utcnow()
        db.commit()
    return success_response({"message": load_message(db, message_id)}, "Message marked as read")

# ===== Realtime presence and typing =====

@router.post("/presence", response_model=ApiResponse[dict])
async def update_presence(
    payload: PresenceUpdate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    NotificationService(db, background_tasks).dispatch(
        "Presence update", firebase.set_presence, current_user.id, payload.online, payload.platform
    )
    return success_response({}, "Presence updated")

@router.post("/typing", response_model=ApiResponse[dict])
async def update_typing(
    payload: TypingUpdate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    room_id = firebase.get_chat_room_id(current_user.id, payload.recipient_id)
    NotificationService(db, background_tasks).dispatch(
        "Typing indicator", firebase.set_typing, room_id, current_user.id, payload.is_typing
    )
    return success_response({"room_id": room_id}, "Typing status updated")

# =====================================================
# INBOUND EMAIL REPLIES
# =====================================================

@emails_router.post(
    "/incoming",
    response_model=ApiResponse[MessageData],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit(RateLimitPresets.STANDARD))],
)
async def receive_incoming_email(
    payload: IncomingEmail,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db)
):
    """Record a reply to an email thread and notify the other participant."""
    content = payload.content.strip()
    if not content:
        raise HTTPException(status_code=400, detail="Content is required")

    original = db.query(Message).filter(
        Message.email_thread_id == payload.thread_id,
        Message.message_type == MessageType.EMAIL,
    ).order_by(Message.sent_at).first()
    if not original:
        raise HTTPException(status_code=404, detail="Email thread not found")

    participants = {original.sender_id, original.recipient_id}
    if payload.sender_id not in participants:
        logger.warning(f"Rejected reply to thread {payload.thread_id} from non-participant {payload.sender_id}")
        raise HTTPException(status_code=403, detail="Sender is not part of this thread")

    recipient_id = original.recipient_id if payload.sender_id == original.sender_id else original.sender_id
    sender = db.query(User).filter(User.id == payload.sender_id).first()
    recipient = db.query(User).filter(User.id == recipient_id).first()

    reply = Message(
        sender_id=sender.id,
        recipient_id=recipient.id,
        case_id=original.case_id,
        subject=payload.subject or f"Re: {original.subject or 'Message'}",
        content=content,
        message_type=MessageType.EMAIL,
        email_thread_id=payload.thread_id,
    )
    db.add(reply)
    db.commit()
    db.refresh(reply)

    NotificationService(db, background_tasks).notify(
        recipient,
        NotificationType.NEW_MESSAGE,
        f"New reply from {sender.full_name}",
        reply.content[:200],
        case_id=reply.case_id,
        action_url="/dashboard/messages",
        send_push=True,
    )

    logger.info(f"Incoming email reply {reply.id} recorded on thread {payload.thread_id}")
    return success_response({"message": load_message(db, reply.id)}, "Reply received successfully")
