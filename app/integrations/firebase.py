"""
Firebase Realtime Database writes made by the server.

Everything here is fire-and-forget from the caller's point of view: callers run
these functions as background tasks and log any exception they raise.

Layout of the realtime tree:
    notifications/{user_id}/{notification_id}
    chats/{room_id}/metadata
    chats/{room_id}/messages/{message_id}
    userChats/{user_id}/{room_id}
    presence/{user_id}
    typing/{room_id}/{user_id}
"""
import logging
import threading
from datetime import datetime
from typing import Optional

import firebase_admin
from firebase_admin import credentials, db as realtime_db

from app import config

logger = logging.getLogger(__name__)

_firebase_app: Optional[firebase_admin.App] = None
_init_lock = threading.Lock()


def get_firebase_app() -> firebase_admin.App:
    global _firebase_app
    if _firebase_app is not None:
        return _firebase_app

    if not config.FIREBASE_DATABASE_URL:
        raise RuntimeError("Firebase Realtime Database is not configured")

    # background tasks share a threadpool, so only one of them may initialize the SDK
    with _init_lock:
        if _firebase_app is None:
            if config.FIREBASE_CREDENTIALS_PATH:
                cred = credentials.Certificate(config.FIREBASE_CREDENTIALS_PATH)
            else:
                # will use GOOGLE_APPLICATION_CREDENTIALS env var
                cred = credentials.ApplicationDefault()
            _firebase_app = firebase_admin.initialize_app(cred, {"databaseURL": config.FIREBASE_DATABASE_URL})
            logger.info("Firebase Admin SDK initialized")
    return _firebase_app


def reference(path: str):
    return realtime_db.reference(path, app=get_firebase_app())


def get_chat_room_id(user_a: str, user_b: str) -> str:
    """Room ids are order-independent so both participants resolve the same room."""
    first, second = sorted([user_a, user_b])
    return f"{first}-{second}"


def push_realtime_notification(user_id: str, notification_id: str, payload: dict) -> None:
    data = {
        "userId": user_id,
        "createdAt": datetime.utcnow().isoformat(),
        "isRead": False,
        **payload,
    }
    reference(f"notifications/{user_id}/{notification_id}").set(data)
    logger.info(f"Realtime notification {notification_id} written for user {user_id}")


def initialize_chat_room(client_id: str, agent_id: str, case_id: str, case_reference: str) -> str:
    room_id = get_chat_room_id(client_id, agent_id)
    now = datetime.utcnow().isoformat()
    reference(f"chats/{room_id}/metadata").update({
        "participants": {"clientId": client_id, "agentId": agent_id},
        "caseId": case_id,
        "caseReference": case_reference,
        "updatedAt": now,
    })
    for user_id in (client_id, agent_id):
        reference(f"userChats/{user_id}/{room_id}").set({"chatId": room_id, "caseId": case_id, "updatedAt": now})
    return room_id


def mirror_chat_message(sender_id: str, recipient_id: str, message: dict) -> str:
    room_id = get_chat_room_id(sender_id, recipient_id)
    reference(f"chats/{room_id}/messages/{message['id']}").set(message)
    reference(f"chats/{room_id}/metadata").update({
        "lastMessage": message.get("content", "")[:200],
        "lastMessageTime": message.get("sentAt"),
    })
    return room_id


def set_presence(user_id: str, online: bool, platform: str = "web") -> None:
    reference(f"presence/{user_id}").set({
        "status": "online" if online else "offline",
        "platform": platform,
        "lastChanged": datetime.utcnow().isoformat(),
    })


def set_typing(room_id: str, user_id: str, is_typing: bool) -> None:
    ref = reference(f"typing/{room_id}/{user_id}")
    if is_typing:
        ref.set({"isTyping": True, "timestamp": datetime.utcnow().isoformat()})
    else:
        ref.delete()
