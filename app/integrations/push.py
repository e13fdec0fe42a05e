"""Expo push notifications for the mobile app."""
import logging
from typing import Optional

import requests
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

logger = logging.getLogger(__name__)

EXPO_PUSH_URL = "https://exp.host/--/api/v2/push/send"


def is_expo_push_token(token: Optional[str]) -> bool:
    return bool(token) and token.startswith(("ExponentPushToken[", "ExpoPushToken["))


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.5, max=4),
    retry=retry_if_exception_type(requests.ConnectionError),
    reraise=True,
)
def send_push_notification(token: str, title: str, body: str, data: Optional[dict] = None) -> dict:
    if not is_expo_push_token(token):
        raise ValueError("Invalid Expo push token")
    response = requests.post(
        EXPO_PUSH_URL,
        json=[{
            "to": token,
            "title": title,
            "body": body,
            "data": data or {},
            "sound": "default",
            "channelId": "default",
        }],
        headers={"Accept": "application/json", "Content-Type": "application/json"},
        timeout=15,
    )
    response.raise_for_status()
    logger.debug(f"Expo push accepted: {title}")
    return response.json()
