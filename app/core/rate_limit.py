import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Dict, Tuple

from fastapi import Request, Response, status

from app import config
from app.auth.utils import decode_token_subject
from app.core.errors import ApiError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitPreset:
    name: str
    max_requests: int
    window_seconds: int


class RateLimitPresets:
    STRICT = RateLimitPreset("STRICT", max_requests=5, window_seconds=15 * 60)
    AUTH = RateLimitPreset("AUTH", max_requests=10, window_seconds=15 * 60)
    STANDARD = RateLimitPreset("STANDARD", max_requests=60, window_seconds=60)
    GENEROUS = RateLimitPreset("GENEROUS", max_requests=120, window_seconds=60)
    UPLOAD = RateLimitPreset("UPLOAD", max_requests=10, window_seconds=60)
    DATA_EXPORT = RateLimitPreset("DATA_EXPORT", max_requests=5, window_seconds=24 * 60 * 60)


class RateLimiter:
    """Fixed-window counters held in process memory, keyed per route and caller."""

    def __init__(self):
        self._store: Dict[str, Tuple[int, float]] = {}
        self._lock = threading.Lock()

    def hit(self, key: str, preset: RateLimitPreset) -> Tuple[bool, int, float]:
        """Count one request; returns ``(allowed, remaining, reset_at)``."""
        now = time.time()
        with self._lock:
            self._prune(now)
            count, reset_at = self._store.get(key, (0, now + preset.window_seconds))
            if count >= preset.max_requests:
                return False, 0, reset_at
            count += 1
            self._store[key] = (count, reset_at)
            return True, preset.max_requests - count, reset_at

    def reset(self) -> None:
        with self._lock:
            self._store.clear()

    def _prune(self, now: float) -> None:
        expired = [key for key, (_, reset_at) in self._store.items() if reset_at <= now]
        for key in expired:
            del self._store[key]


limiter = RateLimiter()


def client_identifier(request: Request) -> str:
    auth_header = request.headers.get("authorization", "")
    if auth_header.lower().startswith("bearer "):
        subject = decode_token_subject(auth_header[7:])
        if subject:
            return f"user:{subject}"
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return f"ip:{forwarded.split(',')[0].strip()}"
    return f"ip:{request.client.host if request.client else 'unknown'}"


def rate_limit(preset: RateLimitPreset):
    def limiter_dependency(request: Request, response: Response):
        if not config.RATE_LIMIT_ENABLED:
            return
        # stacked presets on one route keep separate counters
        key = f"{request.url.path}:{client_identifier(request)}:{preset.name}"
        allowed, remaining, reset_at = limiter.hit(key, preset)
        headers = {
            "X-RateLimit-Limit": str(preset.max_requests),
            "X-RateLimit-Remaining": str(remaining),
            "X-RateLimit-Reset": str(int(reset_at)),
        }
        if not allowed:
            logger.warning(f"Rate limit exceeded for {key}")
            headers["Retry-After"] = str(max(1, math.ceil(reset_at - time.time())))
            raise ApiError(
                "Too many requests. Please try again later.",
                status.HTTP_429_TOO_MANY_REQUESTS,
                code="RATE_LIMIT_EXCEEDED",
                headers=headers,
            )
        response.headers.update(headers)
    return limiter_dependency
