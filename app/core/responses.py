from datetime import datetime
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, Field

from app.core.errors import ApiError

T = TypeVar("T")

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_LIMIT = 100


class ResponseMeta(BaseModel):
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class ApiResponse(BaseModel, Generic[T]):
    success: bool = True
    message: Optional[str] = None
    data: Optional[T] = None
    meta: ResponseMeta = Field(default_factory=ResponseMeta)


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


def success_response(data: Any = None, message: Optional[str] = None) -> dict:
    """Build the success envelope; FastAPI validates ``data`` against the route's response_model."""
    return {
        "success": True,
        "message": message,
        "data": data,
        "meta": {"timestamp": datetime.utcnow()},
    }


def resolve_pagination(page: Optional[int], limit: Optional[int], default_limit: int = DEFAULT_LIMIT) -> tuple[int, int, int]:
    """Normalise page/limit query params and return ``(page, limit, offset)``."""
    page = max(page or DEFAULT_PAGE, 1)
    if limit is None:
        limit = default_limit
    if limit <= 0:
        raise ApiError("Limit must be a positive integer", 400)
    limit = min(limit, MAX_LIMIT)
    return page, limit, (page - 1) * limit


def paginate(page: int, limit: int, total: int) -> dict:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "total_pages": (total + limit - 1) // limit if limit else 0,
    }
