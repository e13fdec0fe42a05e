import logging
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)

DEFAULT_MESSAGES = {
    status.HTTP_400_BAD_REQUEST: "Bad request",
    status.HTTP_401_UNAUTHORIZED: "Unauthorized access",
    status.HTTP_403_FORBIDDEN: "You do not have permission to perform this action",
    status.HTTP_404_NOT_FOUND: "Resource not found",
    status.HTTP_409_CONFLICT: "Conflict",
    status.HTTP_422_UNPROCESSABLE_ENTITY: "Validation error",
    status.HTTP_429_TOO_MANY_REQUESTS: "Too many requests",
    status.HTTP_500_INTERNAL_SERVER_ERROR: "Internal server error",
}


class ApiError(HTTPException):
    """HTTPException carrying an optional machine-readable code and field errors."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_400_BAD_REQUEST,
        code: Optional[str] = None,
        errors: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        super().__init__(status_code=status_code, detail=message, headers=headers)
        self.code = code
        self.errors = errors


def error_body(message: str, code: Optional[str] = None, errors: Optional[Dict[str, Any]] = None) -> dict:
    body = {
        "success": False,
        "error": message,
        "meta": {"timestamp": datetime.utcnow().isoformat()},
    }
    if code:
        body["code"] = code
    if errors:
        body["errors"] = errors
    return body


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    message = exc.detail if isinstance(exc.detail, str) and exc.detail else None
    if message is None and exc.detail:
        message = str(exc.detail)
    message = message or DEFAULT_MESSAGES.get(exc.status_code, "An error occurred")
    code = getattr(exc, "code", None)
    errors = getattr(exc, "errors", None)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(message, code, errors),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors: Dict[str, list] = {}
    for error in exc.errors():
        # Drop the "body"/"query" prefix so clients get plain field names
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path", "form")]
        field = ".".join(location) or "request"
        errors.setdefault(field, []).append(error.get("msg", "Invalid value"))
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=jsonable_encoder(error_body("Validation error", "VALIDATION_ERROR", errors)),
    )


async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.warning(f"Integrity error on {request.method} {request.url.path}: {exc.orig}")
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content=error_body("A record with this value already exists", "CONFLICT"),
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body(DEFAULT_MESSAGES[status.HTTP_500_INTERNAL_SERVER_ERROR]),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
