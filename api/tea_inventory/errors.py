# tea_inventory/errors.py
"""
Error responses.

Every error leaves the API as ``{"error": {"code", "message", "details"?}}``.
Route handlers raise ``HTTPException``s built by ``api_error``; the handlers
registered in ``setup_exception_handlers`` shape the body, and the global
handler logs unexpected exceptions and masks their detail.
"""
from __future__ import annotations

import uuid
from typing import Any, Dict, NoReturn, Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import settings
from .logging_config import get_logger

logger = get_logger(__name__)

# Fallback codes when a handler raised a plain HTTPException
DEFAULT_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    422: "VALIDATION_ERROR",
}


def api_error(
    status_code: int,
    code: str,
    message: str,
    details: Optional[Any] = None,
    headers: Optional[Dict[str, str]] = None,
) -> HTTPException:
    detail: Dict[str, Any] = {"code": code, "message": message}
    if details is not None:
        detail["details"] = details
    return HTTPException(status_code=status_code, detail=detail, headers=headers)


def not_found(code: str, message: str) -> HTTPException:
    return api_error(status.HTTP_404_NOT_FOUND, code, message)


def bad_request(code: str, message: str, details: Optional[Any] = None) -> HTTPException:
    return api_error(status.HTTP_400_BAD_REQUEST, code, message, details)


def conflict(code: str, message: str) -> HTTPException:
    return api_error(status.HTTP_409_CONFLICT, code, message)


def translate_integrity_error(e: IntegrityError, code: str = "DUPLICATE") -> NoReturn:
    msg = str(e.orig).lower() if e.orig else str(e).lower()
    if "unique" in msg or "duplicate" in msg:
        raise conflict(code, "Duplicate record (unique constraint hit)")
    raise bad_request("INTEGRITY_ERROR", "Database integrity error")


def error_body(code: str, message: str, details: Optional[Any] = None, **extra: Any) -> Dict[str, Any]:
    err: Dict[str, Any] = {"code": code, "message": message}
    if details is not None:
        err["details"] = details
    err.update(extra)
    return {"error": err}


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    detail = exc.detail
    if isinstance(detail, dict) and "code" in detail:
        body = {"error": detail}
    else:
        code = DEFAULT_CODES.get(exc.status_code, "ERROR")
        message = detail if isinstance(detail, str) else "Request failed"
        if exc.status_code == status.HTTP_404_NOT_FOUND and detail == "Not Found":
            message = "Resource not found"
        body = error_body(code, message)
    return JSONResponse(
        status_code=exc.status_code,
        content=jsonable_encoder(body),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    location = "query parameters" if any(
        (err.get("loc") or ("",))[0] == "query" for err in exc.errors()
    ) else "request data"
    body = error_body(
        "VALIDATION_ERROR",
        f"Invalid {location}",
        details=jsonable_encoder(exc.errors(), exclude={"ctx", "url", "input"}),
    )
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=body)


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log any unhandled exception with an id the client can quote back."""
    error_id = uuid.uuid4().hex[:12]

    logger.error(
        "Unhandled exception [%s] in %s %s: %s",
        error_id,
        request.method,
        request.url.path,
        exc,
        exc_info=exc,
        extra={
            "error_id": error_id,
            "method": request.method,
            "path": request.url.path,
            "client": request.client.host if request.client else "unknown",
            "error_type": type(exc).__name__,
        },
    )

    message = "Internal server error"
    if settings.expose_error_details and not settings.is_production:
        message = str(exc) or message
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("INTERNAL_ERROR", message, errorId=error_id),
    )


def setup_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)
    logger.debug("Exception handlers registered")
