"""Error taxonomy and the JSON error envelope shared by every route.

Every error response has the shape::

    {"success": false, "message": "...", "code": "...", "reason"?: "...", "errors"?: [...]}
"""

from enum import Enum
from typing import Any, List, Optional
from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging

logger = logging.getLogger(__name__)

class ErrorCode(str, Enum):
    """Application error codes for client-side handling"""
    UNAUTHENTICATED = "UNAUTHENTICATED"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    CONFLICT = "CONFLICT"
    INTERNAL_ERROR = "INTERNAL_ERROR"

_DEFAULT_CODES = {
    400: ErrorCode.VALIDATION_ERROR,
    401: ErrorCode.UNAUTHENTICATED,
    403: ErrorCode.FORBIDDEN,
    404: ErrorCode.NOT_FOUND,
    409: ErrorCode.CONFLICT,
}

class AppHTTPException(HTTPException):
    """HTTP exception carrying an error code and an optional machine-readable reason."""

    def __init__(
        self,
        status_code: int,
        code: ErrorCode,
        message: str,
        reason: Optional[str] = None,
        errors: Optional[List[Any]] = None,
        headers: Optional[dict] = None,
    ):
        super().__init__(status_code=status_code, detail=message, headers=headers)
        self.code = code
        self.reason = reason
        self.errors = errors

# ============ Factories ============

def unauthenticated(message: str = "Authentication required", reason: Optional[str] = None) -> AppHTTPException:
    return AppHTTPException(
        status.HTTP_401_UNAUTHORIZED,
        ErrorCode.UNAUTHENTICATED,
        message,
        reason=reason,
        headers={"WWW-Authenticate": "Bearer"},
    )

def token_expired(message: str = "Token expired") -> AppHTTPException:
    return AppHTTPException(
        status.HTTP_401_UNAUTHORIZED,
        ErrorCode.TOKEN_EXPIRED,
        message,
        reason="expired",
        headers={"WWW-Authenticate": "Bearer"},
    )

def forbidden(message: str = "Access denied", reason: Optional[str] = None) -> AppHTTPException:
    return AppHTTPException(status.HTTP_403_FORBIDDEN, ErrorCode.FORBIDDEN, message, reason=reason)

def not_found(message: str) -> AppHTTPException:
    return AppHTTPException(status.HTTP_404_NOT_FOUND, ErrorCode.NOT_FOUND, message)

def bad_request(message: str, reason: Optional[str] = None, errors: Optional[List[Any]] = None) -> AppHTTPException:
    return AppHTTPException(
        status.HTTP_400_BAD_REQUEST,
        ErrorCode.VALIDATION_ERROR,
        message,
        reason=reason,
        errors=errors,
    )

def conflict(message: str) -> AppHTTPException:
    # Duplicate keys are reported as 400 for compatibility with existing clients
    return AppHTTPException(status.HTTP_400_BAD_REQUEST, ErrorCode.CONFLICT, message)

def internal_error(message: str = "Internal server error") -> AppHTTPException:
    return AppHTTPException(status.HTTP_500_INTERNAL_SERVER_ERROR, ErrorCode.INTERNAL_ERROR, message)

# ============ Handlers ============

def error_body(message: str, code: ErrorCode, reason: Optional[str] = None, errors: Optional[List[Any]] = None) -> dict:
    body = {"success": False, "message": message, "code": code.value}
    if reason:
        body["reason"] = reason
    if errors:
        body["errors"] = errors
    return body

async def app_exception_handler(request: Request, exc: AppHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(str(exc.detail), exc.code, exc.reason, exc.errors),
        headers=exc.headers,
    )

async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Wrap framework-raised HTTP errors (404 routes, 405, ...) in the same envelope."""
    code = _DEFAULT_CODES.get(exc.status_code, ErrorCode.INTERNAL_ERROR)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(str(exc.detail), code),
        headers=getattr(exc, "headers", None),
    )

async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path", "form"))
        errors.append({"field": field, "message": err.get("msg", "Invalid value")})
    logger.warning(f"Validation failed on {request.url.path}: {errors}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body("Validation error", ErrorCode.VALIDATION_ERROR, errors=errors),
    )

async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("Internal server error", ErrorCode.INTERNAL_ERROR),
    )

def register_exception_handlers(app) -> None:
    """Register the error envelope handlers on the FastAPI app."""
    app.add_exception_handler(AppHTTPException, app_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
