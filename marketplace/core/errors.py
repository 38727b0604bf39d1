"""
core/errors.py

Error taxonomy for the API and the handlers that turn every failure into the
standard response envelope:

    {"success": false, "data": null, "message": "...", "error": "not_found"}

Routers and repositories raise the exceptions below; nothing else needs to
know about status codes.
"""

from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from structlog import get_logger

logger = get_logger()


class AppError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "internal_error"
    default_message = "Internal server error"
    headers: Optional[dict] = None

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


# ─── 401 ──────────────────────────────────────────────────────────────────────

class Unauthenticated(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "unauthenticated"
    default_message = "Unauthorized access - no token provided"
    headers = {"WWW-Authenticate": "Bearer"}


class MalformedCredential(Unauthenticated):
    code = "malformed_credential"
    default_message = "Unauthorized access - invalid token format"


class InvalidCredential(Unauthenticated):
    code = "invalid_credential"
    default_message = "Unauthorized access - invalid token"


class UnknownSubject(Unauthenticated):
    code = "unknown_subject"
    default_message = "Unauthorized access - user not found"


# ─── 4xx ──────────────────────────────────────────────────────────────────────

class Forbidden(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"
    default_message = "Forbidden - insufficient permissions"


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "validation_error"
    default_message = "Invalid request data"


class InvalidId(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "invalid_id"
    default_message = "Invalid identifier"


class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"
    default_message = "Resource not found"


class RejectedFile(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "rejected_file"
    default_message = "Uploaded file was rejected"

    def __init__(self, filename: str, reason: str, message: Optional[str] = None):
        self.filename = filename
        self.reason = reason
        super().__init__(message or f"File '{filename}' rejected: {reason}")


class TooManyRequests(AppError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    code = "rate_limited"
    default_message = "Too many requests, please try again later"

    def __init__(self, retry_after: int, message: Optional[str] = None):
        self.retry_after = retry_after
        self.headers = {"Retry-After": str(retry_after)}
        super().__init__(message)


class InternalError(AppError):
    pass


# ─── Envelope helpers ─────────────────────────────────────────────────────────

def error_response(
    status_code: int,
    message: str,
    error: Optional[str] = None,
    headers: Optional[dict] = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "data": None, "message": message, "error": error},
        headers=headers,
    )


def format_validation_errors(errors: list[dict[str, Any]]) -> str:
    """Flatten pydantic error dicts into one readable line."""
    parts = []
    for err in errors:
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path")]
        field = ".".join(loc)
        msg = err.get("msg", "invalid value")
        parts.append(f"{field}: {msg}" if field else msg)
    return "; ".join(parts) or ValidationError.default_message


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if isinstance(exc, InternalError):
        logger.error("Request failed", path=request.url.path, error=exc.message)
    else:
        logger.debug("Request rejected", path=request.url.path, code=exc.code, error=exc.message)

    return error_response(exc.status_code, exc.message, exc.code, exc.headers)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return error_response(
        status.HTTP_400_BAD_REQUEST,
        format_validation_errors(exc.errors()),
        ValidationError.code,
    )


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return error_response(exc.status_code, str(exc.detail), None, getattr(exc, "headers", None))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error", path=request.url.path)
    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        InternalError.default_message,
        InternalError.code,
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
