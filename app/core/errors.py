"""
Closed error taxonomy shared by every service.

Each error carries a stable code (AUTH_*, RES_*, VAL_*, SRV_*), the HTTP
status the API layer maps it to, and a message that is safe to show to
clients. Services raise these; `register_exception_handlers` renders them
into the response envelope.
"""
import enum
import logging
from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from app.schemas.response import error_envelope

logger = logging.getLogger(__name__)


class ErrorCode(str, enum.Enum):
    INVALID_CREDENTIALS = "AUTH_001"
    INVALID_EMAIL = "AUTH_002"
    INVALID_PASSWORD = "AUTH_003"
    INVALID_STUDENT_ID = "AUTH_004"
    INVALID_TOKEN = "AUTH_005"
    EXPIRED_TOKEN = "AUTH_006"
    TOKEN_NOT_FOUND = "AUTH_007"
    UNAUTHORIZED = "AUTH_008"
    RESOURCE_NOT_FOUND = "RES_001"
    RESOURCE_ALREADY_EXISTS = "RES_002"
    CONFLICT = "RES_004"
    VALIDATION_FAILED = "VAL_001"
    INTERNAL_SERVER = "SRV_001"
    DATABASE_ERROR = "SRV_002"
    EXTERNAL_SERVICE_ERROR = "SRV_003"


class ErrorSeverity(str, enum.Enum):
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class AppError(Exception):
    code: ErrorCode = ErrorCode.INTERNAL_SERVER
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "An unexpected error occurred"
    severity: ErrorSeverity = ErrorSeverity.ERROR

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        field: Optional[str] = None,
        details: Any = None,
    ):
        self.message = message or self.default_message
        self.field = field
        self.details = details
        super().__init__(self.message)

    def to_detail(self) -> dict:
        detail = {
            "code": self.code.value,
            "message": self.message,
            "severity": self.severity.value,
        }
        if self.field:
            detail["field"] = self.field
        if self.details is not None:
            detail["details"] = self.details
        return detail


# -----------------------------
# AUTH_*
# -----------------------------
class InvalidCredentials(AppError):
    code = ErrorCode.INVALID_CREDENTIALS
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Invalid email or password"


class InvalidEmail(AppError):
    code = ErrorCode.INVALID_EMAIL
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Email format is invalid, school email required"


class InvalidPassword(AppError):
    code = ErrorCode.INVALID_PASSWORD
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Password must be at least 8 characters and contain a letter and a digit"


class InvalidStudentID(AppError):
    code = ErrorCode.INVALID_STUDENT_ID
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Student ID must be exactly 8 digits"


class InvalidToken(AppError):
    code = ErrorCode.INVALID_TOKEN
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Invalid token"


class RevokedToken(InvalidToken):
    default_message = "Token has been revoked"


class ExpiredToken(AppError):
    code = ErrorCode.EXPIRED_TOKEN
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Token has expired"


class TokenNotFound(AppError):
    code = ErrorCode.TOKEN_NOT_FOUND
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Token not found"


class PermissionDenied(AppError):
    code = ErrorCode.UNAUTHORIZED
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "You are not allowed to perform this action"


# -----------------------------
# RES_* / VAL_*
# -----------------------------
class NotFound(AppError):
    code = ErrorCode.RESOURCE_NOT_FOUND
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found"


class AlreadyExists(AppError):
    code = ErrorCode.RESOURCE_ALREADY_EXISTS
    status_code = status.HTTP_409_CONFLICT
    default_message = "Resource already exists"


class EmailInUse(AlreadyExists):
    default_message = "Email is already registered"


class Conflict(AppError):
    code = ErrorCode.CONFLICT
    status_code = status.HTTP_409_CONFLICT
    default_message = "Conflict"


class LeadCannotLeave(Conflict):
    default_message = "Lead cannot leave"


class AlreadyParticipant(Conflict):
    default_message = "User is already a participant in this community"


class ValidationFailed(AppError):
    code = ErrorCode.VALIDATION_FAILED
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Input validation failed"
    severity = ErrorSeverity.WARNING


# -----------------------------
# SRV_*
# -----------------------------
class InternalServerError(AppError):
    code = ErrorCode.INTERNAL_SERVER
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "An unexpected error occurred"
    severity = ErrorSeverity.CRITICAL


class Cancelled(InternalServerError):
    status_code = status.HTTP_504_GATEWAY_TIMEOUT
    default_message = "Request deadline exceeded"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message, details={"reason": "Cancelled"})


class DatabaseError(AppError):
    code = ErrorCode.DATABASE_ERROR
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "A database error occurred"
    severity = ErrorSeverity.CRITICAL


class ExternalServiceError(AppError):
    code = ErrorCode.EXTERNAL_SERVICE_ERROR
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "An external service failed"
    severity = ErrorSeverity.CRITICAL


# -----------------------------
# FastAPI wiring
# -----------------------------
def _render(err: AppError, headers: Optional[dict] = None) -> JSONResponse:
    return JSONResponse(
        status_code=err.status_code,
        content=error_envelope(err.to_detail()),
        headers=headers,
    )


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if isinstance(exc, (InternalServerError, DatabaseError, ExternalServiceError)):
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)

    headers = None
    if exc.status_code == status.HTTP_401_UNAUTHORIZED:
        headers = {"WWW-Authenticate": "Bearer"}
    return _render(exc, headers)


async def validation_error_handler(
    request: Request, exc: RequestValidationError | ValidationError
) -> JSONResponse:
    errors = exc.errors()
    field = None
    message = "Input validation failed"
    if errors:
        first = errors[0]
        loc = [str(p) for p in first.get("loc", ()) if p not in ("body", "query", "path", "form")]
        field = ".".join(loc) or None
        message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
    return _render(ValidationFailed(message, field=field))


async def sqlalchemy_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return _render(DatabaseError())


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _render(InternalServerError())


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(SQLAlchemyError, sqlalchemy_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
