from datetime import datetime, timezone
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel

from app.utils.time_utils import to_rfc3339

T = TypeVar("T")


class ErrorDetail(BaseModel):
    code: str
    message: str
    field: Optional[str] = None
    severity: str = "ERROR"
    details: Optional[Any] = None


class APIResponse(BaseModel, Generic[T]):
    success: bool
    message: Optional[str] = None
    data: Optional[T] = None
    error: Optional[ErrorDetail] = None
    timestamp: str


def _now() -> str:
    return to_rfc3339(datetime.now(timezone.utc))


def success_envelope(data: Any = None, message: str = "Operation completed successfully") -> dict:
    return {"success": True, "message": message, "data": data, "timestamp": _now()}


def error_envelope(error: dict) -> dict:
    return {
        "success": False,
        "message": error.get("message"),
        "error": error,
        "timestamp": _now(),
    }
