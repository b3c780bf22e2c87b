"""Error body shared by every non-2xx API response."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class ErrorCode(str, Enum):
    """Values of ``APIError.error_code``."""

    UNAUTHORIZED = "unauthorized"  # 401, admin key or webhook signature
    VALIDATION_ERROR = "validation_error"  # 400, rejected registration
    NOT_FOUND = "not_found"  # 404, unknown screening record
    DUPLICATE_REQUEST = "duplicate_request"  # 409, email already screening
    CONFLICT = "conflict"  # 409, cancel/rerun not allowed in this status
    CONFIGURATION_ERROR = "configuration_error"
    INTERNAL_ERROR = "internal_error"


class APIError(BaseModel):
    """Body of every error response.

    ``details`` carries what a client needs to fix the request, for
    example ``missing_fields`` on a rejected registration or the
    ``existing_record_id`` behind a duplicate.
    """

    error_code: str = Field(..., description="Machine-readable ErrorCode value")
    message: str = Field(..., description="Human-readable explanation")
    details: dict[str, Any] | None = Field(default=None, description="Structured context")
    request_id: str = Field(..., description="Matches the X-Request-ID header")
    timestamp: datetime

    model_config = {"json_schema_extra": {"example": {
        "error_code": "validation_error",
        "message": "Missing required fields",
        "details": {"missing_fields": ["phone", "date_of_birth"]},
        "request_id": "019478f2-1234-7000-8000-abcdef123456",
        "timestamp": "2026-01-30T12:00:00Z",
    }}}
