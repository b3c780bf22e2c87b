"""API request and response schemas."""

from .errors import APIError, ErrorCode
from .health import ComponentHealth, HealthDetailResponse, HealthResponse, HealthStatus
from .screening import (
    RegistrationResponse,
    RerunRequest,
    ScreeningListResponse,
    ScreeningRecordResponse,
    ScreeningStatisticsResponse,
    WebhookAckResponse,
)

__all__ = [
    "APIError",
    "ComponentHealth",
    "ErrorCode",
    "HealthDetailResponse",
    "HealthResponse",
    "HealthStatus",
    "RegistrationResponse",
    "RerunRequest",
    "ScreeningListResponse",
    "ScreeningRecordResponse",
    "ScreeningStatisticsResponse",
    "WebhookAckResponse",
]
