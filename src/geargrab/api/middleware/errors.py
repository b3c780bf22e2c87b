"""Error handling middleware: domain exceptions to APIError responses.

Registration failures that happen before the workflow is detached
(validation, duplicate email) surface here. Anything that happens after
detachment is recorded on the screening record instead and never reaches
this middleware.
"""

from datetime import UTC, datetime
from typing import Any, Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from geargrab.api.schemas.errors import APIError, ErrorCode
from geargrab.core.exceptions import (
    DuplicateRequestError,
    InvalidTransitionError,
    ProviderNotFoundError,
    RecordNotFoundError,
    StaleRecordError,
    ValidationError,
    WebhookSignatureError,
)
from geargrab.core.logging import get_logger, log_exception
from geargrab.utils.exceptions import ConfigurationError, GearGrabError

logger = get_logger(__name__)

# First match wins; subclasses go before their bases
ERROR_RESPONSES: tuple[tuple[type[GearGrabError], int, ErrorCode], ...] = (
    (ValidationError, 400, ErrorCode.VALIDATION_ERROR),
    (WebhookSignatureError, 401, ErrorCode.UNAUTHORIZED),
    (DuplicateRequestError, 409, ErrorCode.DUPLICATE_REQUEST),
    (RecordNotFoundError, 404, ErrorCode.NOT_FOUND),
    (InvalidTransitionError, 409, ErrorCode.CONFLICT),
    (StaleRecordError, 409, ErrorCode.CONFLICT),
    (ProviderNotFoundError, 500, ErrorCode.CONFIGURATION_ERROR),
    (ConfigurationError, 500, ErrorCode.CONFIGURATION_ERROR),
)


def request_id_of(request: Request) -> str:
    """Request ID assigned by RequestContextMiddleware, if it ran."""
    return str(getattr(request.state, "request_id", "unknown"))


def error_response(
    request: Request,
    status_code: int,
    error_code: ErrorCode,
    message: str,
    details: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Render an APIError body carrying the request ID."""
    request_id = request_id_of(request)
    error = APIError(
        error_code=error_code.value,
        message=message,
        details=details,
        request_id=request_id,
        timestamp=datetime.now(UTC),
    )
    return JSONResponse(
        status_code=status_code,
        content=error.model_dump(mode="json"),
        headers={"X-Request-ID": request_id, **(headers or {})},
    )


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Catch exceptions raised by route handlers and answer with APIError.

    Server-side failures hide their message unless ``debug`` is on.
    """

    def __init__(self, app, debug: bool = False):
        super().__init__(app)
        self.debug = debug

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception as exc:
            return self._handle_exception(request, exc)

    def _handle_exception(self, request: Request, exc: Exception) -> JSONResponse:
        for error_type, status_code, error_code in ERROR_RESPONSES:
            if isinstance(exc, error_type):
                break
        else:
            log_exception(logger, exc, path=request.url.path)
            return error_response(
                request,
                500,
                ErrorCode.INTERNAL_ERROR,
                "Internal server error",
                self._debug_details(exc),
            )

        if status_code >= 500:
            log_exception(logger, exc, path=request.url.path)
            if not self.debug:
                return error_response(request, status_code, error_code, "Service misconfigured")
        return error_response(request, status_code, error_code, exc.message, exc.details or None)

    def _debug_details(self, exc: Exception) -> dict[str, Any] | None:
        if not self.debug:
            return None
        if isinstance(exc, GearGrabError):
            return {"code": exc.code}
        return {"type": type(exc).__name__}
