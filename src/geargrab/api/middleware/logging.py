"""Access logging for the screening API."""

import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from geargrab.core.logging import get_logger, log_request_end

logger = get_logger("geargrab.api.requests")


def get_client_ip(request: Request) -> str | None:
    """Client address, preferring the first hop a reverse proxy reports.

    The result is also stored as consent evidence on screening records.
    """
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    return request.headers.get("X-Real-IP") or (request.client.host if request.client else None)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log method, path, status and duration once per request."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        started = time.perf_counter()
        response = await call_next(request)
        log_request_end(
            logger,
            request.method,
            request.url.path,
            response.status_code,
            (time.perf_counter() - started) * 1000,
            client_ip=get_client_ip(request),
            user_agent=request.headers.get("User-Agent"),
        )
        return response
