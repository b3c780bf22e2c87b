"""Per-request ID for log correlation."""

from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from uuid_utils.compat import uuid7

from geargrab.core.logging import bind_contextvars, unbind_contextvars

REQUEST_ID_HEADER = "X-Request-ID"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Give each request a UUIDv7, bound into the log context.

    The ID is stored on ``request.state.request_id``, echoed in the
    ``X-Request-ID`` response header and copied into APIError bodies.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = str(uuid7())
        request.state.request_id = request_id

        bind_contextvars(request_id=request_id)
        try:
            response = await call_next(request)
        finally:
            unbind_contextvars("request_id")

        response.headers[REQUEST_ID_HEADER] = request_id
        return response
