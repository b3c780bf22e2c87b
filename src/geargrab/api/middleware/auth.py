"""Admin API key check.

Only the screening administration routes are protected. Registration and
health checks stay public so the tasker app and load balancers need no
credentials.
"""

import re
import secrets
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from geargrab.api.schemas.errors import ErrorCode
from geargrab.config.settings import Settings

from .errors import error_response

PROTECTED_PREFIXES = ("/v1/admin",)

BEARER_PATTERN = re.compile(r"^Bearer\s+(.+)$", re.IGNORECASE)


def admin_key_matches(token: str, settings: Settings) -> bool:
    """Compare a bearer token with ADMIN_API_KEY in constant time.

    Without a configured key any non-empty token passes in DEBUG and
    nothing passes otherwise.
    """
    if settings.ADMIN_API_KEY is None:
        return bool(token) and settings.DEBUG
    return secrets.compare_digest(token, settings.ADMIN_API_KEY.get_secret_value())


class AdminAuthenticationMiddleware(BaseHTTPMiddleware):
    """Reject admin requests without a valid ``Authorization: Bearer`` key."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if not request.url.path.startswith(PROTECTED_PREFIXES):
            return await call_next(request)

        header = request.headers.get("Authorization")
        if not header:
            return self._unauthorized(request, "Missing Authorization header")

        match = BEARER_PATTERN.match(header)
        if not match:
            return self._unauthorized(request, "Invalid Authorization header format")

        if not admin_key_matches(match.group(1), request.app.state.settings):
            return self._unauthorized(request, "Invalid API key")

        return await call_next(request)

    @staticmethod
    def _unauthorized(request: Request, message: str) -> Response:
        return error_response(
            request,
            401,
            ErrorCode.UNAUTHORIZED,
            message,
            headers={"WWW-Authenticate": "Bearer"},
        )
