"""Middleware stack for the screening API."""

from .auth import AdminAuthenticationMiddleware
from .context import RequestContextMiddleware
from .errors import ErrorHandlingMiddleware
from .logging import RequestLoggingMiddleware

__all__ = [
    "AdminAuthenticationMiddleware",
    "ErrorHandlingMiddleware",
    "RequestContextMiddleware",
    "RequestLoggingMiddleware",
]
