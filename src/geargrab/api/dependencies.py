"""FastAPI dependencies for API endpoints."""

from fastapi import Request

from geargrab.api.middleware.logging import get_client_ip
from geargrab.screening.admin import ScreeningAdminService
from geargrab.screening.registration import ConsentContext, RegistrationService
from geargrab.screening.services import ScreeningServices
from geargrab.screening.webhooks import WebhookService


def get_services(request: Request) -> ScreeningServices:
    """Screening components built during application startup."""
    return request.app.state.services


def get_registration_service(request: Request) -> RegistrationService:
    return get_services(request).registration


def get_admin_service(request: Request) -> ScreeningAdminService:
    return get_services(request).admin


def get_webhook_service(request: Request) -> WebhookService:
    return get_services(request).webhooks


def get_consent_context(request: Request) -> ConsentContext:
    """Client metadata recorded as consent evidence.

    Args:
        request: FastAPI request object

    Returns:
        ConsentContext with the client IP and user agent
    """
    return ConsentContext(
        ip_address=get_client_ip(request) or "unknown",
        user_agent=request.headers.get("User-Agent"),
    )
