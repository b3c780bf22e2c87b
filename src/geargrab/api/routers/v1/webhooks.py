"""Vendor webhook endpoint.

- POST /v1/webhooks/{provider} - Receive a report event pushed by a vendor
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from geargrab.api.dependencies import get_webhook_service
from geargrab.api.schemas.errors import APIError
from geargrab.api.schemas.screening import WebhookAckResponse
from geargrab.screening.webhooks import SIGNATURE_HEADERS, WebhookService

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post(
    "/{provider}",
    response_model=WebhookAckResponse,
    summary="Receive a vendor report event",
    description="""
    Apply a report event pushed by a screening vendor. The raw body must be
    signed with the vendor's webhook secret (HMAC-SHA256, hex) in one of the
    X-Signature, X-Checkr-Signature or X-IProspect-Signature headers.

    Events for unknown reports or of an unhandled type are acknowledged
    with `handled=false`.
    """,
    responses={
        400: {"model": APIError, "description": "Unknown provider or malformed body"},
        401: {"model": APIError, "description": "Missing or invalid signature"},
    },
)
async def receive_webhook(
    provider: str,
    request: Request,
    service: Annotated[WebhookService, Depends(get_webhook_service)],
) -> WebhookAckResponse:
    """Verify the delivery and apply it to the matching screening record."""
    body = await request.body()
    signature = next(
        (request.headers[h] for h in SIGNATURE_HEADERS if h in request.headers), None
    )
    receipt = await service.handle(provider, body, signature)
    return WebhookAckResponse.from_receipt(receipt)
