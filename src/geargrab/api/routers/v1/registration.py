"""Registration endpoint.

- POST /v1/registrations - Submit a tasker application and start screening
"""

from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, status

from geargrab.api.dependencies import get_consent_context, get_registration_service
from geargrab.api.schemas.errors import APIError
from geargrab.api.schemas.screening import RegistrationResponse
from geargrab.screening.registration import ConsentContext, RegistrationService

router = APIRouter(prefix="/registrations", tags=["registration"])


@router.post(
    "",
    response_model=RegistrationResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Submit a tasker application",
    description="""
    Validate the application, reserve the email and start the background
    check. The response is returned before the check completes.

    **Required fields:** first_name, last_name, email, password, phone,
    date_of_birth, government_id (or ssn), address, consent_given=true.
    camelCase keys are accepted.
    """,
    responses={
        202: {"description": "Application accepted, screening started"},
        400: {"model": APIError, "description": "Invalid application"},
        409: {"model": APIError, "description": "Email already has an active screening"},
    },
)
async def submit_registration(
    payload: Annotated[dict[str, Any], Body(...)],
    consent_context: Annotated[ConsentContext, Depends(get_consent_context)],
    service: Annotated[RegistrationService, Depends(get_registration_service)],
) -> RegistrationResponse:
    """Accept an application and detach its screening workflow."""
    receipt = await service.register(payload, consent_context)
    return RegistrationResponse.from_receipt(receipt)
