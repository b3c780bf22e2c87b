"""Screening administration endpoints.

This module provides the admin API, protected by the admin key:
- GET /v1/admin/screenings - List screening records
- GET /v1/admin/screenings/statistics - Dashboard counts
- GET /v1/admin/screenings/{record_id} - Get one record
- POST /v1/admin/screenings/{record_id}/cancel - Cancel a screening
- POST /v1/admin/screenings/{record_id}/rerun - Start another attempt
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Body, Depends, Query, status

from geargrab.api.dependencies import get_admin_service, get_services
from geargrab.api.schemas.errors import APIError
from geargrab.api.schemas.screening import (
    RerunRequest,
    ScreeningListResponse,
    ScreeningRecordResponse,
    ScreeningStatisticsResponse,
)
from geargrab.core.logging import get_logger
from geargrab.screening.admin import ScreeningAdminService
from geargrab.screening.services import ScreeningServices
from geargrab.screening.types import ScreeningStatus

logger = get_logger(__name__)

router = APIRouter(prefix="/admin/screenings", tags=["admin"])


@router.get(
    "",
    response_model=ScreeningListResponse,
    summary="List screening records",
)
async def list_screenings(
    admin: Annotated[ScreeningAdminService, Depends(get_admin_service)],
    status_filter: Annotated[ScreeningStatus | None, Query(alias="status")] = None,
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> ScreeningListResponse:
    """List records newest first, optionally filtered by status."""
    records = await admin.list_records(status_filter, limit=limit, offset=offset)
    return ScreeningListResponse(
        items=[ScreeningRecordResponse.from_record(r) for r in records],
        limit=limit,
        offset=offset,
    )


@router.get(
    "/statistics",
    response_model=ScreeningStatisticsResponse,
    summary="Screening statistics",
)
async def screening_statistics(
    admin: Annotated[ScreeningAdminService, Depends(get_admin_service)],
) -> ScreeningStatisticsResponse:
    return ScreeningStatisticsResponse.from_statistics(await admin.get_statistics())


@router.get(
    "/{record_id}",
    response_model=ScreeningRecordResponse,
    summary="Get a screening record",
    responses={404: {"model": APIError, "description": "Record not found"}},
)
async def get_screening(
    record_id: UUID,
    admin: Annotated[ScreeningAdminService, Depends(get_admin_service)],
) -> ScreeningRecordResponse:
    return ScreeningRecordResponse.from_record(await admin.get_record(record_id))


@router.post(
    "/{record_id}/cancel",
    response_model=ScreeningRecordResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Cancel a screening",
    description="""
    Withdraw a screening. A running workflow cancels the vendor report and
    settles the record; the returned record may still show the previous
    status with `cancel_requested` set. Terminal records are unchanged.
    """,
    responses={404: {"model": APIError, "description": "Record not found"}},
)
async def cancel_screening(
    record_id: UUID,
    admin: Annotated[ScreeningAdminService, Depends(get_admin_service)],
) -> ScreeningRecordResponse:
    record = await admin.cancel(record_id)
    logger.info("admin_cancel", record_id=str(record_id), status=record.status.value)
    return ScreeningRecordResponse.from_record(record)


@router.post(
    "/{record_id}/rerun",
    response_model=ScreeningRecordResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Rerun a screening",
    description="""
    Start another attempt for a failed or cancelled screening, or retry
    account provisioning for a clear one. A new attempt is a new record
    linked by `previous_record_id` and keeps the candidate's recorded
    consent.
    """,
    responses={
        400: {"model": APIError, "description": "Registration data required"},
        404: {"model": APIError, "description": "Record not found"},
        409: {"model": APIError, "description": "Screening cannot be rerun"},
    },
)
async def rerun_screening(
    record_id: UUID,
    services: Annotated[ScreeningServices, Depends(get_services)],
    body: Annotated[RerunRequest | None, Body()] = None,
) -> ScreeningRecordResponse:
    request = None
    credential = None
    if body is not None and body.registration is not None:
        previous = await services.admin.get_record(record_id)
        request = services.registration.build_request(
            body.registration, consent=previous.consent
        )
        credential = body.registration.password

    record = await services.admin.rerun(record_id, request, credential)
    logger.info(
        "admin_rerun",
        record_id=str(record_id),
        attempt_record_id=str(record.record_id),
    )
    return ScreeningRecordResponse.from_record(record)
