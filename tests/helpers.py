"""Builders for candidate data shared by the test suite."""

from datetime import UTC, date, datetime
from typing import Any

from pydantic import SecretStr

from geargrab.config.settings import CheckTier
from geargrab.screening.types import (
    CandidateIdentity,
    ConsentMetadata,
    PostalAddress,
    ScreeningRecord,
    ScreeningRequest,
)


def make_request(
    email: str = "jane.doe@example.com",
    check_tier: CheckTier = CheckTier.BASIC,
    **candidate: Any,
) -> ScreeningRequest:
    """Build a valid ScreeningRequest, overriding candidate fields as given."""
    fields: dict[str, Any] = {
        "first_name": "Jane",
        "last_name": "Doe",
        "email": email,
        "phone": "555-201-3344",
        "date_of_birth": date(1990, 4, 12),
        "government_id": SecretStr("123-45-6789"),
        "address": PostalAddress(
            street="12 Trailhead Rd", city="Boulder", state="co", zip_code="80302"
        ),
    }
    fields.update(candidate)
    return ScreeningRequest(
        candidate=CandidateIdentity(**fields),
        check_tier=check_tier,
        consent_given=True,
        consent=ConsentMetadata(
            consented_at=datetime(2024, 1, 1, tzinfo=UTC),
            ip_address="203.0.113.7",
            user_agent="pytest",
        ),
    )


def make_record(request: ScreeningRequest | None = None, **overrides: Any) -> ScreeningRecord:
    """Build a pending ScreeningRecord for a request."""
    request = request or make_request()
    fields: dict[str, Any] = {
        "email": request.email,
        "provider_name": "mock",
        "consent": request.consent,
        "check_tier": request.check_tier,
        "candidate_summary": request.summarize(),
    }
    fields.update(overrides)
    return ScreeningRecord(**fields)


def registration_payload(**overrides: Any) -> dict[str, Any]:
    """A complete registration body as a client would send it."""
    payload: dict[str, Any] = {
        "firstName": "Jane",
        "lastName": "Doe",
        "email": "jane.doe@example.com",
        "password": "correct-horse-battery",
        "phone": "555-201-3344",
        "dateOfBirth": "1990-04-12",
        "ssn": "123-45-6789",
        "address": {
            "street": "12 Trailhead Rd",
            "city": "Boulder",
            "state": "CO",
            "zipCode": "80302",
        },
        "consentGiven": True,
    }
    payload.update(overrides)
    return payload
