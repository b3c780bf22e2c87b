"""Core services and utilities for GearGrab screening."""

from .exceptions import (
    AccountProvisioningError,
    DuplicateRequestError,
    InvalidTransitionError,
    NotificationDeliveryError,
    PollingExhaustedError,
    ProviderAPIError,
    ProviderError,
    ProviderNotFoundError,
    ProviderUnavailableError,
    RecordNotFoundError,
    StaleRecordError,
    ValidationError,
    WebhookSignatureError,
)

__all__ = [
    "AccountProvisioningError",
    "DuplicateRequestError",
    "InvalidTransitionError",
    "NotificationDeliveryError",
    "PollingExhaustedError",
    "ProviderAPIError",
    "ProviderError",
    "ProviderNotFoundError",
    "ProviderUnavailableError",
    "RecordNotFoundError",
    "StaleRecordError",
    "ValidationError",
    "WebhookSignatureError",
]
