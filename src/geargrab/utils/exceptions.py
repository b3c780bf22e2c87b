"""Custom exceptions for GearGrab screening."""

from typing import Any


class GearGrabError(Exception):
    """Base exception for all GearGrab errors.

    Attributes:
        message: Human-readable description.
        code: Machine-readable error code.
        details: Additional structured context.
    """

    code: str = "GEARGRAB_ERROR"

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.details = details or {}


class ConfigurationError(GearGrabError):
    """Error in configuration or settings."""

    code = "CONFIGURATION_ERROR"
