"""Utility modules for GearGrab screening."""

from geargrab.utils.exceptions import ConfigurationError, GearGrabError

__all__ = [
    "GearGrabError",
    "ConfigurationError",
]
