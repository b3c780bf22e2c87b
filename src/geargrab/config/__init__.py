"""Configuration module for GearGrab screening."""

from geargrab.config.settings import CheckTier, Settings, VendorEndpoint, get_settings

__all__ = ["CheckTier", "Settings", "VendorEndpoint", "get_settings"]
