"""Database models for GearGrab screening."""

from .account import UserAccount, UserProfile
from .base import Base, PortableJSON, PortableUUID, TimestampMixin, UTCDateTime
from .screening import ScreeningRecordModel

__all__ = [
    "Base",
    "PortableJSON",
    "PortableUUID",
    "ScreeningRecordModel",
    "TimestampMixin",
    "UTCDateTime",
    "UserAccount",
    "UserProfile",
]
