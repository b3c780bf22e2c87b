"""Database repositories for clean data access."""

from .account import AccountRepository, ProfileRepository
from .base import BaseRepository
from .screening import ScreeningRecordRepository, SqlScreeningRecordStore

__all__ = [
    "AccountRepository",
    "BaseRepository",
    "ProfileRepository",
    "ScreeningRecordRepository",
    "SqlScreeningRecordStore",
]
