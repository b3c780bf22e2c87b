"""Screening record persistence.

Defines the store contract shared by the in-memory and relational
implementations, and the in-memory store used in development and tests.
"""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any
from uuid import UUID

from geargrab.core.exceptions import DuplicateRequestError, RecordNotFoundError, StaleRecordError

from .types import ScreeningRecord, ScreeningStatus, apply_patch

# =============================================================================
# Store Interface
# =============================================================================


class ScreeningRecordStore(ABC):
    """Base class for screening record persistence backends.

    Every mutation goes through ``update`` as a patch. When
    ``expected_version`` is given the write only lands if the record is
    still at that version.
    """

    @abstractmethod
    async def create(self, record: ScreeningRecord) -> ScreeningRecord:
        """Persist a new record.

        Raises:
            DuplicateRequestError: If another record still holds the email.
        """
        ...

    @abstractmethod
    async def find_by_id(self, record_id: UUID) -> ScreeningRecord | None:
        """Load a record by id."""
        ...

    async def get(self, record_id: UUID) -> ScreeningRecord:
        """Load a record by id or raise RecordNotFoundError."""
        record = await self.find_by_id(record_id)
        if record is None:
            raise RecordNotFoundError(record_id)
        return record

    @abstractmethod
    async def find_by_email(self, email: str) -> ScreeningRecord | None:
        """Load the most recent record for an email."""
        ...

    @abstractmethod
    async def find_by_external_report_id(
        self, provider_name: str, external_report_id: str
    ) -> ScreeningRecord | None:
        """Load the most recent record holding a vendor report id."""
        ...

    @abstractmethod
    async def update(
        self,
        record_id: UUID,
        patch: Mapping[str, Any],
        expected_version: int | None = None,
    ) -> ScreeningRecord:
        """Apply a patch and return the new record.

        Raises:
            RecordNotFoundError: If the record does not exist.
            StaleRecordError: If ``expected_version`` no longer matches.
            InvalidTransitionError: If the patch breaks a record invariant.
        """
        ...

    @abstractmethod
    async def list_by_status(
        self,
        statuses: Iterable[ScreeningStatus] | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[ScreeningRecord]:
        """List records newest first, optionally filtered by status."""
        ...

    @abstractmethod
    async def count_by_status(self) -> dict[ScreeningStatus, int]:
        """Count records per status."""
        ...

    @abstractmethod
    async def count_created_since(self, since: datetime) -> int:
        """Count records created at or after ``since``."""
        ...


# =============================================================================
# In-Memory Store
# =============================================================================




class InMemoryScreeningRecordStore(ScreeningRecordStore):
    """In-memory record store serialising writes per record id."""

    def __init__(self) -> None:
        self._records: dict[UUID, ScreeningRecord] = {}
        self._active_by_email: dict[str, UUID] = {}
        self._create_lock = asyncio.Lock()
        self._record_locks: dict[UUID, asyncio.Lock] = {}

    async def create(self, record: ScreeningRecord) -> ScreeningRecord:
        async with self._create_lock:
            email = record.email.lower()
            holder_id = self._active_by_email.get(email)
            if holder_id is not None:
                holder = self._records[holder_id]
                raise DuplicateRequestError(email, holder.record_id, holder.status.value)
            self._records[record.record_id] = record
            self._record_locks[record.record_id] = asyncio.Lock()
            if record.status.holds_email:
                self._active_by_email[email] = record.record_id
            return record

    async def find_by_id(self, record_id: UUID) -> ScreeningRecord | None:
        return self._records.get(record_id)

    async def find_by_email(self, email: str) -> ScreeningRecord | None:
        email = email.lower()
        matches = [r for r in self._records.values() if r.email.lower() == email]
        if not matches:
            return None
        return max(matches, key=lambda r: r.created_at)

    async def find_by_external_report_id(
        self, provider_name: str, external_report_id: str
    ) -> ScreeningRecord | None:
        matches = [
            r
            for r in self._records.values()
            if r.provider_name == provider_name and r.external_report_id == external_report_id
        ]
        if not matches:
            return None
        return max(matches, key=lambda r: r.created_at)

    async def update(
        self,
        record_id: UUID,
        patch: Mapping[str, Any],
        expected_version: int | None = None,
    ) -> ScreeningRecord:
        lock = self._record_locks.get(record_id)
        if lock is None:
            raise RecordNotFoundError(record_id)

        async with lock:
            current = self._records[record_id]
            if expected_version is not None and current.version != expected_version:
                raise StaleRecordError(record_id, expected_version, current.version)

            updated = apply_patch(current, patch)
            self._records[record_id] = updated

            email = updated.email.lower()
            if not updated.status.holds_email and self._active_by_email.get(email) == record_id:
                del self._active_by_email[email]
            return updated

    async def list_by_status(
        self,
        statuses: Iterable[ScreeningStatus] | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[ScreeningRecord]:
        wanted = set(statuses) if statuses is not None else None
        records = [
            r for r in self._records.values() if wanted is None or r.status in wanted
        ]
        records.sort(key=lambda r: r.created_at, reverse=True)
        return records[offset : offset + limit]

    async def count_by_status(self) -> dict[ScreeningStatus, int]:
        counts = dict.fromkeys(ScreeningStatus, 0)
        for record in self._records.values():
            counts[record.status] += 1
        return counts

    async def count_created_since(self, since: datetime) -> int:
        return sum(1 for r in self._records.values() if r.created_at >= since)
