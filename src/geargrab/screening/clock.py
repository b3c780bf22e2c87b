"""Injectable time sources for the poll loop."""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta


class Clock(ABC):
    """Time source used between vendor polls."""

    @abstractmethod
    def now(self) -> datetime: ...

    @abstractmethod
    async def sleep(self, seconds: float) -> None: ...


class SystemClock(Clock):
    """Wall-clock time backed by ``asyncio.sleep``."""

    def now(self) -> datetime:
        return datetime.now(UTC)

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


class VirtualClock(Clock):
    """Clock that advances instantly when slept on.

    Each ``sleep`` yields control once so other tasks can run, then moves
    virtual time forward. ``on_sleep`` is awaited on every sleep, which
    lets tests act between two polls.
    """

    def __init__(
        self,
        start: datetime | None = None,
        on_sleep: Callable[[int], Awaitable[None]] | None = None,
    ):
        self._now = start or datetime(2024, 1, 1, tzinfo=UTC)
        self.on_sleep = on_sleep
        self.sleeps: list[float] = []

    def now(self) -> datetime:
        return self._now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self._now += timedelta(seconds=seconds)
        if self.on_sleep is not None:
            await self.on_sleep(len(self.sleeps))
        await asyncio.sleep(0)

    @property
    def elapsed_seconds(self) -> float:
        return sum(self.sleeps)
