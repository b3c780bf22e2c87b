"""Background task supervision for screening workflows."""

import asyncio
from collections.abc import Coroutine
from typing import Any
from uuid import UUID

from geargrab.core.logging import get_logger, log_exception

from .orchestrator import persist_failure
from .store import ScreeningRecordStore

logger = get_logger(__name__)


class ScreeningTaskSupervisor:
    """Owns the detached task driving each screening record.

    Tasks are held by strong reference until they finish. An exception that
    escapes a workflow is logged and recorded on its record, never dropped.

    Example:
        supervisor = ScreeningTaskSupervisor(store)
        supervisor.spawn(record.record_id, orchestrator.run(record.record_id, request))
        await supervisor.join()
    """

    def __init__(self, store: ScreeningRecordStore):
        self.store = store
        self._tasks: dict[UUID, asyncio.Task[Any]] = {}

    def spawn(self, record_id: UUID, workflow: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        """Run ``workflow`` in the background for ``record_id``.

        Raises:
            RuntimeError: If a workflow is already running for the record.
        """
        if self.is_running(record_id):
            workflow.close()
            raise RuntimeError(f"Workflow already running for record {record_id}")

        task = asyncio.create_task(
            self._guard(record_id, workflow), name=f"screening-{record_id}"
        )
        self._tasks[record_id] = task
        task.add_done_callback(lambda t: self._forget(record_id, t))
        logger.debug("workflow_spawned", record_id=str(record_id))
        return task

    def is_running(self, record_id: UUID) -> bool:
        task = self._tasks.get(record_id)
        return task is not None and not task.done()

    @property
    def active_count(self) -> int:
        return sum(1 for task in self._tasks.values() if not task.done())

    async def wait(self, record_id: UUID) -> None:
        """Wait for the workflow of one record, if any."""
        task = self._tasks.get(record_id)
        if task is not None:
            await asyncio.shield(task)

    async def join(self) -> None:
        """Wait until no workflow is running, including ones spawned meanwhile."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)
            # Let done callbacks run
            await asyncio.sleep(0)

    async def shutdown(self, timeout: float = 5.0) -> None:
        """Cancel running workflows. Their records resume on next startup."""
        tasks = [task for task in self._tasks.values() if not task.done()]
        if not tasks:
            return
        logger.info("workflows_cancelling", count=len(tasks))
        for task in tasks:
            task.cancel()
        await asyncio.wait(tasks, timeout=timeout)

    async def _guard(self, record_id: UUID, workflow: Coroutine[Any, Any, Any]) -> Any:
        try:
            return await workflow
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log_exception(logger, e, record_id=str(record_id), stage="supervisor")
            await persist_failure(self.store, record_id, e)
            return None

    def _forget(self, record_id: UUID, task: asyncio.Task[Any]) -> None:
        if self._tasks.get(record_id) is task:
            del self._tasks[record_id]
