"""
Background resolution of status pushes.

A push only says "something changed for this job". The queue resolves it by
polling the workload until it reaches a terminal state or the poll budget
runs out, writes each new status to the store and removes the finished
workload. Resolutions run as supervised tasks: bounded by a semaphore, at
most one per job, and drained on shutdown.
"""

import asyncio

from baktaforge.config import MonitorSettings
from baktaforge.core.exceptions import (
    BaktaForgeException,
    ConsistencyConflict,
    WorkloadNotFoundError,
)
from baktaforge.core.logging import bind_context, get_logger
from baktaforge.models import JobStatus

logger = get_logger(__name__)


class QueueClosedError(RuntimeError):
    """Submitted after ``close()``."""


class StatusUpdateQueue:
    """Bounded, deduplicating pool of status resolutions."""

    def __init__(self, store, monitor, scheduler, settings: MonitorSettings):
        self.store = store
        self.monitor = monitor
        self.scheduler = scheduler
        self.poll_interval = settings.poll_interval_seconds
        self.max_polls = settings.max_polls
        self._semaphore = asyncio.Semaphore(settings.status_workers)
        self._pending: dict[str, asyncio.Task] = {}
        self._closed = False

    @property
    def pending(self) -> int:
        return len(self._pending)

    def submit(self, job_id: str) -> bool:
        """
        Schedule a resolution for ``job_id``.

        Returns False when one is already pending for the job.

        Raises:
            QueueClosedError: The queue no longer accepts work
        """
        if self._closed:
            raise QueueClosedError("Status queue is closed")
        if job_id in self._pending:
            return False

        task = asyncio.create_task(self._run(job_id), name=f"status-{job_id}")
        self._pending[job_id] = task
        task.add_done_callback(lambda _: self._pending.pop(job_id, None))
        return True

    async def _run(self, job_id: str) -> JobStatus | None:
        async with self._semaphore:
            bind_context(job_id=job_id)
            try:
                return await self.resolve(job_id)
            except BaktaForgeException as e:
                logger.warning("Status resolution failed", error=e.message, code=e.code)
            except Exception:
                logger.exception("Status resolution crashed")
            return None

    async def resolve(self, job_id: str) -> JobStatus | None:
        """
        Poll a job's workload and store what it reports.

        Returns:
            The terminal status reached, or None if polling ended without one
        """
        for _ in range(self.max_polls):
            try:
                report = await self.monitor.get_status(job_id)
            except WorkloadNotFoundError:
                logger.info("No workload to resolve status from")
                return None

            try:
                await self.store.update_status(
                    job_id, report.status, report.error_message or None
                )
            except ConsistencyConflict as e:
                # A lower status than stored is only pod start-up noise
                current = await self.store.get_job(job_id)
                if current.job_status.is_terminal:
                    logger.info("Job already finished", status=current.status)
                    return None
                if report.error_message:
                    logger.info(
                        "Ignoring status report",
                        reported=report.status.value,
                        stored=current.status,
                        pod_message=report.error_message,
                    )
                else:
                    logger.debug("Ignoring status report", reason=e.message)

            if report.status.is_terminal:
                current = await self.store.get_job(job_id)
                if not current.is_deleted:
                    await self.scheduler.delete_job(job_id)
                    await self.store.mark_deleted(job_id)
                logger.info("Job finished", status=report.status.value)
                return report.status

            await asyncio.sleep(self.poll_interval)

        logger.info("Status polling budget exhausted", polls=self.max_polls)
        return None

    def close(self) -> None:
        """Stop accepting new work; running resolutions continue."""
        self._closed = True

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for running resolutions, cancelling those still running after ``timeout``."""
        tasks = list(self._pending.values())
        if not tasks:
            return

        _, still_running = await asyncio.wait(tasks, timeout=timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            await asyncio.gather(*still_running, return_exceptions=True)
            logger.warning("Cancelled status resolutions", count=len(still_running))
