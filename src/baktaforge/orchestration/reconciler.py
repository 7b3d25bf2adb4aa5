"""
Periodic repair of jobs stuck in RUNNING.

A job can stay RUNNING in the store after its workload is gone, for example
when the status callback was lost and the finished workload expired. Each
cycle checks every RUNNING job against the orchestrator and moves orphans to
ERROR.
"""

import asyncio
import random

from baktaforge.config import MonitorSettings
from baktaforge.core.exceptions import ConsistencyConflict, WorkloadNotFoundError
from baktaforge.core.logging import get_logger
from baktaforge.models import Job, JobStatus

logger = get_logger(__name__)

STRAGGLER_MESSAGE = "job was in running state but no running workload could be found"


class StragglerReconciler:
    """Bounded fan-out sweep over RUNNING jobs."""

    def __init__(self, store, monitor, settings: MonitorSettings):
        self.store = store
        self.monitor = monitor
        self.interval = settings.straggler_interval_seconds
        self.workers = settings.straggler_workers
        self.queue_size = settings.straggler_queue_size
        self._task: asyncio.Task | None = None

    async def run_cycle(self) -> int:
        """
        Check all RUNNING jobs once.

        Returns:
            Number of jobs moved to ERROR

        Raises:
            OrchestratorError: A lookup failed for another reason than a missing
                workload; remaining jobs are left for the next cycle
        """
        jobs = await self.store.get_running_jobs()
        if not jobs:
            return 0

        workers = min(self.workers, len(jobs))
        # None tells a worker to stop
        queue: asyncio.Queue[Job | None] = asyncio.Queue(maxsize=self.queue_size)
        repaired = 0

        async def worker() -> None:
            nonlocal repaired
            while (job := await queue.get()) is not None:
                if await self._check(job):
                    repaired += 1

        async def feed() -> None:
            for job in jobs:
                await queue.put(job)
            for _ in range(workers):
                await queue.put(None)

        try:
            async with asyncio.TaskGroup() as tg:
                tg.create_task(feed())
                for _ in range(workers):
                    tg.create_task(worker())
        except ExceptionGroup as eg:
            # First failure aborts the cycle, the rest were cancelled with it
            raise eg.exceptions[0] from None

        return repaired

    async def _check(self, job: Job) -> bool:
        try:
            await self.monitor.get_status(job.job_id)
            return False
        except WorkloadNotFoundError:
            pass

        # The job may have finished between the scan and the lookup
        current = await self.store.get_job(job.job_id)
        if current.job_status is not JobStatus.RUNNING or current.is_deleted:
            return False

        try:
            await self.store.update_status(
                job.job_id,
                JobStatus.ERROR,
                STRAGGLER_MESSAGE,
                expected_status=JobStatus.RUNNING,
                mark_deleted=True,
            )
        except ConsistencyConflict:
            logger.info("Straggler changed during repair", job_id=job.job_id)
            return False

        logger.warning("Repaired straggler job", job_id=job.job_id)
        return True

    async def run_forever(self) -> None:
        # Spread the first cycle of several replicas
        await asyncio.sleep(random.uniform(0, self.interval))
        while True:
            logger.info("Starting straggler cycle")
            try:
                repaired = await self.run_cycle()
            except Exception:
                logger.exception("Straggler cycle failed")
            else:
                logger.info("Finished straggler cycle", repaired=repaired)
            await asyncio.sleep(self.interval)

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run_forever(), name="straggler-reconciler")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
