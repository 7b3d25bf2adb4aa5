"""Persistence of job records."""

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from baktaforge.core.exceptions import (
    ConsistencyConflict,
    JobAlreadyStartedError,
    NotFoundError,
)
from baktaforge.core.logging import get_logger
from baktaforge.models import Job, JobStatus
from baktaforge.orchestration.lifecycle import check_transition

logger = get_logger(__name__)


class JobStore:
    """
    Job table access.

    Every mutation re-reads the row and writes with a conditional UPDATE on
    the status it saw, so a concurrent writer makes the second one fail with
    ``ConsistencyConflict`` instead of silently overwriting.
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self.session_maker = session_maker

    async def create_job(self, job: Job) -> Job:
        async with self.session_maker() as session:
            session.add(job)
            await session.commit()
            await session.refresh(job)

        logger.info("Created job", job_id=job.job_id, name=job.name)
        return job

    async def get_job(self, job_id: str) -> Job:
        """
        Raises:
            NotFoundError: Unknown job id
        """
        async with self.session_maker() as session:
            job = await session.get(Job, job_id)
        if job is None:
            raise NotFoundError("Job", job_id)
        return job

    async def get_jobs(self, job_ids: list[str]) -> dict[str, Job]:
        """Jobs for the given ids; unknown ids are absent from the result."""
        if not job_ids:
            return {}
        async with self.session_maker() as session:
            result = await session.execute(select(Job).where(Job.job_id.in_(job_ids)))
            return {job.job_id: job for job in result.scalars()}

    async def get_running_jobs(self) -> list[Job]:
        async with self.session_maker() as session:
            result = await session.execute(
                select(Job).where(Job.status == JobStatus.RUNNING.value)
            )
            return list(result.scalars())

    async def record_submission(
        self,
        job_id: str,
        workload_id: str,
        config_string: str,
    ) -> Job:
        """
        Store the workload of a freshly submitted job and mark it RUNNING.

        The workload id is written at most once.

        Raises:
            NotFoundError: Unknown job id
            JobAlreadyStartedError: A workload id is already recorded
        """
        async with self.session_maker() as session:
            result = await session.execute(
                update(Job)
                .where(
                    Job.job_id == job_id,
                    Job.workload_id.is_(None),
                    Job.status == JobStatus.INIT.value,
                )
                .values(
                    workload_id=workload_id,
                    config_string=config_string,
                    status=JobStatus.RUNNING.value,
                )
            )
            await session.commit()

        if result.rowcount == 0:
            # Distinguish a missing row from a lost race
            await self.get_job(job_id)
            raise JobAlreadyStartedError(job_id)

        logger.info("Recorded workload", job_id=job_id, workload_id=workload_id)
        return await self.get_job(job_id)

    async def update_status(
        self,
        job_id: str,
        new_status: JobStatus,
        error_message: str | None = None,
        expected_status: JobStatus | None = None,
        mark_deleted: bool = False,
    ) -> Job:
        """
        Move a job to ``new_status``.

        Args:
            expected_status: Only write if the job still has this status
            mark_deleted: Also set the deleted flag

        Raises:
            NotFoundError: Unknown job id
            ConsistencyConflict: The job is not in a state that allows the move
        """
        job = await self.get_job(job_id)
        current = job.job_status

        if expected_status is not None and current is not expected_status:
            raise ConsistencyConflict(
                job_id, f"Expected {expected_status.value}, found {current.value}"
            )
        if current is new_status and not current.is_terminal and not mark_deleted:
            return job
        check_transition(current, new_status, job_id)

        values: dict = {"status": new_status.value}
        if error_message is not None or new_status is JobStatus.ERROR:
            values["error_message"] = error_message or ""
        if mark_deleted:
            values["is_deleted"] = True

        async with self.session_maker() as session:
            result = await session.execute(
                update(Job)
                .where(Job.job_id == job_id, Job.status == job.status)
                .values(**values)
            )
            await session.commit()

        if result.rowcount == 0:
            raise ConsistencyConflict(job_id, "Job changed during status update")

        logger.info(
            "Job status updated",
            job_id=job_id,
            old_status=current.value,
            new_status=new_status.value,
        )
        return await self.get_job(job_id)

    async def mark_deleted(self, job_id: str) -> None:
        async with self.session_maker() as session:
            await session.execute(
                update(Job).where(Job.job_id == job_id).values(is_deleted=True)
            )
            await session.commit()
