"""Client-facing job operations."""

import posixpath
import uuid

from baktaforge.config import Settings
from baktaforge.core.exceptions import AuthorizationError
from baktaforge.core.logging import get_logger
from baktaforge.core.security import generate_secret, hash_secret
from baktaforge.models import Job, JobStatus, RepliconTableType, utcnow
from baktaforge.orchestration.lifecycle import authorize
from baktaforge.schemas import (
    FailedJob,
    FailedJobStatus,
    InitJobResponse,
    JobAuth,
    JobConfig,
    JobListResponse,
    JobResultResponse,
    JobStatusResponse,
    VersionResponse,
)

logger = get_logger(__name__)

FASTA_FILENAME = "fastadata.fasta"
TRAINING_FILENAME = "prodigaltraining.tf"
REPLICON_FILENAMES = {
    RepliconTableType.TSV: "replicons.tsv",
    RepliconTableType.CSV: "replicons.csv",
}


def upload_key(base_key: str, job_id: str, filename: str) -> str:
    return posixpath.join(base_key, "uploaddata", job_id, filename)


def result_key(base_key: str, job_id: str) -> str:
    return posixpath.join(base_key, "results", job_id)


class JobService:
    """
    Job operations exposed to clients.

    Every operation on an existing job checks the job secret first. Unknown
    ids raise ``NotFoundError``, wrong secrets ``AuthorizationError``.
    """

    def __init__(self, store, scheduler, status_queue, storage, settings: Settings):
        self.store = store
        self.scheduler = scheduler
        self.status_queue = status_queue
        self.storage = storage
        self.settings = settings

    async def _authorized_job(self, auth: JobAuth) -> Job:
        job = await self.store.get_job(auth.job_id)
        authorize(job, auth.secret)
        return job

    async def init_job(
        self,
        name: str = "",
        replicon_table_type: RepliconTableType = RepliconTableType.TSV,
    ) -> InitJobResponse:
        """Create a job in INIT and return its secret with the upload links."""
        job_id = str(uuid.uuid4())
        secret = generate_secret()
        base_key = self.settings.s3.base_key
        created_at = utcnow()

        job = Job(
            job_id=job_id,
            secret_hash=hash_secret(secret),
            name=name,
            status=JobStatus.INIT.value,
            is_deleted=False,
            data_bucket=self.settings.s3.user_bucket,
            fasta_key=upload_key(base_key, job_id, FASTA_FILENAME),
            training_key=upload_key(base_key, job_id, TRAINING_FILENAME),
            replicon_key=upload_key(base_key, job_id, REPLICON_FILENAMES[replicon_table_type]),
            replicon_table_type=replicon_table_type.value,
            result_key=result_key(base_key, job_id),
            created_at=created_at,
            updated_at=created_at,
            expiry_date=Job.expiry_from(created_at, self.settings.job.retention_days),
        )
        job = await self.store.create_job(job)

        fasta_link, training_link, replicon_link = await self.storage.upload_links(job)
        return InitJobResponse(
            job=JobAuth(job_id=job_id, secret=secret),
            upload_link_fasta=fasta_link,
            upload_link_training=training_link,
            upload_link_replicons=replicon_link,
        )

    async def start_job(self, auth: JobAuth, config: JobConfig) -> Job:
        await self._authorized_job(auth)
        return await self.scheduler.start_job(auth.job_id, config)

    async def jobs_status(self, auths: list[JobAuth]) -> JobListResponse:
        """
        Status of several jobs at once.

        Lookup failures are reported per job in ``failed_jobs`` instead of
        failing the whole request.
        """
        found = await self.store.get_jobs([auth.job_id for auth in auths])
        response = JobListResponse()

        for auth in auths:
            job = found.get(auth.job_id)
            if job is None:
                response.failed_jobs.append(
                    FailedJob(job_id=auth.job_id, job_status=FailedJobStatus.NOT_FOUND)
                )
                continue
            try:
                authorize(job, auth.secret)
            except AuthorizationError:
                response.failed_jobs.append(
                    FailedJob(job_id=auth.job_id, job_status=FailedJobStatus.UNAUTHORIZED)
                )
                continue

            response.jobs.append(
                JobStatusResponse(
                    job_id=job.job_id,
                    job_status=job.job_status,
                    started=job.created_at,
                    updated=job.updated_at,
                    name=job.name,
                    error_message=job.error_message,
                )
            )

        return response

    async def job_result(self, auth: JobAuth) -> JobResultResponse:
        job = await self._authorized_job(auth)
        links = await self.storage.download_links(job)
        return JobResultResponse(
            job_id=job.job_id,
            name=job.name,
            started=job.created_at,
            updated=job.updated_at,
            result_files=links,
        )

    async def delete_job(self, auth: JobAuth) -> None:
        """Remove the workload of a job and flag the job as deleted."""
        job = await self._authorized_job(auth)
        if job.is_deleted:
            logger.debug("Job already deleted", job_id=auth.job_id)
            return
        await self.scheduler.delete_job(auth.job_id)
        await self.store.mark_deleted(auth.job_id)
        logger.info("Job deleted", job_id=auth.job_id)

    async def push_status(self, job_id: str) -> bool:
        """
        Queue a status resolution for a job.

        Returns False when nothing was queued: the job is already finished or
        a resolution for it is pending.

        Raises:
            NotFoundError: Unknown job id
        """
        job = await self.store.get_job(job_id)
        if job.is_deleted or job.job_status.is_terminal:
            logger.debug("Ignoring status push for finished job", job_id=job_id)
            return False
        return self.status_queue.submit(job_id)

    def version(self) -> VersionResponse:
        return VersionResponse(
            tool_version=self.settings.tool_version,
            db_version=self.settings.db_version,
            backend_version=self.settings.backend_version,
        )
