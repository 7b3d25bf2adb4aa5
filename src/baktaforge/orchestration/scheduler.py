"""Submission and removal of annotation workloads."""

from typing import Any

from baktaforge.config import OrchestratorSettings
from baktaforge.core.exceptions import (
    JobAlreadyStartedError,
    OrchestratorError,
    WorkloadNotFoundError,
)
from baktaforge.core.logging import get_logger
from baktaforge.models import Job, JobStatus
from baktaforge.orchestration.spec_builder import JobSpecBuilder
from baktaforge.schemas import JobConfig

logger = get_logger(__name__)

CONTAINER_NAME = "bakta-job"
DATABASE_MOUNT = "/db"
POST_START_COMMAND = ["/bin/bash", "-c", "/bin/DataStager update"]


def workload_name(job_id: str, prefix: str = "bakta-job-") -> str:
    return f"{prefix}{job_id}"


class Scheduler:
    """
    Turns stored jobs into orchestrator workloads.

    One workload per job: a job that already has a workload id, or has left
    INIT, is never submitted again.
    """

    def __init__(
        self,
        orchestrator,
        store,
        spec_builder: JobSpecBuilder,
        settings: OrchestratorSettings,
    ):
        self.orchestrator = orchestrator
        self.store = store
        self.spec_builder = spec_builder
        self.settings = settings

    def workload_name(self, job_id: str) -> str:
        return workload_name(job_id, self.settings.job_name_prefix)

    def build_workload(
        self,
        job: Job,
        download_spec: str,
        annotate_spec: str,
        upload_spec: str,
    ) -> dict[str, Any]:
        """Render the batch/v1 Job manifest for one annotation run."""
        s = self.settings
        secret_env = [
            ("AWS_ACCESS_KEY_ID", "AccessKey"),
            ("AWS_SECRET_ACCESS_KEY", "SecretKey"),
        ]

        env = [
            {"name": "DownloaderEnvConfig", "value": download_spec},
            {"name": "BaktaEnvConfig", "value": annotate_spec},
            {"name": "UploaderEnvConfig", "value": upload_spec},
            {"name": "JobID", "value": job.job_id},
            {"name": "GRPCUpdaterEndpoint", "value": s.update_service_name},
            {"name": "GRPCUpdaterPort", "value": str(s.update_service_port)},
        ]
        env += [
            {
                "name": name,
                "valueFrom": {"secretKeyRef": {"name": s.s3_secret_name, "key": key}},
            }
            for name, key in secret_env
        ]

        container = {
            "name": CONTAINER_NAME,
            "image": s.job_image,
            "env": env,
            "resources": {
                "requests": {"cpu": s.cpu_request, "memory": s.memory_request},
                "limits": {"cpu": s.cpu_limit, "memory": s.memory_limit},
            },
            "lifecycle": {"postStart": {"exec": {"command": POST_START_COMMAND}}},
            "volumeMounts": [
                {"name": "database", "mountPath": DATABASE_MOUNT, "readOnly": True},
                {"name": "cache-volume", "mountPath": self.spec_builder.cache_dir},
            ],
        }

        return {
            "apiVersion": "batch/v1",
            "kind": "Job",
            "metadata": {
                "name": self.workload_name(job.job_id),
                "namespace": s.namespace,
                "labels": {"jobid": job.job_id},
            },
            "spec": {
                "backoffLimit": s.backoff_limit,
                "ttlSecondsAfterFinished": s.ttl_seconds_after_finished,
                "template": {
                    "metadata": {"labels": {"jobid": job.job_id}},
                    "spec": {
                        "restartPolicy": "Never",
                        "containers": [container],
                        "volumes": [
                            {"name": "cache-volume", "emptyDir": {}},
                            {
                                "name": "database",
                                "persistentVolumeClaim": {
                                    "claimName": s.database_pvc_name,
                                    "readOnly": True,
                                },
                            },
                        ],
                    },
                },
            },
        }

    async def start_job(self, job_id: str, config: JobConfig) -> Job:
        """
        Submit the workload for a job.

        A workload whose submission cannot be recorded is deleted again.

        Raises:
            NotFoundError: Unknown job id
            JobAlreadyStartedError: The job was submitted before
            ConfigError: Configuration cannot be rendered into a stage spec
            OrchestratorError: Submission failed; the job keeps no workload id
        """
        job = await self.store.get_job(job_id)
        if job.workload_id or job.job_status is not JobStatus.INIT:
            raise JobAlreadyStartedError(job_id)

        download_spec = self.spec_builder.build_download_spec(
            job, config.has_training_file, config.has_replicons
        )
        annotate_spec = self.spec_builder.build_annotate_spec(job, config)
        upload_spec = self.spec_builder.build_upload_spec(job)

        descriptor = self.build_workload(job, download_spec, annotate_spec, upload_spec)
        workload_id = await self.orchestrator.create_workload(descriptor)
        logger.info(
            "Workload submitted",
            job_id=job_id,
            workload=descriptor["metadata"]["name"],
            workload_id=workload_id,
        )

        try:
            return await self.store.record_submission(job_id, workload_id, annotate_spec)
        except Exception:
            # No workload may outlive a failed submission record
            logger.warning("Recording submission failed, removing workload", job_id=job_id)
            try:
                await self.delete_job(job_id)
            except OrchestratorError as e:
                logger.error("Workload cleanup failed", job_id=job_id, error=e.message)
            raise

    async def delete_job(self, job_id: str) -> None:
        """
        Remove the workload of a job. An absent workload counts as deleted.

        Raises:
            OrchestratorError: Deletion failed
        """
        name = self.workload_name(job_id)
        try:
            await self.orchestrator.delete_workload(name)
        except WorkloadNotFoundError:
            logger.debug("Workload already gone", job_id=job_id, workload=name)
            return
        logger.info("Workload deleted", job_id=job_id, workload=name)
