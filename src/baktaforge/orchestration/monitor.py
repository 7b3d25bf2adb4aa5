"""Translation of live workload state into job status."""

import asyncio
from dataclasses import dataclass

from baktaforge.config import MonitorSettings
from baktaforge.core.exceptions import BaktaForgeException
from baktaforge.core.logging import get_logger
from baktaforge.models import JobStatus
from baktaforge.orchestration.orchestrator import WorkloadCounts
from baktaforge.orchestration.scheduler import workload_name

logger = get_logger(__name__)


@dataclass(frozen=True)
class StatusReport:
    status: JobStatus
    error_message: str = ""


def map_counts(counts: WorkloadCounts) -> JobStatus:
    """
    Map pod counts to a status, first match wins.

    Any active pod means RUNNING, then success, then failure. A workload with
    no pods in any state is still INIT.
    """
    if counts.active >= 1:
        return JobStatus.RUNNING
    if counts.succeeded >= 1:
        return JobStatus.SUCCEEDED
    if counts.failed >= 1:
        return JobStatus.ERROR
    return JobStatus.INIT


class StatusMonitor:
    """Reads one job's workload and reports its domain status."""

    def __init__(self, orchestrator, settings: MonitorSettings, name_prefix: str = "bakta-job-"):
        self.orchestrator = orchestrator
        self.settle_delay = settings.settle_delay_seconds
        self.name_prefix = name_prefix

    async def get_status(self, job_id: str) -> StatusReport:
        """
        Raises:
            WorkloadNotFoundError: No workload exists for the job
            OrchestratorError: Workload could not be read
        """
        name = workload_name(job_id, self.name_prefix)

        # Give the orchestrator time to register recent pod changes
        await asyncio.sleep(self.settle_delay)

        counts = await self.orchestrator.get_workload_counts(name)
        status = map_counts(counts)
        if status is not JobStatus.INIT:
            return StatusReport(status)

        return StatusReport(status, await self._pod_message(name))

    async def _pod_message(self, name: str) -> str:
        try:
            return await self.orchestrator.latest_pod_message(name)
        except BaktaForgeException as e:
            logger.info("No pod message for workload", workload=name, reason=e.message)
            return ""
