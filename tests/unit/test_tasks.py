"""
Unit Tests for background status resolution

Covers:
1. Resolution to terminal states removes the workload
2. Deduplication per job
3. Poll budget and start-up noise
4. close/drain
"""

import asyncio

import pytest

from baktaforge.config import JobSettings, MonitorSettings, OrchestratorSettings
from baktaforge.core.exceptions import OrchestratorError
from baktaforge.models import JobStatus
from baktaforge.orchestration.monitor import StatusMonitor
from baktaforge.orchestration.scheduler import Scheduler
from baktaforge.orchestration.spec_builder import JobSpecBuilder
from baktaforge.orchestration.tasks import QueueClosedError, StatusUpdateQueue

pytestmark = pytest.mark.unit

NAME = "bakta-job-job1"


@pytest.fixture
def monitor_settings():
    return MonitorSettings(
        settle_delay_seconds=0,
        poll_interval_seconds=0,
        max_polls=3,
        status_workers=2,
    )


@pytest.fixture
def queue(store, orchestrator, monitor_settings):
    monitor = StatusMonitor(orchestrator, monitor_settings)
    scheduler = Scheduler(
        orchestrator, store, JobSpecBuilder(JobSettings()), OrchestratorSettings()
    )
    return StatusUpdateQueue(store, monitor, scheduler, monitor_settings)


async def _running(job_factory, orchestrator, **counts):
    await job_factory("job1", JobStatus.RUNNING, workload_id="uid-1")
    await orchestrator.create_workload({"metadata": {"name": NAME}})
    orchestrator.set_counts(NAME, **counts)


class TestResolve:
    """Tests for StatusUpdateQueue.resolve"""

    async def test_success_removes_workload(self, queue, store, orchestrator, job_factory):
        await _running(job_factory, orchestrator, succeeded=1)

        assert await queue.resolve("job1") is JobStatus.SUCCEEDED

        job = await store.get_job("job1")
        assert job.job_status is JobStatus.SUCCEEDED
        assert job.is_deleted is True
        assert orchestrator.deleted == [NAME]

    async def test_failure_recorded(self, queue, store, orchestrator, job_factory):
        await _running(job_factory, orchestrator, failed=1)

        assert await queue.resolve("job1") is JobStatus.ERROR

        job = await store.get_job("job1")
        assert job.job_status is JobStatus.ERROR
        assert job.is_deleted is True

    async def test_still_running_exhausts_budget(self, queue, store, orchestrator, job_factory):
        await _running(job_factory, orchestrator, active=1)

        assert await queue.resolve("job1") is None

        reads = [c for c in orchestrator.calls if c[0] == "read"]
        assert len(reads) == 3
        assert (await store.get_job("job1")).job_status is JobStatus.RUNNING

    async def test_init_report_does_not_regress(self, queue, store, orchestrator, job_factory):
        """Test: A pod that has not started yet leaves the job RUNNING"""
        await _running(job_factory, orchestrator)

        assert await queue.resolve("job1") is None

        job = await store.get_job("job1")
        assert job.job_status is JobStatus.RUNNING
        assert job.is_deleted is False

    async def test_deleted_job_not_deleted_again(self, queue, store, orchestrator, job_factory):
        """Test: A job flagged deleted gets no further workload deletion"""
        await job_factory("job1", JobStatus.RUNNING, workload_id="uid-1", is_deleted=True)
        await orchestrator.create_workload({"metadata": {"name": NAME}})
        orchestrator.set_counts(NAME, succeeded=1)

        assert await queue.resolve("job1") is JobStatus.SUCCEEDED

        assert [c for c in orchestrator.calls if c[0] == "delete"] == []
        assert (await store.get_job("job1")).is_deleted is True

    async def test_init_report_keeps_pod_message_in_log(
        self, queue, orchestrator, job_factory, monkeypatch
    ):
        logged = []

        class RecordingLogger:
            def __getattr__(self, level):
                return lambda event, **kw: logged.append((level, event, kw))

        monkeypatch.setattr("baktaforge.orchestration.tasks.logger", RecordingLogger())
        await _running(job_factory, orchestrator)
        orchestrator.pod_messages[NAME] = "Unschedulable: 0/3 nodes available"

        assert await queue.resolve("job1") is None

        assert any(
            level == "info" and kw.get("pod_message") == "Unschedulable: 0/3 nodes available"
            for level, _, kw in logged
        )

    async def test_already_finished_job(self, queue, store, orchestrator, job_factory):
        await job_factory("job1", JobStatus.ERROR)
        await orchestrator.create_workload({"metadata": {"name": NAME}})
        orchestrator.set_counts(NAME, succeeded=1)

        assert await queue.resolve("job1") is None
        assert (await store.get_job("job1")).job_status is JobStatus.ERROR

    async def test_missing_workload(self, queue, store, job_factory):
        await job_factory("job1", JobStatus.RUNNING)

        assert await queue.resolve("job1") is None
        assert (await store.get_job("job1")).job_status is JobStatus.RUNNING


class TestSubmit:
    """Tests for submit, close and drain"""

    async def test_runs_in_background(self, queue, store, orchestrator, job_factory):
        await _running(job_factory, orchestrator, succeeded=1)

        assert queue.submit("job1") is True
        await queue.drain()

        assert (await store.get_job("job1")).job_status is JobStatus.SUCCEEDED
        assert queue.pending == 0

    async def test_deduplicates_per_job(self, queue, orchestrator, job_factory):
        await _running(job_factory, orchestrator, active=1)

        assert queue.submit("job1") is True
        assert queue.submit("job1") is False
        assert queue.pending == 1
        await queue.drain()

    async def test_errors_are_logged_not_raised(self, queue, orchestrator, job_factory):
        await _running(job_factory, orchestrator, active=1)
        orchestrator.errors["read"] = OrchestratorError("unavailable", "read")

        queue.submit("job1")
        await queue.drain()

        assert queue.pending == 0

    async def test_closed_queue_rejects(self, queue):
        queue.close()
        with pytest.raises(QueueClosedError):
            queue.submit("job1")

    async def test_drain_cancels_after_timeout(self, store, orchestrator, job_factory):
        slow = MonitorSettings(
            settle_delay_seconds=0,
            poll_interval_seconds=60,
            max_polls=5,
        )
        monitor = StatusMonitor(orchestrator, slow)
        scheduler = Scheduler(
            orchestrator, store, JobSpecBuilder(JobSettings()), OrchestratorSettings()
        )
        queue = StatusUpdateQueue(store, monitor, scheduler, slow)
        await _running(job_factory, orchestrator, active=1)

        queue.submit("job1")
        await asyncio.sleep(0.05)
        queue.close()
        await queue.drain(timeout=0.05)

        assert queue.pending == 0

    async def test_concurrency_bounded(self, store, job_factory, monitor_settings):
        active = 0
        peak = 0

        class SlowMonitor:
            async def get_status(self, job_id):
                nonlocal active, peak
                active += 1
                peak = max(peak, active)
                await asyncio.sleep(0.01)
                active -= 1
                raise OrchestratorError("stop", "read")

        queue = StatusUpdateQueue(store, SlowMonitor(), None, monitor_settings)
        for i in range(6):
            queue.submit(f"job{i}")
        await queue.drain()

        assert peak == 2
