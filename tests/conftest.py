"""
Pytest configuration for BaktaForge tests.

Provides test settings, a file-backed SQLite job store and in-memory fakes for
the orchestrator and object storage, so no cluster or S3 endpoint is needed.
"""

import os

import pytest
from sqlalchemy import create_engine as create_sync_engine
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool

# Must be set before baktaforge builds its global settings
os.environ.setdefault("DB_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENV", "testing")

from baktaforge.config import MonitorSettings, SecuritySettings, Settings  # noqa: E402
from baktaforge.core.exceptions import OrchestratorError, WorkloadNotFoundError  # noqa: E402
from baktaforge.core.security import hash_secret  # noqa: E402
from baktaforge.db import Base, create_session_maker, init_db  # noqa: E402
from baktaforge.models import RESULT_ARTIFACTS, Job, JobStatus, utcnow  # noqa: E402
from baktaforge.orchestration.orchestrator import WorkloadCounts  # noqa: E402
from baktaforge.services import JobStore  # noqa: E402

API_TOKEN = "test-token"
SECRET = "job-secret"


# ─────────────────────────────────────────────────────────────────────────────
# Fakes
# ─────────────────────────────────────────────────────────────────────────────

class FakeOrchestrator:
    """In-memory stand-in for ``KubernetesOrchestrator``."""

    def __init__(self):
        self.workloads: dict[str, dict] = {}
        self.counts: dict[str, WorkloadCounts] = {}
        self.pod_messages: dict[str, str] = {}
        self.deleted: list[str] = []
        # operation name -> exception raised by that operation
        self.errors: dict[str, Exception] = {}
        self.calls: list[tuple[str, str]] = []
        self.closed = False

    def _maybe_fail(self, operation: str, name: str) -> None:
        self.calls.append((operation, name))
        if operation in self.errors:
            raise self.errors[operation]

    def set_counts(self, name: str, active: int = 0, succeeded: int = 0, failed: int = 0):
        self.counts[name] = WorkloadCounts(active, succeeded, failed)

    async def create_workload(self, descriptor: dict) -> str:
        name = descriptor["metadata"]["name"]
        self._maybe_fail("create", name)
        if name in self.workloads:
            raise OrchestratorError(f"create {name} failed: 409 Conflict", "create")
        self.workloads[name] = descriptor
        self.counts.setdefault(name, WorkloadCounts())
        return f"uid-{name}"

    async def get_workload_counts(self, name: str) -> WorkloadCounts:
        self._maybe_fail("read", name)
        if name not in self.workloads:
            raise WorkloadNotFoundError(name)
        return self.counts[name]

    async def delete_workload(self, name: str) -> None:
        self._maybe_fail("delete", name)
        if name not in self.workloads:
            raise WorkloadNotFoundError(name)
        del self.workloads[name]
        self.counts.pop(name, None)
        self.deleted.append(name)

    async def latest_pod_message(self, name: str) -> str:
        self._maybe_fail("list pods", name)
        if name not in self.pod_messages:
            raise WorkloadNotFoundError(name)
        return self.pod_messages[name]

    async def close(self) -> None:
        self.closed = True


class FakeStorage:
    """Presigned URLs without talking to S3."""

    async def upload_links(self, job: Job) -> tuple[str, str, str]:
        return tuple(
            f"https://s3.test/{job.data_bucket}/{key}?method=PUT"
            for key in (job.fasta_key, job.training_key, job.replicon_key)
        )

    async def download_links(self, job: Job) -> dict[str, str]:
        return {
            name: f"https://s3.test/{job.data_bucket}/{job.result_key}/result.{suffix}"
            for name, suffix in RESULT_ARTIFACTS
        }


# ─────────────────────────────────────────────────────────────────────────────
# Settings
# ─────────────────────────────────────────────────────────────────────────────

def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")


@pytest.fixture
def settings() -> Settings:
    """Settings with all delays removed and the reconciler loop disabled."""
    return Settings(
        env="testing",
        debug=False,
        monitor=MonitorSettings(
            settle_delay_seconds=0,
            poll_interval_seconds=0,
            max_polls=3,
            status_workers=2,
            straggler_enabled=False,
            straggler_workers=4,
            straggler_queue_size=2,
        ),
        security=SecuritySettings(api_token=API_TOKEN),
    )


# ─────────────────────────────────────────────────────────────────────────────
# Database
# ─────────────────────────────────────────────────────────────────────────────

def _database_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'jobs.db'}"


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(_database_url(tmp_path), poolclass=NullPool)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def store(engine) -> JobStore:
    return JobStore(create_session_maker(engine))


@pytest.fixture
def orchestrator() -> FakeOrchestrator:
    return FakeOrchestrator()


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


def make_job(job_id: str = "job1", status: JobStatus = JobStatus.INIT, **overrides) -> Job:
    """Unsaved job record with the key layout used by ``JobService.init_job``."""
    created_at = utcnow()
    fields = dict(
        job_id=job_id,
        secret_hash=hash_secret(SECRET),
        name=f"name-{job_id}",
        status=status.value,
        is_deleted=False,
        data_bucket="bakta-userdata",
        fasta_key=f"bakta/uploaddata/{job_id}/fastadata.fasta",
        training_key=f"bakta/uploaddata/{job_id}/prodigaltraining.tf",
        replicon_key=f"bakta/uploaddata/{job_id}/replicons.tsv",
        replicon_table_type="tsv",
        result_key=f"bakta/results/{job_id}",
        created_at=created_at,
        updated_at=created_at,
        expiry_date=Job.expiry_from(created_at, 10),
    )
    fields.update(overrides)
    return Job(**fields)


@pytest.fixture
def job_factory(store):
    """Persist a job and return it."""
    async def create(job_id: str = "job1", status: JobStatus = JobStatus.INIT, **overrides) -> Job:
        return await store.create_job(make_job(job_id, status, **overrides))
    return create


# ─────────────────────────────────────────────────────────────────────────────
# Application
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def components(settings, engine, orchestrator, storage):
    from baktaforge.api.app import build_components

    return build_components(
        settings,
        orchestrator,
        create_session_maker(engine),
        storage=storage,
    )


@pytest.fixture
def api_client(settings, tmp_path, orchestrator, storage):
    """
    TestClient over an app wired with the fakes.

    Tables are created with a synchronous engine so that the async engine is
    only ever used from the TestClient event loop.
    """
    from fastapi.testclient import TestClient

    from baktaforge.api.app import build_components, create_app

    sync_engine = create_sync_engine(f"sqlite:///{tmp_path / 'jobs.db'}")
    Base.metadata.create_all(sync_engine)
    sync_engine.dispose()

    async_engine = create_async_engine(_database_url(tmp_path), poolclass=NullPool)
    app = create_app(
        settings,
        build_components(settings, orchestrator, create_session_maker(async_engine), storage=storage),
    )
    with TestClient(app, headers={"Authorization": f"Bearer {API_TOKEN}"}) as client:
        yield client
