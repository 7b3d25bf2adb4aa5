"""
Kubernetes batch API adapter.

Thin async wrapper around ``kubernetes_asyncio`` that exposes only the calls
the scheduler, monitor and reconciler need. Every request carries a fixed
timeout; a 404 surfaces as ``WorkloadNotFoundError``, everything else as
``OrchestratorError``.
"""

import asyncio
from dataclasses import dataclass
from typing import Any

from kubernetes_asyncio import client, config
from kubernetes_asyncio.client.exceptions import ApiException

from baktaforge.config import OrchestratorSettings
from baktaforge.core.exceptions import OrchestratorError, WorkloadNotFoundError
from baktaforge.core.logging import get_logger
from baktaforge.core.telemetry import traced

logger = get_logger(__name__)


@dataclass(frozen=True)
class WorkloadCounts:
    """Pod counts reported on a batch workload."""
    active: int = 0
    succeeded: int = 0
    failed: int = 0


class KubernetesOrchestrator:
    """Batch workload operations in one namespace."""

    def __init__(self, api_client: client.ApiClient, settings: OrchestratorSettings):
        self._api_client = api_client
        self._batch = client.BatchV1Api(api_client)
        self._core = client.CoreV1Api(api_client)
        self.namespace = settings.namespace
        self._timeout = settings.request_timeout_seconds

    @classmethod
    async def create(cls, settings: OrchestratorSettings) -> "KubernetesOrchestrator":
        """
        Load cluster credentials and build the adapter.

        Raises:
            OrchestratorError: No usable credentials
        """
        try:
            if settings.in_cluster:
                config.load_incluster_config()
            else:
                await config.load_kube_config(config_file=settings.kubeconfig)
        except (config.ConfigException, OSError) as e:
            raise OrchestratorError(f"Cannot load cluster credentials: {e}", "connect") from e

        logger.info(
            "Orchestrator configured",
            namespace=settings.namespace,
            in_cluster=settings.in_cluster,
        )
        return cls(client.ApiClient(), settings)

    async def close(self) -> None:
        await self._api_client.close()

    def _translate(self, e: Exception, operation: str, name: str) -> Exception:
        if isinstance(e, ApiException) and e.status == 404:
            return WorkloadNotFoundError(name)
        if isinstance(e, ApiException):
            message = f"{operation} {name} failed: {e.status} {e.reason}"
        elif isinstance(e, asyncio.TimeoutError):
            message = f"{operation} {name} timed out after {self._timeout}s"
        else:
            message = f"{operation} {name} failed: {e}"
        logger.warning("Orchestrator call failed", operation=operation, workload=name, error=message)
        return OrchestratorError(message, operation)

    @traced("orchestrator.create_workload")
    async def create_workload(self, descriptor: dict[str, Any]) -> str:
        """Submit a batch/v1 Job manifest and return its UID."""
        name = descriptor["metadata"]["name"]
        try:
            created = await self._batch.create_namespaced_job(
                self.namespace,
                descriptor,
                _request_timeout=self._timeout,
            )
        except (ApiException, asyncio.TimeoutError, OSError) as e:
            raise self._translate(e, "create", name) from e
        return created.metadata.uid

    @traced("orchestrator.get_workload_counts")
    async def get_workload_counts(self, name: str) -> WorkloadCounts:
        try:
            job = await self._batch.read_namespaced_job_status(
                name,
                self.namespace,
                _request_timeout=self._timeout,
            )
        except (ApiException, asyncio.TimeoutError, OSError) as e:
            raise self._translate(e, "read", name) from e

        status = job.status
        if status is None:
            return WorkloadCounts()
        return WorkloadCounts(
            active=status.active or 0,
            succeeded=status.succeeded or 0,
            failed=status.failed or 0,
        )

    @traced("orchestrator.delete_workload")
    async def delete_workload(self, name: str) -> None:
        """Delete a workload and, in the foreground, its pods."""
        try:
            await self._batch.delete_namespaced_job(
                name,
                self.namespace,
                propagation_policy="Foreground",
                _request_timeout=self._timeout,
            )
        except (ApiException, asyncio.TimeoutError, OSError) as e:
            raise self._translate(e, "delete", name) from e

    @traced("orchestrator.latest_pod_message")
    async def latest_pod_message(self, name: str) -> str:
        """
        Status message of the last pod created for a workload.

        Raises:
            WorkloadNotFoundError: The workload has no pods
        """
        try:
            pods = await self._core.list_namespaced_pod(
                self.namespace,
                label_selector=f"job-name={name}",
                _request_timeout=self._timeout,
            )
        except (ApiException, asyncio.TimeoutError, OSError) as e:
            raise self._translate(e, "list pods", name) from e

        if not pods.items:
            raise WorkloadNotFoundError(name)
        pod = pods.items[-1]
        return (pod.status.message if pod.status else None) or ""
