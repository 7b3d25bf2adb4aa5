"""Job routes."""

from fastapi import APIRouter, Depends, status

from baktaforge.api.deps import JobServiceDep, require_api_token
from baktaforge.core.logging import get_logger
from baktaforge.schemas import (
    AckResponse,
    InitJobRequest,
    InitJobResponse,
    JobAuth,
    JobListRequest,
    JobListResponse,
    JobResultResponse,
    StartJobRequest,
    UpdateStatusRequest,
    VersionResponse,
)

router = APIRouter(tags=["jobs"], dependencies=[Depends(require_api_token)])
logger = get_logger(__name__)


@router.post("/job/init", response_model=InitJobResponse)
async def init_job(data: InitJobRequest, service: JobServiceDep):
    """Create a job and return its secret together with the upload links."""
    return await service.init_job(data.name, data.replicon_table_type)


@router.post("/job/start", response_model=AckResponse)
async def start_job(data: StartJobRequest, service: JobServiceDep):
    """Submit the annotation workload for an initialised job."""
    job = await service.start_job(data.job, data.config)
    logger.info("Job started", job_id=job.job_id, workload_id=job.workload_id)
    return AckResponse(status="started")


@router.post("/job/list", response_model=JobListResponse)
async def list_jobs(data: JobListRequest, service: JobServiceDep):
    return await service.jobs_status(data.jobs)


@router.post("/job/result", response_model=JobResultResponse)
async def job_result(data: JobAuth, service: JobServiceDep):
    """Download links for all result files of a job."""
    return await service.job_result(data)


@router.post("/job/delete", response_model=AckResponse)
async def delete_job(data: JobAuth, service: JobServiceDep):
    await service.delete_job(data)
    return AckResponse(status="deleted")


@router.post(
    "/job/update",
    response_model=AckResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def update_status(data: UpdateStatusRequest, service: JobServiceDep):
    """
    Status push from a workload or client.

    Acknowledged immediately; the new status is resolved in the background.
    """
    queued = await service.push_status(data.job_id)
    return AckResponse(status="accepted" if queued else "ignored")


@router.get("/version", response_model=VersionResponse)
async def version(service: JobServiceDep):
    return service.version()
