"""Services: job persistence, object storage and client-facing job operations."""

from .job_store import JobStore
from .jobs import JobService
from .s3_async import AsyncS3Service

__all__ = [
    "JobStore",
    "JobService",
    "AsyncS3Service",
]
