"""Database models."""

from .job import RESULT_ARTIFACTS, Job, JobStatus, RepliconTableType, utcnow

__all__ = [
    "Job",
    "JobStatus",
    "RepliconTableType",
    "RESULT_ARTIFACTS",
    "utcnow",
]
