"""Pydantic schemas for API request/response models."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from baktaforge.models import JobStatus, RepliconTableType


# ─────────────────────────────────────────────────────────────────────────────
# Job configuration
# ─────────────────────────────────────────────────────────────────────────────

class DermType(str, Enum):
    """Cell envelope type passed to the annotator as ``--gram``."""
    UNKNOWN = "UNKNOWN"
    MONODERM = "MONODERM"
    DIDERM = "DIDERM"


class JobConfig(BaseModel):
    """User-supplied annotation settings."""
    has_training_file: bool = False
    has_replicons: bool = False
    translation_table: int = 11
    complete_genome: bool = False
    compliant: bool = False
    keep_contig_headers: bool = False
    min_contig_length: int = Field(default=0, ge=0)
    derm_type: DermType = DermType.UNKNOWN

    genus: str | None = Field(None, max_length=255)
    species: str | None = Field(None, max_length=255)
    strain: str | None = Field(None, max_length=255)
    plasmid: str | None = Field(None, max_length=255)
    locus: str | None = Field(None, max_length=255)
    locus_tag: str | None = Field(None, max_length=255)


# ─────────────────────────────────────────────────────────────────────────────
# Requests
# ─────────────────────────────────────────────────────────────────────────────

class JobAuth(BaseModel):
    """JobID plus the capability secret handed out by InitJob."""
    job_id: str
    secret: str


class InitJobRequest(BaseModel):
    name: str = Field("", max_length=255)
    replicon_table_type: RepliconTableType = RepliconTableType.TSV


class StartJobRequest(BaseModel):
    job: JobAuth
    config: JobConfig = Field(default_factory=JobConfig)


class JobListRequest(BaseModel):
    jobs: list[JobAuth]


class UpdateStatusRequest(BaseModel):
    """Status push from a workload or a client."""
    job_id: str


# ─────────────────────────────────────────────────────────────────────────────
# Responses
# ─────────────────────────────────────────────────────────────────────────────

class InitJobResponse(BaseModel):
    job: JobAuth
    upload_link_fasta: str
    upload_link_training: str
    upload_link_replicons: str


class FailedJobStatus(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    UNAUTHORIZED = "UNAUTHORIZED"


class JobStatusResponse(BaseModel):
    job_id: str
    job_status: JobStatus
    started: datetime
    updated: datetime
    name: str
    error_message: str | None = None


class FailedJob(BaseModel):
    job_id: str
    job_status: FailedJobStatus


class JobListResponse(BaseModel):
    jobs: list[JobStatusResponse] = Field(default_factory=list)
    failed_jobs: list[FailedJob] = Field(default_factory=list)


class JobResultResponse(BaseModel):
    job_id: str
    name: str
    started: datetime
    updated: datetime
    result_files: dict[str, str]


class VersionResponse(BaseModel):
    tool_version: str
    db_version: str
    backend_version: str


class AckResponse(BaseModel):
    status: str = "accepted"
