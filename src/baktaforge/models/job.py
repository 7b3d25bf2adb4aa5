"""Job model for annotation job tracking."""

from datetime import datetime, timedelta, timezone
from enum import Enum

from sqlalchemy import Boolean, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from baktaforge.core.logging import get_logger
from baktaforge.db import Base

logger = get_logger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobStatus(str, Enum):
    """Domain status of an annotation job."""
    INIT = "INIT"
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    SUCCEEDED = "SUCCEEDED"
    ERROR = "ERROR"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.SUCCEEDED, JobStatus.ERROR)

    @property
    def rank(self) -> int:
        """Position in the lifecycle; status only ever moves to a higher rank."""
        return _STATUS_RANK[self]

    @classmethod
    def parse(cls, value: "str | JobStatus") -> "JobStatus":
        """
        Parse a stored status string.

        Fail-closed: anything unknown is reported as ERROR so a job never looks
        healthier than the store can prove.
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            logger.warning("Unknown job status, treating as ERROR", status=value)
            return cls.ERROR


_STATUS_RANK = {
    JobStatus.INIT: 0,
    JobStatus.PENDING: 1,
    JobStatus.RUNNING: 2,
    JobStatus.SUCCEEDED: 3,
    JobStatus.ERROR: 3,
}


class RepliconTableType(str, Enum):
    """Format of the optional replicon table upload."""
    CSV = "csv"
    TSV = "tsv"


class Job(Base):
    """Annotation job record."""

    __tablename__ = "jobs"

    job_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    secret_hash: Mapped[str] = mapped_column(String(64))
    name: Mapped[str] = mapped_column(String(255), default="")

    # Orchestrator state
    workload_id: Mapped[str | None] = mapped_column(String(64), index=True)
    status: Mapped[str] = mapped_column(String(20), default=JobStatus.INIT.value, index=True)
    error_message: Mapped[str | None] = mapped_column(Text)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False)

    # Storage references
    data_bucket: Mapped[str] = mapped_column(String(255))
    fasta_key: Mapped[str] = mapped_column(String(500))
    training_key: Mapped[str] = mapped_column(String(500))
    replicon_key: Mapped[str] = mapped_column(String(500))
    replicon_table_type: Mapped[str] = mapped_column(
        String(10), default=RepliconTableType.TSV.value
    )
    result_key: Mapped[str] = mapped_column(String(500))

    # Resolved annotate spec, recorded at submission
    config_string: Mapped[str | None] = mapped_column(Text)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )
    expiry_date: Mapped[datetime] = mapped_column(DateTime(timezone=True))

    @property
    def job_status(self) -> JobStatus:
        return JobStatus.parse(self.status)

    @staticmethod
    def expiry_from(created_at: datetime, retention_days: int) -> datetime:
        return created_at + timedelta(days=retention_days)

    def __repr__(self) -> str:
        return f"<Job {self.job_id} {self.status}>"


# Result artifacts produced by one annotation run: (name, file suffix).
# Uploaded by the workload as result.<suffix> and handed out as download links.
RESULT_ARTIFACTS: tuple[tuple[str, str], ...] = (
    ("TSV", "tsv"),
    ("GFF3", "gff3"),
    ("GBFF", "gbff"),
    ("FNA", "fna"),
    ("FAA", "faa"),
    ("JSON", "json"),
    ("EMBL", "embl"),
    ("TSVHypothetical", "hypotheticals.tsv"),
    ("FAAHypothetical", "hypotheticals.faa"),
)
