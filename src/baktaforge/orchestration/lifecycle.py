"""
Job lifecycle rules.

Status only moves forward: INIT, then PENDING or RUNNING, then one of the
terminal states SUCCEEDED or ERROR. Terminal jobs never change again and the
deleted flag never goes back to false.
"""

from baktaforge.core.exceptions import AuthorizationError, ConsistencyConflict
from baktaforge.core.security import secret_matches
from baktaforge.models import Job, JobStatus


def check_transition(current: JobStatus, new: JobStatus, job_id: str = "") -> None:
    """
    Raises:
        ConsistencyConflict: The move is not allowed from ``current``
    """
    if current.is_terminal:
        raise ConsistencyConflict(job_id, f"Job is already {current.value}")
    if new.rank < current.rank:
        raise ConsistencyConflict(job_id, f"Cannot move job from {current.value} to {new.value}")


def transition(job: Job, new_status: JobStatus, message: str | None = None) -> bool:
    """
    Apply a status move to an in-memory job.

    Returns False when the job already has ``new_status`` and nothing changed.

    Raises:
        ConsistencyConflict: The move is not allowed
    """
    current = job.job_status
    if current is new_status and not current.is_terminal:
        return False
    check_transition(current, new_status, job.job_id)

    job.status = new_status.value
    if new_status is JobStatus.ERROR:
        job.error_message = message or ""
    elif message:
        job.error_message = message
    return True


def authorize(job: Job, secret: str) -> None:
    """
    Check the capability secret presented for a job.

    Raises:
        AuthorizationError: Secret does not belong to the job
    """
    if not secret_matches(secret, job.secret_hash):
        raise AuthorizationError(job.job_id)
