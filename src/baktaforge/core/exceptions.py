"""BaktaForge custom exceptions and error handlers."""

import logging
import traceback
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger("baktaforge")


# ─────────────────────────────────────────────────────────────────────────────
# Custom Exceptions
# ─────────────────────────────────────────────────────────────────────────────

class BaktaForgeException(Exception):
    """Base exception for BaktaForge."""

    def __init__(
        self,
        message: str,
        code: str = "BAKTAFORGE_ERROR",
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class NotFoundError(BaktaForgeException):
    """Resource not found."""

    def __init__(self, resource: str, identifier: Any):
        super().__init__(
            message=f"{resource} not found: {identifier}",
            code="NOT_FOUND",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "identifier": str(identifier)},
        )


class WorkloadNotFoundError(NotFoundError):
    """The orchestrator has no workload with the given name."""

    def __init__(self, name: str):
        super().__init__("Workload", name)


class ValidationError(BaktaForgeException):
    """Validation error."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(
            message=message,
            code="VALIDATION_ERROR",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details={"field": field} if field else {},
        )


class ConfigError(ValidationError):
    """Job configuration cannot be turned into a stage spec."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message, field)
        self.code = "CONFIG_ERROR"


class AuthenticationError(BaktaForgeException):
    """Missing or invalid API token."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(
            message=message,
            code="AUTHENTICATION_ERROR",
            status_code=status.HTTP_401_UNAUTHORIZED,
        )


class AuthorizationError(BaktaForgeException):
    """Job secret does not match."""

    def __init__(self, job_id: str | None = None):
        super().__init__(
            message="JobID does not match secret",
            code="UNAUTHORIZED",
            status_code=status.HTTP_403_FORBIDDEN,
            details={"job_id": job_id} if job_id else {},
        )


class JobAlreadyStartedError(BaktaForgeException):
    """A workload was already submitted for this job."""

    def __init__(self, job_id: str):
        super().__init__(
            message=f"Job already started: {job_id}",
            code="JOB_ALREADY_STARTED",
            status_code=status.HTTP_409_CONFLICT,
            details={"job_id": job_id},
        )


class ConsistencyConflict(BaktaForgeException):
    """The stored job moved on before a write could be applied."""

    def __init__(self, job_id: str, message: str):
        super().__init__(
            message=message,
            code="CONSISTENCY_CONFLICT",
            status_code=status.HTTP_409_CONFLICT,
            details={"job_id": job_id},
        )


class OrchestratorError(BaktaForgeException):
    """Workload API call failed."""

    def __init__(self, message: str, operation: str | None = None):
        super().__init__(
            message=message,
            code="ORCHESTRATOR_ERROR",
            status_code=status.HTTP_502_BAD_GATEWAY,
            details={"operation": operation} if operation else {},
        )


class StorageError(BaktaForgeException):
    """Storage operation error."""

    def __init__(self, message: str, path: str | None = None):
        super().__init__(
            message=message,
            code="STORAGE_ERROR",
            status_code=status.HTTP_502_BAD_GATEWAY,
            details={"path": path} if path else {},
        )


# Details of these stay in the logs
_INTERNAL_ERRORS = (OrchestratorError, StorageError)


# ─────────────────────────────────────────────────────────────────────────────
# Exception Handlers
# ─────────────────────────────────────────────────────────────────────────────

def install_exception_handlers(app: FastAPI, include_trace: bool = False) -> None:
    """Install exception handlers on FastAPI app."""

    @app.exception_handler(BaktaForgeException)
    async def baktaforge_exception_handler(request: Request, exc: BaktaForgeException):
        if isinstance(exc, _INTERNAL_ERRORS):
            logger.error("%s: %s %s", exc.code, exc.message, exc.details)
            return JSONResponse(
                status_code=exc.status_code,
                content={
                    "error": exc.code,
                    "message": "Upstream service failed, please retry later",
                    "details": {},
                },
            )
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": exc.code,
                "message": exc.message,
                "details": exc.details,
            },
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": "HTTP_ERROR",
                "message": str(exc.detail),
            },
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.warning("Validation error: %s", exc)
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "error": "VALIDATION_ERROR",
                "message": "Request validation failed",
                "details": jsonable_encoder(exc.errors()),
            },
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error: %s", exc)
        content = {
            "error": "INTERNAL_ERROR",
            "message": "An unexpected error occurred",
        }
        if include_trace:
            content["trace"] = traceback.format_exc()
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=content,
        )
