"""Core module - exceptions, security, logging, telemetry."""

from .exceptions import (
    BaktaForgeException,
    NotFoundError,
    WorkloadNotFoundError,
    ValidationError,
    ConfigError,
    AuthenticationError,
    AuthorizationError,
    JobAlreadyStartedError,
    ConsistencyConflict,
    OrchestratorError,
    StorageError,
    install_exception_handlers,
)
from .security import (
    generate_secret,
    hash_secret,
    secret_matches,
    verify_api_token,
)
from .logging import (
    setup_logging,
    get_logger,
    bind_context,
    clear_context,
)

__all__ = [
    # Exceptions
    "BaktaForgeException",
    "NotFoundError",
    "WorkloadNotFoundError",
    "ValidationError",
    "ConfigError",
    "AuthenticationError",
    "AuthorizationError",
    "JobAlreadyStartedError",
    "ConsistencyConflict",
    "OrchestratorError",
    "StorageError",
    "install_exception_handlers",
    # Security
    "generate_secret",
    "hash_secret",
    "secret_matches",
    "verify_api_token",
    # Logging
    "setup_logging",
    "get_logger",
    "bind_context",
    "clear_context",
]
