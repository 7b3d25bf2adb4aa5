"""Configuration."""

from .settings import (
    Settings,
    DatabaseSettings,
    S3Settings,
    OrchestratorSettings,
    JobSettings,
    MonitorSettings,
    SecuritySettings,
    settings,
    get_settings,
)

__all__ = [
    "Settings",
    "DatabaseSettings",
    "S3Settings",
    "OrchestratorSettings",
    "JobSettings",
    "MonitorSettings",
    "SecuritySettings",
    "settings",
    "get_settings",
]
