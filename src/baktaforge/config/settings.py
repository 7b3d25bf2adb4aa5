"""
BaktaForge Configuration Settings.

Validated configuration using pydantic-settings. One ``Settings`` instance is
built at start-up and handed to every component that needs it.
"""

from typing import Annotated, Literal

from pydantic import BeforeValidator, ConfigDict, Field
from pydantic_settings import BaseSettings, NoDecode


def parse_cors_origins(v):
    """Parse CORS origins from comma-separated string or list."""
    if isinstance(v, str):
        return [origin.strip() for origin in v.split(",") if origin.strip()]
    return v


CorsOriginsList = Annotated[list[str], NoDecode, BeforeValidator(parse_cors_origins)]


class DatabaseSettings(BaseSettings):
    """Job store database configuration."""

    url: str = Field(
        default="sqlite+aiosqlite:///./baktaforge.db",
        description="Database URL (async)",
    )
    echo: bool = Field(default=False, description="Echo SQL queries")

    model_config = ConfigDict(env_prefix="DB_")


class S3Settings(BaseSettings):
    """S3 object storage configuration."""

    endpoint: str = Field(default="https://s3.computational.bio.uni-giessen.de")
    region: str = Field(default="RegionOne")
    access_key: str = Field(default="")
    secret_key: str = Field(default="")

    user_bucket: str = Field(default="bakta-userdata")
    base_key: str = Field(default="bakta")

    # Link lifetimes
    upload_link_days: int = Field(default=11, ge=1, le=30)
    download_link_seconds: int = Field(default=7 * 24 * 3600, ge=60)

    model_config = ConfigDict(env_prefix="S3_")


class OrchestratorSettings(BaseSettings):
    """Kubernetes workload configuration."""

    namespace: str = Field(default="bakta")
    in_cluster: bool = Field(default=False)
    kubeconfig: str | None = Field(default=None, description="Path to kubeconfig")

    job_image: str = Field(default="harbor.computational.bio.uni-giessen.de/bakta/bakta-web-job:latest")
    job_name_prefix: str = Field(default="bakta-job-")

    # Fixed resource shape
    cpu_request: str = Field(default="4")
    cpu_limit: str = Field(default="4")
    memory_request: str = Field(default="4000Mi")
    memory_limit: str = Field(default="4000Mi")

    backoff_limit: int = Field(default=1, ge=0, le=10)
    ttl_seconds_after_finished: int = Field(default=100, ge=0)

    database_pvc_name: str = Field(default="bakta-database")
    s3_secret_name: str = Field(default="s3")

    # Callback the workload uses to report back
    update_service_name: str = Field(default="bakta-web-backend-update")
    update_service_port: int = Field(default=8081)

    request_timeout_seconds: float = Field(default=10.0, gt=0, le=60)

    model_config = ConfigDict(env_prefix="ORCHESTRATOR_")


class JobSettings(BaseSettings):
    """Annotation job settings used when building stage specs."""

    threads: int = Field(default=12, ge=1, le=64)
    retention_days: int = Field(default=10, ge=1)
    mock_database: bool = Field(default=False, description="Use the mock reference database")

    staging_dir: str = Field(default="/data")
    cache_dir: str = Field(default="/cache")
    output_dir: str = Field(default="/output")
    storage_endpoint: str = Field(default="s3.computational.bio.uni-giessen.de")

    model_config = ConfigDict(env_prefix="JOB_")


class MonitorSettings(BaseSettings):
    """Status polling and straggler reconciliation."""

    settle_delay_seconds: float = Field(default=2.0, ge=0)
    poll_interval_seconds: float = Field(default=10.0, ge=0)
    max_polls: int = Field(default=30, ge=1)
    status_workers: int = Field(default=20, ge=1)

    straggler_enabled: bool = Field(default=True)
    straggler_interval_seconds: float = Field(default=15 * 60, gt=0)
    straggler_workers: int = Field(default=100, ge=1)
    straggler_queue_size: int = Field(default=500, ge=1)

    model_config = ConfigDict(env_prefix="MONITOR_")


class SecuritySettings(BaseSettings):
    """API access configuration."""

    api_token: str | None = Field(default=None, description="Shared API token")

    cors_origins: CorsOriginsList = Field(
        default=["http://localhost:3000", "http://localhost:5173"]
    )
    cors_allow_credentials: bool = False

    model_config = ConfigDict(env_prefix="SECURITY_")


class Settings(BaseSettings):
    """Main application settings."""

    # Environment
    env: Literal["development", "testing", "staging", "production"] = Field(
        default="development"
    )
    debug: bool = Field(default=True)

    # App info
    app_name: str = Field(default="BaktaForge")
    app_version: str = Field(default="1.0.0")
    api_prefix: str = Field(default="/api/v1")

    # Reported by the version endpoint
    tool_version: str = Field(default="1.9.4")
    db_version: str = Field(default="5.1")
    backend_version: str = Field(default="", validation_alias="GITHUB_SHA")

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)

    # Subsettings
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    s3: S3Settings = Field(default_factory=S3Settings)
    orchestrator: OrchestratorSettings = Field(default_factory=OrchestratorSettings)
    job: JobSettings = Field(default_factory=JobSettings)
    monitor: MonitorSettings = Field(default_factory=MonitorSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)

    def is_production(self) -> bool:
        return self.env == "production"

    def is_development(self) -> bool:
        return self.env == "development"

    def setup(self) -> None:
        """Setup environment."""
        if self.is_production():
            self.debug = False

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


# Global instance
settings = Settings()
settings.setup()


def get_settings() -> Settings:
    """Get settings instance (for dependency injection)."""
    return settings
