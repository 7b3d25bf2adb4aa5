"""FastAPI dependencies."""

from typing import Annotated

from fastapi import Depends, Header, Request

from baktaforge.config import Settings
from baktaforge.core.security import verify_api_token
from baktaforge.services import JobService


# ─────────────────────────────────────────────────────────────────────────────
# Application state
# ─────────────────────────────────────────────────────────────────────────────

def get_app_settings(request: Request) -> Settings:
    """Settings the running app was created with."""
    return request.app.state.settings


def get_job_service(request: Request) -> JobService:
    return request.app.state.components.job_service


SettingsDep = Annotated[Settings, Depends(get_app_settings)]
JobServiceDep = Annotated[JobService, Depends(get_job_service)]


# ─────────────────────────────────────────────────────────────────────────────
# Authentication
# ─────────────────────────────────────────────────────────────────────────────

async def require_api_token(
    settings: SettingsDep,
    authorization: Annotated[str | None, Header()] = None,
) -> None:
    """Reject requests without the shared API token. Raises 401."""
    verify_api_token(authorization, settings.security.api_token)
