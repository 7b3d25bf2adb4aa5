"""FastAPI application factory."""

import os
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import ORJSONResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from baktaforge.config import Settings, settings as default_settings
from baktaforge.core.exceptions import install_exception_handlers
from baktaforge.core.logging import bind_context, clear_context, get_logger, setup_logging
from baktaforge.orchestration.monitor import StatusMonitor
from baktaforge.orchestration.reconciler import StragglerReconciler
from baktaforge.orchestration.scheduler import Scheduler
from baktaforge.orchestration.spec_builder import JobSpecBuilder
from baktaforge.orchestration.tasks import StatusUpdateQueue
from baktaforge.services import AsyncS3Service, JobService, JobStore


# Initialize logging early
setup_logging(
    level="DEBUG" if default_settings.debug else "INFO",
    json_format=default_settings.is_production(),
)

logger = get_logger(__name__)

# Seconds in-flight status resolutions get to finish on shutdown
DRAIN_TIMEOUT = 30.0


@dataclass
class Components:
    """Long-lived service objects of one running app."""
    orchestrator: object
    store: JobStore
    scheduler: Scheduler
    monitor: StatusMonitor
    status_queue: StatusUpdateQueue
    reconciler: StragglerReconciler
    job_service: JobService


def build_components(
    settings: Settings,
    orchestrator,
    session_maker: async_sessionmaker[AsyncSession],
    storage=None,
) -> Components:
    """Wire the orchestration engine from one settings snapshot."""
    store = JobStore(session_maker)
    spec_builder = JobSpecBuilder(settings.job)
    scheduler = Scheduler(orchestrator, store, spec_builder, settings.orchestrator)
    monitor = StatusMonitor(
        orchestrator, settings.monitor, settings.orchestrator.job_name_prefix
    )
    status_queue = StatusUpdateQueue(store, monitor, scheduler, settings.monitor)
    reconciler = StragglerReconciler(store, monitor, settings.monitor)
    job_service = JobService(
        store,
        scheduler,
        status_queue,
        storage or AsyncS3Service(settings.s3),
        settings,
    )
    return Components(
        orchestrator=orchestrator,
        store=store,
        scheduler=scheduler,
        monitor=monitor,
        status_queue=status_queue,
        reconciler=reconciler,
        job_service=job_service,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown."""
    settings: Settings = app.state.settings
    logger.info(
        "Starting BaktaForge",
        version=settings.app_version,
        env=settings.env,
    )

    # Components injected by the caller are owned by the caller
    owned = app.state.components is None
    if owned:
        from baktaforge.db import async_session_maker, close_db, engine, init_db
        from baktaforge.orchestration.orchestrator import KubernetesOrchestrator

        await init_db()
        orchestrator = await KubernetesOrchestrator.create(settings.orchestrator)
        app.state.components = build_components(settings, orchestrator, async_session_maker)

        if settings.is_production():
            otlp_endpoint = os.getenv("OTLP_ENDPOINT")
            if otlp_endpoint:
                from baktaforge.core.telemetry import setup_telemetry

                setup_telemetry(settings, otlp_endpoint, app=app, engine=engine)

    components: Components = app.state.components
    if settings.monitor.straggler_enabled:
        components.reconciler.start()

    logger.info("BaktaForge started successfully")

    yield

    # Shutdown
    logger.info("Shutting down BaktaForge")
    await components.reconciler.stop()
    components.status_queue.close()
    await components.status_queue.drain(timeout=DRAIN_TIMEOUT)
    if owned:
        await components.orchestrator.close()
        await close_db()
        app.state.components = None
    logger.info("BaktaForge shutdown complete")


def create_app(
    app_settings: Settings | None = None,
    components: Components | None = None,
) -> FastAPI:
    """Create and configure FastAPI application."""
    settings = app_settings or default_settings

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Bakta annotation job service",
        default_response_class=ORJSONResponse,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.components = components

    # Exception handlers
    install_exception_handlers(app, include_trace=settings.debug)

    # Middleware (order matters - last added is first executed)
    app.add_middleware(GZipMiddleware, minimum_size=1000)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.security.cors_origins,
        allow_credentials=settings.security.cors_allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Request context middleware for structured logging
    @app.middleware("http")
    async def add_request_context(request, call_next):
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4())[:8])

        bind_context(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            clear_context()

    # Include routers
    from baktaforge.api.routes import health_router, jobs_router

    app.include_router(health_router)
    app.include_router(jobs_router, prefix=settings.api_prefix)

    return app


# Application instance
app = create_app()
