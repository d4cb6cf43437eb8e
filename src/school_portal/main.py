"""FastAPI application factory and main entry point."""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from school_portal import __version__
from school_portal.api.errors import register_exception_handlers
from school_portal.api.v1 import api_router
from school_portal.core.config import Settings, get_settings
from school_portal.core.logging import configure_logging
from school_portal.infrastructure.database import (
    create_async_db_engine,
    create_session_factory,
)
from school_portal.repositories import InMemoryWorkflowStore, SqlDirectory, SqlWorkflowStore
from school_portal.services.audit import AuditAction
from school_portal.services.directory import InMemoryDirectory
from school_portal.services.workflow import WorkflowServices, build_workflow_services

logger = logging.getLogger(__name__)


def build_memory_services(settings: Settings) -> WorkflowServices:
    """Workflow services over in-process storage."""
    directory = (
        InMemoryDirectory.from_file(settings.directory_seed_file)
        if settings.directory_seed_file
        else InMemoryDirectory()
    )
    return build_workflow_services(settings, InMemoryWorkflowStore(), directory)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan context manager for startup/shutdown events."""
    # Startup
    settings: Settings = app.state.settings
    configure_logging(settings)

    db_engine = None
    if getattr(app.state, "workflows", None) is None:
        if settings.workflow_store_backend == "database":
            db_engine = create_async_db_engine(settings)
            session_factory = create_session_factory(db_engine)
            app.state.workflows = build_workflow_services(
                settings,
                SqlWorkflowStore(session_factory),
                SqlDirectory(session_factory),
            )
        else:
            app.state.workflows = build_memory_services(settings)

    services: WorkflowServices = app.state.workflows
    services.audit_logger.log_system(
        AuditAction.SYSTEM_STARTUP,
        f"{settings.app_name} {__version__} started with "
        f"{settings.workflow_store_backend} storage",
    )
    logger.info(
        f"Started {settings.app_name} ({settings.environment})",
        extra={"backend": settings.workflow_store_backend},
    )

    yield

    # Shutdown
    services.audit_logger.log_system(
        AuditAction.SYSTEM_SHUTDOWN, f"{settings.app_name} shutting down"
    )
    if db_engine is not None:
        await db_engine.dispose()
    logger.info(f"Stopped {settings.app_name}")


def create_app(
    settings: Settings | None = None,
    services: WorkflowServices | None = None,
) -> FastAPI:
    """Create and configure FastAPI application.

    Args:
        settings: Settings to use instead of the environment
        services: Prebuilt workflow services; built at startup when omitted
    """
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=__version__,
        description="School portal approval workflows API",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.workflows = services

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)
    register_routes(app, settings)

    return app


def register_routes(app: FastAPI, settings: Settings) -> None:
    """Register all application routes."""
    app.include_router(api_router, prefix=settings.api_v1_prefix)

    @app.get("/health", tags=["System"])
    async def health_check():
        """Health check endpoint for load balancers and monitoring."""
        return {
            "status": "healthy",
            "version": __version__,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @app.get(f"{settings.api_v1_prefix}/", tags=["API"])
    async def api_root():
        """API root endpoint with application info."""
        return {
            "name": settings.app_name,
            "version": __version__,
            "environment": settings.environment,
            "storage": settings.workflow_store_backend,
            "docs_url": "/docs" if settings.debug else "Disabled in production",
        }


# Create application instance
app = create_app()
