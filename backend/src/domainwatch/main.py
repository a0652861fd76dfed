"""
FastAPI application entry point.

This is the main application that ties together all components:
- API routes for domains, payments, notifications and WHOIS
- Repository and database lifecycle management
- Scheduled reconciliation sweep and reminder dispatch
- CORS configuration for frontend access
- Error handling and logging
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from domainwatch import __version__
from domainwatch.api.routes import domains, health, jobs, notifications, payments, whois
from domainwatch.config import Settings, get_settings
from domainwatch.container import ServiceContainer, build_container
from domainwatch.domain.errors import (
    ConflictError,
    DomainWatchError,
    InternalError,
    NotFoundError,
    RejectedError,
    TransientError,
)
from domainwatch.infrastructure.database import (
    SqlAlchemyRepository,
    close_db,
    get_session_factory,
    init_db,
)
from domainwatch.infrastructure.repository import InMemoryRepository

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
)
logger = logging.getLogger(__name__)


ERROR_STATUS = {
    NotFoundError: 404,
    ConflictError: 409,
    RejectedError: 422,
    TransientError: 503,
    InternalError: 500,
}


def error_status(exc: DomainWatchError) -> int:
    for error_class, status_code in ERROR_STATUS.items():
        if isinstance(exc, error_class):
            return status_code
    return 500


async def _build_default_container(settings: Settings) -> ServiceContainer:
    """Container for a real deployment: database-backed unless disabled."""
    if not settings.use_database:
        logger.info("Using in-memory repository")
        return build_container(settings, repository=InMemoryRepository())

    try:
        await init_db()
        logger.info("Database initialized")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise

    return build_container(settings, repository=SqlAlchemyRepository(get_session_factory()))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown tasks:
    - Initialize database tables and wire services
    - Start the periodic jobs
    - Drain the jobs and close the database on shutdown
    """
    settings = get_settings()

    logger.info(f"Starting DomainWatch v{__version__}")
    logger.info(f"Debug mode: {settings.debug}")

    if getattr(app.state, "container", None) is None:
        app.state.container = await _build_default_container(settings)
    container: ServiceContainer = app.state.container

    if container.settings.enable_scheduler:
        container.scheduler.start_all()

    yield  # Application runs here

    # Shutdown
    logger.info("Shutting down DomainWatch")
    await container.scheduler.stop_all()
    await close_db()


def create_app(container: ServiceContainer | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        container: Pre-built services (tests). Built at startup if None.

    Returns:
        Configured FastAPI instance ready to serve requests.
    """
    settings = container.settings if container else get_settings()

    app = FastAPI(
        title="DomainWatch API",
        description=(
            "Domain registration tracking.\n\n"
            "Watches expiry dates, reconciles lifecycle status, sends "
            "expiry reminders and applies renewal payments."
        ),
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )
    app.state.container = container

    # CORS configuration
    # In production, replace with specific allowed origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.debug else ["https://domainwatch.io"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register routers
    app.include_router(health.router)
    app.include_router(domains.router, prefix="/api/v1")
    app.include_router(payments.router, prefix="/api/v1")
    app.include_router(notifications.router, prefix="/api/v1")
    app.include_router(whois.router, prefix="/api/v1")

    # Job triggers (only in debug mode)
    if settings.debug:
        app.include_router(jobs.router, prefix="/api/v1")

    @app.exception_handler(DomainWatchError)
    async def domain_error_handler(request: Request, exc: DomainWatchError):
        """Map application errors onto HTTP status codes."""
        status_code = error_status(exc)
        if status_code >= 500:
            logger.error(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
        return JSONResponse(
            status_code=status_code,
            content={
                "error": type(exc).__name__,
                "detail": exc.message,
                "code": exc.code,
            },
        )

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Catch-all exception handler for unhandled errors."""
        logger.exception(f"Unhandled error: {exc}")

        # Don't expose internal errors in production
        if settings.debug:
            detail = str(exc)
        else:
            detail = "An internal error occurred"

        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal Server Error",
                "detail": detail,
            },
        )

    return app


# Create the application instance
app = create_app()


# Development server entry point
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "domainwatch.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
