"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from geargrab.api.middleware import (
    AdminAuthenticationMiddleware,
    ErrorHandlingMiddleware,
    RequestContextMiddleware,
    RequestLoggingMiddleware,
)
from geargrab.api.routers import health_router, v1_router
from geargrab.config.settings import Settings, get_settings
from geargrab.config.validation import get_configuration_summary, validate_or_raise
from geargrab.core.logging import get_logger, setup_logging
from geargrab.db.config import close_db, create_engine, create_session_factory, init_db
from geargrab.screening.services import ScreeningServices, create_screening_services

logger = get_logger("geargrab.api")


def create_app(
    settings: Settings | None = None,
    services: ScreeningServices | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Optional settings override (useful for testing)
        services: Prebuilt screening components. When given, no database
            engine is created and the components are used as they are.

    Returns:
        Configured FastAPI application

    Example:
        # Production
        app = create_app()

        # Testing
        app = create_app(settings=test_settings, services=in_memory_services)

        # Run with uvicorn
        uvicorn geargrab.api.app:create_app --factory
    """
    if settings is None:
        settings = get_settings()

    app = FastAPI(
        title="GearGrab Screening API",
        description="Tasker registration and identity screening",
        version="0.1.0",
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
        openapi_url="/openapi.json" if settings.DEBUG else None,
        lifespan=_lifespan,
    )

    # Store settings on app state for access in dependencies
    app.state.settings = settings
    app.state.services = services
    app.state.engine = None

    _configure_middleware(app, settings)
    _configure_routers(app)

    return app


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Startup validates configuration, connects the database, builds the
    screening components and resumes workflows interrupted by the last
    shutdown. Shutdown cancels running workflows and closes connections.
    """
    settings: Settings = app.state.settings
    setup_logging(log_level=settings.log_level, json_format=settings.is_production)
    logger.info("starting_geargrab_api", **get_configuration_summary(settings))

    validate_or_raise(settings)

    engine = None
    if app.state.services is None:
        engine = create_engine(settings)
        await init_db(engine, create_tables=settings.DATABASE_AUTO_CREATE)
        logger.info("database_initialized")
        app.state.engine = engine
        app.state.services = create_screening_services(
            settings, session_factory=create_session_factory(engine)
        )

    services: ScreeningServices = app.state.services
    logger.info(
        "providers_registered",
        providers=services.registry.names(),
        default=services.registry.default_name,
    )
    await services.admin.resume_incomplete()

    yield

    logger.info("shutting_down_geargrab_api")
    await services.aclose()
    if engine is not None:
        await close_db(engine)
        logger.info("database_connections_closed")


def _configure_middleware(app: FastAPI, settings: Settings) -> None:
    """Configure middleware stack.

    Execution order, outermost first:
    1. RequestContextMiddleware: request ID, bound for every later log line
    2. RequestLoggingMiddleware: one access log entry per request
    3. ErrorHandlingMiddleware: domain exceptions to APIError
    4. AdminAuthenticationMiddleware: admin key on /v1/admin

    Starlette runs the last-added middleware first.
    """
    app.add_middleware(AdminAuthenticationMiddleware)
    app.add_middleware(ErrorHandlingMiddleware, debug=settings.DEBUG)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestContextMiddleware)


def _configure_routers(app: FastAPI) -> None:
    """Configure API routers."""
    # /health and /health/ready at the root
    app.include_router(health_router)

    # /v1/registrations and /v1/admin/screenings
    app.include_router(v1_router)
