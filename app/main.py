import logging
from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.auth import router as auth_router
from app.api.health import router as health_router
from app.api.security import router as security_router
from app.api.users import router as users_router
from app.core.config import settings
from app.core.errors import HTTPError, http_error_handler
from app.core.logging import setup_logging
from app.core.middleware import RequestContextMiddleware, SecurityHeadersMiddleware
from app.db.session import Database
from app.services.scheduler import SchedulerService

logger = logging.getLogger(__name__)


def create_app(database: Database | None = None, start_scheduler: bool | None = None) -> FastAPI:
    """
    Build the application.

    ``database`` lets tests hand in their own handle; otherwise one is built
    from settings at startup. The maintenance scheduler follows
    ``SCHEDULER_ENABLED`` unless ``start_scheduler`` says otherwise.
    """
    if start_scheduler is None:
        start_scheduler = settings.SCHEDULER_ENABLED

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage application startup and shutdown."""
        setup_logging()

        owns_database = app.state.database is None
        if owns_database:
            app.state.database = Database.from_settings(settings)
        logger.info("Database handle ready")

        scheduler = None
        if start_scheduler:
            scheduler = SchedulerService(app.state.database, settings)
            scheduler.start()
        app.state.scheduler = scheduler

        yield

        if scheduler is not None:
            scheduler.stop()
        if owns_database:
            await app.state.database.dispose()
            app.state.database = None
        logger.info("Shutdown complete")

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
        redirect_slashes=False,
    )
    app.state.database = database
    app.state.scheduler = None

    # Register custom exception handler for standardized error responses
    app.add_exception_handler(HTTPError, http_error_handler)

    # Starlette runs the last added middleware first
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After"],
    )
    app.add_middleware(RequestContextMiddleware)

    api_router = APIRouter(prefix="/api")
    api_router.include_router(auth_router)
    api_router.include_router(users_router)
    api_router.include_router(security_router)
    api_router.include_router(health_router)
    app.include_router(api_router)

    return app


app = create_app()
