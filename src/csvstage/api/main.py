"""FastAPI application factory."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from csvstage import __version__
from csvstage.api import routers
from csvstage.bootstrap import build_mongo_service
from csvstage.core.config import Settings, get_settings
from csvstage.core.errors import StagingError
from csvstage.core.logging import get_logger
from csvstage.staging.service import StagingService

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan handler.

    Builds the MongoDB-backed service unless one was injected, and releases
    the worker pool and client on shutdown.
    """
    settings: Settings = app.state.settings
    client = None

    if app.state.service is None:
        app.state.service, client = build_mongo_service(settings)
        logger.info(
            "service_started",
            data_dir=str(settings.data_dir),
            database=settings.mongo_database,
        )

    yield

    app.state.service.close()
    if client is not None:
        await client.close()
        app.state.service = None


async def staging_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Map staging failures to their HTTP status."""
    assert isinstance(exc, StagingError)
    if exc.status_code >= 500:
        logger.error("request_failed", path=request.url.path, error=exc.message, exc_info=exc)
    else:
        logger.warning("request_rejected", path=request.url.path, error=exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


def create_app(
    settings: Settings | None = None,
    service: StagingService | None = None,
    title: str = "csvstage API",
    cors_origins: list[str] | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Application settings (default: from environment)
        service: Prebuilt service; when None the lifespan connects to MongoDB
        title: API title
        cors_origins: Allowed CORS origins (default: allow all)

    Returns:
        Configured FastAPI application
    """
    settings = settings or get_settings()

    app = FastAPI(
        title=title,
        version=__version__,
        description="Stage, validate and import CSV rows into document collections",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(StagingError, staging_error_handler)

    app.include_router(routers.staging.router, prefix="/api/v1", tags=["staging"])
    app.include_router(routers.collections.router, prefix="/api/v1", tags=["collections"])

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy"}

    return app
