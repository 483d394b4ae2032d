"""
FastAPI application entry point.

This module creates and configures the FastAPI application.
Using an application factory pattern (create_app function) because:
- Easier to test with different configurations
- Explicit about initialization order
- Storage sets are discovered exactly once per app instance

For local development:
    uvicorn bucketsets.main:app --reload

For production:
    gunicorn bucketsets.main:app -w 4 -k uvicorn.workers.UvicornWorker
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .api.routes import files, health, prune
from .config.settings import Settings, get_settings
from .infrastructure.storage.registry import BackendRegistry

# Configure logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    The registry is already built by the factory; start-up only reports
    what was discovered so misconfigured sets are visible in the logs.
    """
    registry: BackendRegistry = app.state.registry

    logger.info(
        "bucketsets API starting",
        extra={
            "version": __version__,
            "mock_mode": app.state.settings.storage_mock_mode,
            "sets": registry.summary(),
        }
    )

    if registry.ready_count == 0:
        logger.error(
            "No usable storage set configured",
            extra={"sets": [backend.id for backend in registry]}
        )

    yield

    # Shutdown
    logger.info("bucketsets API shutting down")


def build_registry(settings: Settings) -> BackendRegistry:
    """Discover storage sets from the environment and create their clients."""
    return BackendRegistry.from_environ(
        settings.backend_environ(),
        defaults=settings.resolver_defaults,
        prefixes=settings.backend_prefixes_list,
        mock_mode=settings.storage_mock_mode,
        page_size=settings.list_page_size,
    )


def create_app(
    settings: Optional[Settings] = None,
    registry: Optional[BackendRegistry] = None,
) -> FastAPI:
    """
    Application factory.

    Args:
        settings: Defaults to the cached environment settings.
        registry: Defaults to sets discovered from the environment.
            Tests pass a registry of in-memory stores.
    """
    settings = settings or get_settings()
    registry = registry if registry is not None else build_registry(settings)

    logging.getLogger().setLevel(settings.log_level.upper())

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="""
        List and prune objects across any number of S3-compatible buckets.

        ## Sets

        Each set is a bucket discovered from environment variables such as
        `R2_BUCKET`, `R2_ENDPOINT`, `R2_ACCESS_KEY_ID`, `R2_SECRET_ACCESS_KEY`
        (add `_2`, `_3`, ... for more sets).

        ## Endpoints

        - `GET /files`: every object, newest first, errors listed first
        - `GET /files/{set_id}`: objects of one set
        - `GET /prune?ttl=&dry=`: delete images older than `ttl` seconds
        - `GET /prune/{set_id}?ttl=&dry=`: same, for one set
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.registry = registry

    # CORS_ORIGINS wins; otherwise allow what the sets' FRONTEND_ORIGIN values allow
    origins = settings.cors_origins_list or registry.frontend_origins() or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=origins != ["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(
        health.router,
        prefix="/health",
        tags=["Health"],
    )

    app.include_router(files.router, tags=["Files"])
    app.include_router(prune.router, tags=["Prune"])

    # Root endpoint
    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "message": settings.api_title,
            "version": __version__,
            "sets": [backend.id for backend in registry],
            "docs": "/docs",
            "health": "/health",
        }

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Render HTTP errors as {ok: false, error: ...}."""
        if isinstance(exc.detail, dict):
            content = {"ok": False, **exc.detail}
        else:
            content = {"ok": False, "error": exc.detail}
        return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """
        Catch-all exception handler.

        A single bad request must not take the service down: log the full
        error server-side and answer 500 with the error's message.
        """
        logger.error(
            "Unhandled exception",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error": str(exc),
            },
            exc_info=exc,
        )

        return JSONResponse(
            status_code=500,
            content={"ok": False, "error": str(exc)},
        )

    logger.info(
        "FastAPI application created",
        extra={
            "title": settings.api_title,
            "sets": len(registry),
        }
    )

    return app


# Create the application instance
# This is what uvicorn/gunicorn will import
app = create_app()


# For debugging/development
if __name__ == "__main__":
    import uvicorn

    # Get settings to determine log level
    settings = get_settings()

    uvicorn.run(
        "bucketsets.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=settings.log_level.lower(),
    )
