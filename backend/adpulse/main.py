"""FastAPI application entrypoint.

Builds the application context, owns the per-platform sync schedulers, renders
errors as `{"error": message}`, and mounts the auth, workspace, OAuth, metrics
and insights routers plus a healthcheck.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .context import AppContext, build_context
from .deps import Settings, get_settings
from .errors import AppError
from .routers import auth as auth_router
from .routers import insights as insights_router
from .routers import metrics as metrics_router
from .routers import oauth as oauth_router
from .routers import workspaces as workspaces_router
from .services.platform_registry import registered_platforms
from .services.sync_scheduler import SyncScheduler
from .telemetry import init_sentry

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

SHUTDOWN_GRACE_SECONDS = 60.0


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.error(f"[API] {request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ()))
        message = f"{location}: {first.get('msg', 'Invalid request')}" if location else "Invalid request"
        return JSONResponse(status_code=422, content={"error": message})


def create_app(settings: Optional[Settings] = None, context: Optional[AppContext] = None) -> FastAPI:
    """Create the API application.

    Args:
        settings: overrides `get_settings()` (tests).
        context: prebuilt context (tests); otherwise built in the lifespan.
    """
    settings = settings or (context.settings if context else get_settings())
    init_sentry(settings.SENTRY_DSN, settings.ENVIRONMENT)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owns_context = context is None
        app_context = context or build_context(settings)
        app.state.context = app_context

        schedulers = []
        if settings.SYNC_SCHEDULER_ENABLED:
            schedulers = [SyncScheduler(platform, app_context) for platform in registered_platforms()]
            for scheduler in schedulers:
                scheduler.start()
        app.state.schedulers = schedulers

        yield

        for scheduler in schedulers:
            scheduler.stop()
        # A cycle in a worker thread finishes its current integration first.
        for scheduler in schedulers:
            if not await asyncio.to_thread(scheduler.wait_until_idle, SHUTDOWN_GRACE_SECONDS):
                logger.warning(f"[SCHEDULER] {scheduler.platform.value} sync still running at shutdown")
        if owns_context:
            app_context.close()

    app = FastAPI(
        title="adpulse API",
        description="Ad performance ingestion, metrics and insights for Google Ads and Meta.",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Routes need the context before the lifespan runs when a prebuilt one is given.
    if context is not None:
        app.state.context = context

    logger.info(f"[CORS] Allowed origins: {settings.cors_origins}")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_exception_handlers(app)

    app.include_router(auth_router.router)
    app.include_router(workspaces_router.router)
    app.include_router(oauth_router.router)
    app.include_router(metrics_router.router)
    app.include_router(insights_router.router)

    @app.get("/health", tags=["Health"], summary="Health check")
    def health():
        return {"status": "ok"}

    return app


app = create_app()
