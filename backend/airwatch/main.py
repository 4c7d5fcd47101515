"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from airwatch.api.archive import router as archive_router
from airwatch.api.sensor import SENSOR_PATH, http_exception_handler
from airwatch.api.sensor import router as sensor_router
from airwatch.config import Settings, get_settings
from airwatch.services.archive import ArchiveMonitor, build_feed_url
from airwatch.services.telemetry import TelemetryStore

logger = logging.getLogger("airwatch.app")


class SelectiveCORSMiddleware(CORSMiddleware):
    """CORSMiddleware that leaves some paths to their own handlers.

    The device endpoint answers every preflight itself with 200 and an
    empty body, whatever headers the browser asks for.
    """

    def __init__(self, app, exempt_paths: tuple[str, ...] = (), **options):
        super().__init__(app, **options)
        self.exempt_paths = exempt_paths

    async def __call__(self, scope, receive, send):
        if scope["type"] == "http" and scope["path"].rstrip("/") in self.exempt_paths:
            await self.app(scope, receive, send)
            return
        await super().__call__(scope, receive, send)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    settings: Settings = app.state.settings
    monitor: ArchiveMonitor = app.state.archive_monitor
    # Startup: launch the archive poller
    if settings.ARCHIVE_POLL_ENABLED:
        monitor.start()
    yield
    # Shutdown: cancel the poller and close its HTTP client
    await monitor.stop()
    logger.info("Archive poller stopped")


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(level=logging.DEBUG if settings.DEBUG else logging.INFO)

    app = FastAPI(
        title=settings.APP_NAME,
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.telemetry_store = TelemetryStore(
        log_capacity=settings.LOG_CAPACITY,
        read_limit=settings.LOG_READ_LIMIT,
        stale_after=settings.STALE_AFTER_SECONDS,
        tz=settings.DISPLAY_TIMEZONE,
    )
    app.state.archive_monitor = ArchiveMonitor(
        build_feed_url(settings.SPREADSHEET_ID, settings.SHEET_NAME),
        interval=settings.ARCHIVE_POLL_SECONDS,
        timeout=settings.ARCHIVE_TIMEOUT_SECONDS,
        tz=settings.DISPLAY_TIMEZONE,
    )

    app.add_exception_handler(StarletteHTTPException, http_exception_handler)

    # CORS middleware (/api/sensor sets its own headers)
    app.add_middleware(
        SelectiveCORSMiddleware,
        exempt_paths=(SENSOR_PATH,),
        allow_origins=settings.CORS_ORIGINS,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    @app.get("/health")
    async def health_check():
        return {"status": "ok"}

    app.include_router(sensor_router, prefix="/api")
    app.include_router(archive_router, prefix="/api")
    return app


app = create_app()
