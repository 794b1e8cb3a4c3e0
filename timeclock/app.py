"""
Application factory.

Builds the FastAPI app whose lifespan owns the shared HTTP client, the
attendance service, the burst-reset timer and the daily sweep scheduler.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from timeclock.api.routes import router
from timeclock.config import TimeclockSettings, get_settings
from timeclock.http_client import open_app_client
from timeclock.scheduler import DailyScheduler
from timeclock.services.attendance import create_attendance_service
from timeclock.services.time_utils import get_timezone

logger = logging.getLogger(__name__)


def create_app(settings: Optional[TimeclockSettings] = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info(f"Starting {settings.app_name}...")

        async with open_app_client(app, settings) as http_client:
            service = create_attendance_service(settings, http_client)
            app.state.attendance_service = service
            service.fetcher.limiter.start()

            scheduler: Optional[DailyScheduler] = None
            if settings.auto_checkout_enabled:
                scheduler = DailyScheduler(
                    service.run_missed_checkout_sweep,
                    hour=settings.auto_checkout_hour,
                    minute=settings.auto_checkout_minute,
                    tz=get_timezone(settings.timezone),
                    name="missed-checkout-sweep",
                )
                scheduler.start()
            else:
                logger.info("Automatic missed checkout disabled")

            yield

            logger.info(f"Shutting down {settings.app_name}...")
            if scheduler is not None:
                await scheduler.stop()
            await service.shutdown()
            logger.info("Cleanup complete")

    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.state.settings = settings
    app.include_router(router)

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception) -> JSONResponse:
        logger.error(f"Unhandled error on {request.url.path}: {exc}")
        return JSONResponse(status_code=500, content={"success": False, "error": "Internal server error"})

    return app
