"""
Outbound HTTP client.

One httpx.AsyncClient carries every remote call the tracker makes: Ragic
reads and writes, reverse geocoding, the map webhook and LINE pushes. Its
timeout and pool size come from TimeclockSettings, and whoever opens it
closes it; collaborators receive it as a constructor argument.
"""

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncIterator

import httpx

from timeclock.config import TimeclockSettings

if TYPE_CHECKING:
    from fastapi import FastAPI

logger = logging.getLogger(__name__)


def build_http_client(settings: TimeclockSettings) -> httpx.AsyncClient:
    """Unopened client configured from settings. Use it as an async context manager."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(settings.http_timeout),
        limits=httpx.Limits(
            max_connections=settings.http_max_connections,
            max_keepalive_connections=settings.http_max_keepalive,
        ),
        headers={"User-Agent": f"{settings.app_name}/timeclock"},
        follow_redirects=True,
    )


@asynccontextmanager
async def open_app_client(app: "FastAPI", settings: TimeclockSettings) -> AsyncIterator[httpx.AsyncClient]:
    """
    Bind a client to the app for the lifespan.

    The client is published as app.state.http_client while open and removed
    again once it is closed.
    """
    async with build_http_client(settings) as client:
        app.state.http_client = client
        logger.info(
            f"HTTP client open (timeout={settings.http_timeout}s, "
            f"max_connections={settings.http_max_connections})"
        )
        try:
            yield client
        finally:
            del app.state.http_client
    logger.info("HTTP client closed")
