"""FastAPI application for the crawlshot REST API.

Provides endpoints for enqueueing crawls, job status, progress ingestion,
health monitoring and static screenshot artifacts.

Example:
    uvicorn crawlshot.api.app:app --host 0.0.0.0 --port 3006
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Request, Security, status
from fastapi.security import APIKeyHeader
from fastapi.staticfiles import StaticFiles

from crawlshot import __version__
from crawlshot.api.routes.crawl import router as crawl_router
from crawlshot.api.routes.health import router as health_router
from crawlshot.core.config import Settings
from crawlshot.core.logger import configure_logging
from crawlshot.services.queue import QueueManager
from crawlshot.services.storage import SCREENSHOTS_ROUTE

logger = logging.getLogger(__name__)

# API key authentication
API_KEY_HEADER = APIKeyHeader(name="X-API-Key", auto_error=False)


async def verify_api_key(
    request: Request, api_key: str | None = Security(API_KEY_HEADER)
) -> str:
    """Verify API key from request header.

    Args:
        request: Incoming request (used to read the configured key)
        api_key: API key from X-API-Key header

    Returns:
        Validated API key

    Raises:
        HTTPException: 401 if API key is missing or invalid
    """
    expected_key = request.app.state.settings.api_key

    # Allow unauthenticated access if no API key is configured
    if not expected_key:
        return ""

    if not api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing API key",
            headers={"WWW-Authenticate": "ApiKey"},
        )

    if api_key != expected_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
            headers={"WWW-Authenticate": "ApiKey"},
        )

    return api_key


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifecycle events.

    Startup configures logging and opens the Redis queue unless one was
    injected; shutdown closes the queue the app opened itself.

    Args:
        app: FastAPI application instance

    Yields:
        None during application runtime
    """
    settings: Settings = app.state.settings
    configure_logging(settings)
    owned_queue = None
    if app.state.queue is None:
        owned_queue = QueueManager(settings.redis_url)
        app.state.queue = owned_queue
        if not await owned_queue.is_available():
            logger.warning("Redis at %s is not reachable yet", settings.redis_url)
    yield
    if owned_queue is not None:
        await owned_queue.close()
        app.state.queue = None


def create_app(
    settings: Settings | None = None, queue: QueueManager | None = None
) -> FastAPI:
    """Build the API application.

    Args:
        settings: Runtime settings (loaded from the environment if omitted)
        queue: Queue manager to use instead of opening one at startup

    Returns:
        Configured FastAPI application
    """
    settings = settings or Settings()

    app = FastAPI(
        title="crawlshot API",
        description="REST API for site screenshot crawls",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.queue = queue

    # Health endpoint is public
    app.include_router(health_router)
    app.include_router(crawl_router, dependencies=[Depends(verify_api_key)])

    app.mount(
        f"/{SCREENSHOTS_ROUTE}",
        StaticFiles(directory=settings.screenshots_dir, check_dir=False),
        name=SCREENSHOTS_ROUTE,
    )
    return app


app = create_app()
