"""FastAPI application entry point."""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, Callable

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.models.responses import ErrorCodes, ErrorResponse
from api.routes import (
    bookings_router,
    health_router,
    schedule_router,
    settings_router,
    sync_router,
)
from core.config import API_DEBUG, API_VERSION, DB_PATH, SYNC_ON_STARTUP
from core.database import BookingStore
from core.graph_client import get_graph_client, has_graph_credentials
from core.logging import setup_logging
from services.sync import BookingSyncService, run_periodic_sync

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    # Startup: create tables, start background sync
    await asyncio.to_thread(app.state.store.init_schema)

    sync_task = None
    if app.state.start_scheduler:
        if has_graph_credentials():
            sync_task = asyncio.create_task(run_periodic_sync(app.state.sync_service))
            logger.info("Background booking sync scheduled")
        else:
            logger.warning("MS Graph credentials missing, background sync disabled")

    yield

    # Shutdown: stop the sync loop
    if sync_task is not None:
        sync_task.cancel()
        try:
            await sync_task
        except asyncio.CancelledError:
            pass


def create_app(
    store: BookingStore | None = None,
    sync_service: BookingSyncService | None = None,
    graph_provider: Callable[[], Any] = get_graph_client,
    start_scheduler: bool = SYNC_ON_STARTUP,
) -> FastAPI:
    """Build the API app with its store and sync service attached to app.state."""
    app = FastAPI(
        title="Room Calendar API",
        description="Room calendars enriched with Microsoft Bookings customer data",
        version=API_VERSION,
        debug=API_DEBUG,
        lifespan=lifespan,
    )

    store = store or BookingStore(DB_PATH)
    app.state.store = store
    app.state.graph_provider = graph_provider
    app.state.sync_service = sync_service or BookingSyncService(store, graph_provider)
    app.state.start_scheduler = start_scheduler

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Report malformed request bodies as 400 in the standard error format."""
        details = [
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in exc.errors()
        ]
        return JSONResponse(
            status_code=400,
            content={
                "detail": ErrorResponse(
                    error="Invalid request",
                    code=ErrorCodes.INVALID_REQUEST,
                    details=details,
                ).model_dump()
            },
        )

    # Global exception handler for unexpected errors
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Handle unexpected exceptions with standard error format."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(
                error="Internal server error",
                code=ErrorCodes.INTERNAL_ERROR,
                details=[],
            ).model_dump(),
        )

    for router in (health_router, bookings_router, sync_router, settings_router, schedule_router):
        app.include_router(router, prefix="/api")

    return app


setup_logging()
app = create_app()


# Entry point for uvicorn
if __name__ == "__main__":
    import uvicorn

    from core.config import API_HOST, API_PORT

    uvicorn.run(
        "api.main:app",
        host=API_HOST,
        port=API_PORT,
        reload=API_DEBUG,
    )
