"""FastAPI application serving the health and sync endpoints."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi.applications import FastAPI
from fastapi.responses import JSONResponse
from starlette.requests import Request

from src import __version__, log
from src.core.sched import SchedulerClient
from src.exceptions import WatchlistBridgeError
from src.web.routes import router
from src.web.state import get_app_state

__all__ = ["create_app"]


async def _error_response(request: Request, exc: Exception) -> JSONResponse:
    """Render a WatchlistBridgeError as JSON using its status code."""
    status_code = getattr(exc, "status_code", 500)
    return JSONResponse(
        status_code=status_code,
        content={
            "error": type(exc).__name__,
            "detail": str(exc) or type(exc).__doc__ or "",
            "path": request.url.path,
        },
    )


def create_app(scheduler: SchedulerClient | None = None) -> FastAPI:
    """Build the web application.

    Args:
        scheduler (SchedulerClient | None): Scheduler to expose through the
            shared application state. Tests omit it.

    Returns:
        FastAPI: The application, ready for uvicorn.
    """

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        if scheduler is not None:
            get_app_state().set_scheduler(scheduler)
        else:
            log.debug("Web: Started without a scheduler")
        yield

    app = FastAPI(title="WatchlistBridge", version=__version__, lifespan=lifespan)
    app.include_router(router)
    app.add_exception_handler(WatchlistBridgeError, _error_response)
    return app
