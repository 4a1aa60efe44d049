"""
FastAPI application for the agent endpoint.

Every error is returned as ``{"error": <message>}``; nothing raised while
handling a request takes the serving process down.
"""

import logging
import time
from typing import Any, Awaitable, Callable

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from rollout_manager import __version__
from rollout_manager.agent import AgentService
from rollout_manager.errors import (
    DoubleFailure,
    NoBackupAvailable,
    RolloutManagerError,
)
from rollout_manager.logging_config import API_LOGGER

from .routes import health_router, router

logger = logging.getLogger(__name__)
access_logger = logging.getLogger(API_LOGGER)


def create_app(service: AgentService, access_token: str) -> FastAPI:
    """
    Create the agent API.

    Args:
        service: Agent service performing deploys and rollbacks
        access_token: Shared bearer secret required on every route but /health

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(title="rollout-manager agent", version=__version__)
    app.state.agent_service = service
    app.state.access_token = access_token

    @app.middleware("http")
    async def log_access(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        started = time.monotonic()
        response = await call_next(request)
        duration_ms = (time.monotonic() - started) * 1000
        access_logger.info(
            f"{request.method} {request.url.path} {response.status_code} {duration_ms:.1f}ms"
        )
        return response

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})

    @app.exception_handler(NoBackupAvailable)
    async def no_backup_handler(request: Request, exc: NoBackupAvailable) -> JSONResponse:
        logger.warning(str(exc))
        return JSONResponse(
            status_code=500, content={"error": str(exc), "code": "no_backup_available"}
        )

    @app.exception_handler(DoubleFailure)
    async def double_failure_handler(request: Request, exc: DoubleFailure) -> JSONResponse:
        logger.error(str(exc))
        return JSONResponse(
            status_code=500,
            content={
                "error": str(exc),
                "state": "double_failed",
                "rollback_error": exc.rollback_error,
            },
        )

    @app.exception_handler(RolloutManagerError)
    async def rollout_error_handler(request: Request, exc: RolloutManagerError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(f"{request.url.path} failed: {exc}")
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc)})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> Any:
        logger.error(f"Unhandled error on {request.url.path}: {exc}", exc_info=True)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    app.include_router(health_router)
    app.include_router(router)
    return app
