"""Main FastAPI application for the Bitvia explorer API."""

import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import structlog

from bitvia_api.config.settings import APISettings
from bitvia_api.core.context import AppContext
from bitvia_api.core.errors import (
    ExplorerError, MissingResultError, NotFoundError, ProtocolError,
    TransportError, ValidationError, WorkerFailure
)
from bitvia_api.schemas.responses import ErrorDetail, ErrorResponse
from bitvia_api.utils.logging import setup_logging
from bitvia_api.utils.metrics import setup_metrics, metrics
from bitvia_api.app.routers import address, chain, health, tx


# Most specific first: NotFoundError is a ProtocolError
ERROR_STATUS = (
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (TransportError, status.HTTP_502_BAD_GATEWAY),
    (ProtocolError, status.HTTP_502_BAD_GATEWAY),
    (MissingResultError, status.HTTP_502_BAD_GATEWAY),
    (WorkerFailure, status.HTTP_502_BAD_GATEWAY),
)


def status_for_error(exc: ExplorerError) -> int:
    """HTTP status for an explorer error."""
    for error_class, status_code in ERROR_STATUS:
        if isinstance(exc, error_class):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def _error_body(request: Request, code: str, message: str) -> dict:
    return ErrorResponse(
        error=ErrorDetail(
            code=code,
            message=message,
            timestamp=datetime.now(timezone.utc),
            request_id=getattr(request.state, "request_id", "unknown")
        )
    ).model_dump(mode="json")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management."""

    logger = structlog.get_logger(__name__)
    settings: APISettings = app.state.settings
    logger.info("Starting Bitvia explorer API")

    owns_context = app.state.context is None
    if owns_context:
        app.state.context = AppContext.from_settings(settings)

    app.state.startup_time = datetime.now(timezone.utc)
    logger.info("Bitvia explorer API started",
                rpc_url=settings.rpc_url,
                electrs=settings.electrs_addr,
                prevout_source=settings.prevout_source)

    yield

    logger.info("Shutting down Bitvia explorer API")
    if owns_context:
        await app.state.context.close()
        app.state.context = None
    logger.info("Bitvia explorer API shutdown complete")


def create_app(settings: Optional[APISettings] = None, context: Optional[AppContext] = None) -> FastAPI:
    """Create and configure FastAPI application.

    ``context`` lets callers supply prebuilt upstream clients; otherwise one
    is built from ``settings`` at startup and closed at shutdown.
    """

    if settings is None:
        settings = context.settings if context is not None else APISettings()

    setup_logging(settings)

    app = FastAPI(
        title=settings.api_title,
        description=settings.api_description,
        version=settings.api_version,
        debug=settings.debug,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None
    )
    app.state.settings = settings
    app.state.context = context

    if settings.enable_metrics:
        setup_metrics(app, settings.metrics_path)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=settings.cors_methods,
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def logging_middleware(request: Request, call_next):
        """Request id, timing, logging and metrics."""
        logger = structlog.get_logger(__name__)

        request.state.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request.state.request_id)
        start_time = time.time()

        if settings.access_log:
            logger.info("Request started",
                        method=request.method,
                        url=str(request.url),
                        request_id=request.state.request_id,
                        client_ip=request.client.host if request.client else None)

        response = await call_next(request)

        process_time = time.time() - start_time
        response.headers["X-Process-Time"] = str(process_time)
        response.headers["X-Request-ID"] = request.state.request_id

        if settings.access_log:
            logger.info("Request completed",
                        method=request.method,
                        url=str(request.url),
                        request_id=request.state.request_id,
                        status_code=response.status_code,
                        process_time=process_time)

        if settings.enable_metrics:
            route = request.scope.get("route")
            endpoint = getattr(route, "path", "unmatched")
            metrics.request_count.labels(
                method=request.method,
                endpoint=endpoint,
                status=response.status_code
            ).inc()
            metrics.request_duration.labels(
                method=request.method,
                endpoint=endpoint
            ).observe(process_time)

        return response

    # Include routers
    app.include_router(chain.router, prefix="/api", tags=["chain"])
    app.include_router(tx.router, prefix="/api", tags=["transactions"])
    app.include_router(address.router, prefix="/api", tags=["addresses"])
    app.include_router(health.router, tags=["health"])

    @app.exception_handler(ExplorerError)
    async def explorer_exception_handler(request: Request, exc: ExplorerError):
        """Map resolution and upstream errors to a single error body."""
        logger = structlog.get_logger(__name__)
        status_code = status_for_error(exc)
        log = logger.warning if status_code < 500 else logger.error
        log("Request failed",
            error_type=type(exc).__name__,
            error=str(exc),
            status_code=status_code,
            url=str(request.url),
            request_id=getattr(request.state, "request_id", "unknown"))

        return JSONResponse(
            status_code=status_code,
            content=_error_body(request, exc.code, str(exc))
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        """Handle HTTP exceptions."""
        logger = structlog.get_logger(__name__)
        logger.warning("HTTP exception",
                       status_code=exc.status_code,
                       detail=exc.detail,
                       url=str(request.url))

        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(request, f"HTTP_{exc.status_code}", str(exc.detail)),
            headers=getattr(exc, "headers", None)
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle general exceptions."""
        logger = structlog.get_logger(__name__)
        logger.error("Unhandled exception",
                     error=str(exc),
                     url=str(request.url),
                     exc_info=True)

        return JSONResponse(
            status_code=500,
            content=_error_body(request, "INTERNAL_SERVER_ERROR", "An internal server error occurred")
        )

    @app.get("/")
    async def root():
        """Root endpoint with API information."""
        startup_time = getattr(app.state, "startup_time", None)
        return {
            "service": settings.api_title,
            "version": settings.api_version,
            "status": "operational",
            "startup_time": startup_time.isoformat() if startup_time else None,
            "endpoints": {
                "mempool": "/api/mempoolinfo",
                "network": "/api/network",
                "blockhash": "/api/blockhash/{height}",
                "block": "/api/block/{hash}",
                "tx": "/api/tx/{txid}",
                "address": "/api/addr/{address}",
                "history": "/api/addr/{address}/history"
            }
        }

    return app


def run():
    """Run the API under uvicorn."""
    import uvicorn

    settings = APISettings()

    uvicorn.run(
        "bitvia_api.app.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        workers=settings.workers if not settings.debug else 1,
        reload=settings.debug,
        access_log=settings.access_log,
        log_level=settings.log_level.lower()
    )


if __name__ == "__main__":
    run()
