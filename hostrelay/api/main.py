"""FastAPI application for the relay.

Builds the app with its routers, CORS middleware and exception handlers.
Service wiring (store, broadcaster, reconciler, host gateway) happens in the
lifespan so every app instance owns its own engine and HTTP client.
"""

import logging
import sys
import time as _time
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from hostrelay import __version__
from hostrelay.api.routes import (
    agents,
    conversations,
    events,
    files,
    messages,
    settings,
    tasks,
)
from hostrelay.config import RelayConfig, load_config
from hostrelay.errors import InvalidRequest, RelayError
from hostrelay.services.container import build_services

logger = logging.getLogger(__name__)


def configure_logging(level: str = "info") -> None:
    """Send log records to stdout so uvicorn captures them."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(levelname)s:%(name)s:%(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    logging.getLogger("hostrelay").setLevel(getattr(logging, level.upper(), logging.INFO))


async def relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
    """Handle RelayError exceptions with consistent format.

    Args:
        request: The incoming request.
        exc: The RelayError exception; its class decides the status code.

    Returns:
        JSONResponse with error details.
    """
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report malformed request bodies as 400 with the offending fields."""
    fields = []
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part != "body"]
        fields.append(".".join(loc) or "body")
    error = InvalidRequest(
        "Missing or invalid fields: " + ", ".join(fields), fields=fields
    )
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


def create_app(
    config: RelayConfig | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> FastAPI:
    """Build the relay application.

    Args:
        config: Relay configuration. Loaded from the standard locations
            when None.
        http_client: Optional httpx client for the host gateway.

    Returns:
        Configured FastAPI app.
    """
    config = config or load_config()
    configure_logging(config.server.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Async lifespan: build services on startup, release them on shutdown."""
        services = build_services(config, http_client=http_client)
        await services.start()
        app.state.services = services
        app.state.started_at = _time.time()
        try:
            yield
        finally:
            await services.stop()
            logger.info("Relay stopped")

    app = FastAPI(
        title="hostrelay",
        description="Relay between the browser UI and the agent host",
        version=__version__,
        lifespan=lifespan,
    )

    # CORS allowlist is config-driven. If unset, CORS is disabled (same-origin only).
    if config.server.allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.server.allowed_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
            allow_headers=["Content-Type", "Authorization", "X-API-Key"],
        )

    app.add_exception_handler(RelayError, relay_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    app.include_router(conversations.router)
    app.include_router(agents.router)
    app.include_router(messages.router)
    app.include_router(tasks.router)
    app.include_router(files.router)
    app.include_router(settings.router)
    app.include_router(events.router)

    @app.get("/health")
    def health_check(request: Request) -> dict:
        """Health check with version, uptime and live subscriber count."""
        services = request.app.state.services
        started_at = getattr(request.app.state, "started_at", None)
        return {
            "status": "healthy",
            "version": __version__,
            "uptime_seconds": int(_time.time() - started_at) if started_at else 0,
            "subscribers": services.broadcaster.subscriber_count,
        }

    return app
