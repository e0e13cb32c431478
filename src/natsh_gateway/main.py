"""
NATS HTTP Gateway - Main FastAPI Application

Lets HTTP-only clients use the bus:
- GET  {prefix}/<subject>  streams messages as Server-Sent Events
- POST {prefix}/<subject>  makes a request and returns the reply as JSON
- PUT  {prefix}/<subject>  publishes the request body
"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import Response

from .adapters import BusAdapter, MemoryAdapter, NatsAdapter
from .api.routes import gateway as gateway_routes
from .api.routes import health
from .core.config import Settings, settings
from .services.gateway import Gateway
from .services.responses import json_error

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def build_adapter(app_settings: Settings) -> BusAdapter:
    """
    Factory function to create the appropriate adapter based on configuration.
    """
    adapter_type = app_settings.bus_adapter.lower()

    if adapter_type == "nats":
        return NatsAdapter(
            url=app_settings.nats_url,
            reconnect_time_wait=app_settings.nats_reconnect_time_wait,
            max_reconnect_attempts=app_settings.nats_max_reconnect_attempts,
        )
    elif adapter_type == "memory":
        return MemoryAdapter()
    else:
        raise ValueError(f"Unknown adapter type: {adapter_type}")


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> Response:
    """Render routing errors (unknown path, wrong method) in the gateway's error shape."""
    response = json_error(exc.status_code, str(exc.detail))
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def validation_error_handler(request: Request, exc: RequestValidationError) -> Response:
    logger.info(f"Invalid request to {request.url.path}: {exc.errors()}")
    return json_error(422, "Invalid request")


async def unhandled_error_handler(request: Request, exc: Exception) -> Response:
    """Global exception handler for unhandled errors."""
    logger.error(f"Unhandled error: {exc}", exc_info=True)
    return json_error(500, "Internal server error")


def create_app(
    adapter: Optional[BusAdapter] = None,
    app_settings: Optional[Settings] = None,
) -> FastAPI:
    """
    Build the gateway application.

    Args:
        adapter: Bus adapter to share across requests; built from settings
                 when omitted
        app_settings: Settings to use instead of the environment-loaded ones
    """
    app_settings = app_settings or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """
        Application lifespan manager.

        Handles startup (connect to the bus) and shutdown (cleanup).
        """
        bus = adapter or build_adapter(app_settings)
        logger.info(f"Starting {app_settings.service_name} with {bus.name}")

        try:
            await bus.connect()
            logger.info(f"Gateway ready on port {app_settings.service_port}")
        except ConnectionError as e:
            logger.error(f"Failed to connect adapter: {e}")
            # Continue anyway for graceful degradation in dev mode
            if not app_settings.debug:
                raise

        app.state.gateway = Gateway(
            bus,
            header_prefix=app_settings.header_prefix,
            default_timeout_ms=app_settings.default_timeout_ms,
            stream_queue_size=app_settings.stream_queue_size,
            stream_ping_interval=app_settings.stream_ping_interval,
        )

        yield

        logger.info("Shutting down gateway")
        await app.state.gateway.close_streams()
        await bus.disconnect()
        logger.info("Gateway shutdown complete")

    app = FastAPI(
        title="NATS HTTP Gateway",
        description="Publish, request and subscribe to NATS subjects over HTTP",
        version=app_settings.service_version,
        lifespan=lifespan,
    )
    app.state.settings = app_settings

    if app_settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=app_settings.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.include_router(health.router)
    app.include_router(gateway_routes.router, prefix=app_settings.gateway_prefix)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    return app


app = create_app()


def run() -> None:
    """Entry point for the `natsh-gateway` console script."""
    import uvicorn

    uvicorn.run(app, host=settings.service_host, port=settings.service_port)


if __name__ == "__main__":
    run()
