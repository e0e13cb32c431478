from typing import Dict

from fastapi import APIRouter, Request

from ...models.schemas import HealthResponse

router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """
    Health check endpoint.

    Returns service status, adapter connection state, and active streams count.
    """
    gateway = getattr(request.app.state, "gateway", None)
    adapter = gateway.adapter if gateway else None
    return HealthResponse(
        status="healthy" if adapter and adapter.is_connected else "degraded",
        adapter=adapter.name if adapter else "none",
        connected=adapter.is_connected if adapter else False,
        active_streams=len(gateway.active_streams) if gateway else 0,
    )


@router.get("/", tags=["Info"])
async def root(request: Request) -> Dict[str, str]:
    """Root endpoint with service info."""
    settings = request.app.state.settings
    return {
        "service": settings.service_name,
        "version": settings.service_version,
        "docs": "/docs",
    }
