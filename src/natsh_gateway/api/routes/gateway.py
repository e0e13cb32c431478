from fastapi import APIRouter, Depends, Request
from starlette.responses import Response

from ...services.gateway import Gateway

router = APIRouter(tags=["Gateway"])

# Registered for every common method; the gateway answers 405 itself
GATEWAY_METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS"]


def get_gateway(request: Request) -> Gateway:
    return request.app.state.gateway


@router.api_route("/{subject_path:path}", methods=GATEWAY_METHODS)
async def bus_gateway(request: Request, gateway: Gateway = Depends(get_gateway)) -> Response:
    """
    Bridge a request onto the bus.

    The subject is the last segment of the path. GET streams messages as
    server-sent events, POST makes a request and returns the reply, PUT
    publishes. Headers prefixed `Natsh-` become bus headers.
    """
    return await gateway.handle(request)
