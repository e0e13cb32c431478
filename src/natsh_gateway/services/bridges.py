"""
Request (POST) and publish (PUT) bridges.

Both build a BusMessage from the HTTP request, make exactly one bus call and
translate bus errors into gateway errors. Neither retries.
"""
import logging

from starlette.requests import ClientDisconnect, Request
from starlette.responses import Response

from ..adapters.base import BusAdapter, BusError, BusTimeoutError
from ..core.errors import ClientInputError, UpstreamError, UpstreamTimeout
from ..models.schemas import BusMessage
from .extract import DEFAULT_HEADER_PREFIX, DEFAULT_TIMEOUT_MS, bus_headers, parse_timeout
from .responses import JSON_MEDIA_TYPE, json_response

logger = logging.getLogger(__name__)


async def read_body(request: Request) -> bytes:
    """Read the whole request body, or fail as a client error."""
    try:
        return await request.body()
    except ClientDisconnect as e:
        logger.info(f"Client went away while sending body for {request.url.path}")
        raise ClientInputError("Error reading request body") from e


async def build_message(request: Request, subject: str, header_prefix: str) -> BusMessage:
    return BusMessage(
        subject=subject,
        reply=request.query_params.get("reply") or None,
        headers=bus_headers(request.headers, header_prefix),
        data=await read_body(request),
    )


class RequestBridge:
    """POST: one request/reply round trip, bounded by the caller's timeout."""

    def __init__(
        self,
        adapter: BusAdapter,
        header_prefix: str = DEFAULT_HEADER_PREFIX,
        default_timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ):
        self.adapter = adapter
        self.header_prefix = header_prefix
        self.default_timeout_ms = default_timeout_ms

    async def __call__(self, request: Request, subject: str) -> Response:
        message = await build_message(request, subject, self.header_prefix)
        timeout = parse_timeout(request.query_params.get("timeout"), self.default_timeout_ms)

        try:
            reply = await self.adapter.request(message, timeout)
        except BusTimeoutError as e:
            raise UpstreamTimeout("Request timed out") from e
        except BusError as e:
            raise UpstreamError(str(e)) from e

        logger.debug(f"Reply received for request on {subject}")
        return json_response(reply)


class PublishBridge:
    """
    PUT: fire-and-forget publish.

    Publish failures are reported with a fixed message; the bus error detail
    only goes to the log.
    """

    def __init__(self, adapter: BusAdapter, header_prefix: str = DEFAULT_HEADER_PREFIX):
        self.adapter = adapter
        self.header_prefix = header_prefix

    async def __call__(self, request: Request, subject: str) -> Response:
        message = await build_message(request, subject, self.header_prefix)

        try:
            await self.adapter.publish(message)
        except BusTimeoutError as e:
            raise UpstreamTimeout("Request timed out") from e
        except BusError as e:
            logger.warning(f"Publish to {subject} failed: {e}")
            raise UpstreamError("Unable to publish") from e

        return Response(status_code=200, media_type=f"{JSON_MEDIA_TYPE}; charset=UTF-8")
