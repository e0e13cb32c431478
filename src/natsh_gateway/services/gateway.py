"""
Gateway handler: dispatch an HTTP request to the bridge for its method.
"""
import logging
from typing import Dict

from starlette.requests import Request
from starlette.responses import Response

from ..adapters.base import BusAdapter
from ..core.errors import GatewayError, MethodNotSupported
from .bridges import PublishBridge, RequestBridge
from .extract import DEFAULT_HEADER_PREFIX, DEFAULT_TIMEOUT_MS, subject_from_path
from .responses import json_error
from .stream_bridge import DEFAULT_PING_INTERVAL, DEFAULT_QUEUE_SIZE, StreamBridge, StreamSession

logger = logging.getLogger(__name__)

SUPPORTED_METHODS = ("GET", "POST", "PUT")


class Gateway:
    """
    Bridges HTTP requests onto bus operations.

    GET streams a subscription, POST makes a request/reply call and PUT
    publishes. The adapter is a single long-lived connection shared by every
    request.
    """

    def __init__(
        self,
        adapter: BusAdapter,
        header_prefix: str = DEFAULT_HEADER_PREFIX,
        default_timeout_ms: int = DEFAULT_TIMEOUT_MS,
        stream_queue_size: int = DEFAULT_QUEUE_SIZE,
        stream_ping_interval: int = DEFAULT_PING_INTERVAL,
    ):
        self.adapter = adapter
        # Active streams: session_id -> session
        self.active_streams: Dict[str, StreamSession] = {}

        self._bridges = {
            "GET": StreamBridge(
                adapter,
                default_timeout_ms=default_timeout_ms,
                queue_size=stream_queue_size,
                ping_interval=stream_ping_interval,
                registry=self.active_streams,
            ),
            "POST": RequestBridge(
                adapter,
                header_prefix=header_prefix,
                default_timeout_ms=default_timeout_ms,
            ),
            "PUT": PublishBridge(adapter, header_prefix=header_prefix),
        }

    async def handle(self, request: Request) -> Response:
        """Run the bridge for `request.method`, rendering any gateway error."""
        try:
            bridge = self._bridges.get(request.method)
            if bridge is None:
                raise MethodNotSupported()
            subject = subject_from_path(request.url.path)
            return await bridge(request, subject)
        except GatewayError as e:
            logger.info(f"{request.method} {request.url.path} -> {e.status_code}: {e.message}")
            response = json_error(e.status_code, e.message)
            if isinstance(e, MethodNotSupported):
                response.headers["Allow"] = ", ".join(SUPPORTED_METHODS)
            return response

    async def close_streams(self) -> None:
        """Release every open stream (used on shutdown)."""
        for session in list(self.active_streams.values()):
            await session.close()
