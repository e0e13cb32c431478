"""
Stream bridge (GET): relay one bus subscription as a server-sent event stream.

A session moves Subscribing -> Streaming -> Closed. While streaming, a single
task waits on the subscription queue with the request's deadline, and the SSE
transport cancels that task when the client goes away. Whatever ends the
stream, the subscription is released exactly once.
"""
import asyncio
import logging
from typing import AsyncGenerator, Awaitable, Callable, Dict, Optional
from uuid import uuid4

import anyio
from sse_starlette.sse import EventSourceResponse, ServerSentEvent
from starlette.background import BackgroundTask
from starlette.requests import Request

from ..adapters.base import BusAdapter, Subscription, SubscriptionError
from ..core.errors import EncodingFailure, UpstreamError
from ..models.schemas import BusMessage
from .extract import DEFAULT_TIMEOUT_MS, parse_timeout
from .responses import encode_message

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 10
DEFAULT_PING_INTERVAL = 15

FRAME_SEP = "\n"
ENCODE_ERROR_DATA = "error encoding message"
IDLE_COMMENT = "nothing to send, connection closing"

STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Content-Type",
}

DisconnectCheck = Callable[[], Awaitable[bool]]


class StreamSession:
    """One subscription bound to one HTTP connection."""

    def __init__(
        self,
        subscription: Subscription,
        timeout: float,
        check_disconnected: Optional[DisconnectCheck] = None,
        on_close: Optional[Callable[["StreamSession"], None]] = None,
    ):
        self.id = str(uuid4())
        self.subscription = subscription
        self.timeout = timeout
        self._check_disconnected = check_disconnected
        self._on_close = on_close
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def events(self) -> AsyncGenerator[ServerSentEvent, None]:
        """
        Yield frames until the deadline passes or the client disconnects.

        The deadline is fixed when streaming starts; messages do not extend it.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout
        reason = "completed"

        try:
            while True:
                try:
                    message = await asyncio.wait_for(
                        self.subscription.queue.get(),
                        timeout=max(deadline - loop.time(), 0),
                    )
                except asyncio.TimeoutError:
                    if await self._peer_gone():
                        reason = "disconnect"
                        return
                    reason = "timeout"
                    yield ServerSentEvent(comment=IDLE_COMMENT, sep=FRAME_SEP)
                    return

                if await self._peer_gone():
                    reason = "disconnect"
                    return
                yield self._frame(message)

        except (asyncio.CancelledError, GeneratorExit):
            reason = "disconnect"
            raise
        finally:
            logger.info(f"Stream {self.id} on {self.subscription.subject} closing ({reason})")
            with anyio.CancelScope(shield=True):
                await self.close()

    async def close(self) -> None:
        """Release the subscription; later calls are no-ops."""
        if self._closed:
            return
        self._closed = True
        try:
            await self.subscription.unsubscribe()
        finally:
            if self._on_close:
                self._on_close(self)

    async def _peer_gone(self) -> bool:
        return bool(self._check_disconnected and await self._check_disconnected())

    def _frame(self, message: BusMessage) -> ServerSentEvent:
        try:
            return ServerSentEvent(data=encode_message(message), sep=FRAME_SEP)
        except EncodingFailure as e:
            logger.warning(f"Stream {self.id}: {e}")
            return ServerSentEvent(data=ENCODE_ERROR_DATA, sep=FRAME_SEP)


class StreamBridge:
    """GET: subscribe and stream."""

    def __init__(
        self,
        adapter: BusAdapter,
        default_timeout_ms: int = DEFAULT_TIMEOUT_MS,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        ping_interval: int = DEFAULT_PING_INTERVAL,
        registry: Optional[Dict[str, StreamSession]] = None,
    ):
        self.adapter = adapter
        self.default_timeout_ms = default_timeout_ms
        self.queue_size = queue_size
        self.ping_interval = ping_interval
        self.registry = registry if registry is not None else {}

    async def open(
        self,
        subject: str,
        timeout: float,
        check_disconnected: Optional[DisconnectCheck] = None,
    ) -> StreamSession:
        """
        Subscribe to `subject` with a fresh bounded queue.

        Raises:
            UpstreamError: If the subscription could not be created
        """
        queue: asyncio.Queue[BusMessage] = asyncio.Queue(maxsize=self.queue_size)
        try:
            subscription = await self.adapter.subscribe(subject, queue)
        except SubscriptionError as e:
            logger.warning(f"Unable to subscribe to {subject}: {e}")
            raise UpstreamError("Unable to subscribe") from e

        session = StreamSession(
            subscription,
            timeout,
            check_disconnected=check_disconnected,
            on_close=self._forget,
        )
        self.registry[session.id] = session
        logger.info(f"New stream {session.id} on {subject} (timeout {timeout}s)")
        return session

    async def __call__(self, request: Request, subject: str) -> EventSourceResponse:
        timeout = parse_timeout(request.query_params.get("timeout"), self.default_timeout_ms)
        session = await self.open(subject, timeout, request.is_disconnected)

        # The background close covers a response that never starts iterating
        return EventSourceResponse(
            session.events(),
            headers=STREAM_HEADERS,
            ping=self.ping_interval,
            sep=FRAME_SEP,
            background=BackgroundTask(session.close),
        )

    def _forget(self, session: StreamSession) -> None:
        self.registry.pop(session.id, None)
