"""
NATS adapter for the gateway.

Implements the BusAdapter interface on top of the nats-py client, using NATS
Core publish, request/reply and subscriptions.
"""
import asyncio
import logging
from typing import Dict
from uuid import uuid4

import nats
import nats.errors
from nats.aio.client import Client as NatsClient
from nats.aio.msg import Msg
from nats.aio.subscription import Subscription as NatsSubscription

from ..models.schemas import BusMessage
from .base import BusAdapter, BusError, BusTimeoutError, Subscription, SubscriptionError

logger = logging.getLogger(__name__)


def to_nats_headers(message: BusMessage) -> Dict[str, str] | None:
    """NATS headers carry a single string per key; the first value wins."""
    headers = {key: values[0] for key, values in message.headers.items() if values}
    return headers or None


def from_nats_msg(msg: Msg) -> BusMessage:
    """Convert a received NATS message into a BusMessage."""
    return BusMessage(
        subject=msg.subject,
        reply=msg.reply or None,
        headers={key: [value] for key, value in (msg.headers or {}).items()},
        data=msg.data or b"",
    )


class NatsAdapter(BusAdapter):
    """
    NATS adapter for the gateway.

    Features:
    - Automatic reconnection
    - Wildcard subscriptions (e.g., "orders.*", "events.>")
    - Request/reply through the client's shared reply inbox
    """

    def __init__(
        self,
        url: str = "nats://localhost:4222",
        reconnect_time_wait: int = 2,
        max_reconnect_attempts: int = -1,
    ):
        """
        Initialize the NATS adapter.

        Args:
            url: NATS server URL
            reconnect_time_wait: Time to wait between reconnection attempts (seconds)
            max_reconnect_attempts: Max reconnection attempts (-1 for infinite)
        """
        self._url = url
        self._reconnect_time_wait = reconnect_time_wait
        self._max_reconnect_attempts = max_reconnect_attempts
        self._client: NatsClient | None = None
        self._subscriptions: Dict[str, NatsSubscription] = {}

    async def connect(self) -> None:
        """Connect to NATS server with auto-reconnection."""
        if self._client is not None and self._client.is_connected:
            logger.warning("Already connected to NATS")
            return

        logger.info(f"Connecting to NATS at {self._url}")

        try:
            self._client = await nats.connect(
                servers=[self._url],
                reconnect_time_wait=self._reconnect_time_wait,
                max_reconnect_attempts=self._max_reconnect_attempts,
                error_cb=self._error_callback,
                disconnected_cb=self._disconnected_callback,
                reconnected_cb=self._reconnected_callback,
                closed_cb=self._closed_callback,
            )
            logger.info(f"Connected to NATS server: {self._client.connected_url}")
        except Exception as e:
            logger.error(f"Failed to connect to NATS: {e}")
            raise ConnectionError(f"Failed to connect to NATS at {self._url}: {e}") from e

    async def disconnect(self) -> None:
        """Gracefully disconnect from NATS."""
        if self._client is None:
            return

        logger.info("Disconnecting from NATS")

        for sub_id in list(self._subscriptions.keys()):
            await self._unsubscribe(sub_id)

        try:
            await self._client.drain()
        except nats.errors.Error as e:
            logger.warning(f"Error draining NATS connection: {e}")

        self._client = None
        logger.info("Disconnected from NATS")

    async def publish(self, message: BusMessage) -> None:
        """Publish a message to its NATS subject."""
        client = self._require_client()
        try:
            await client.publish(
                message.subject,
                message.data,
                reply=message.reply or "",
                headers=to_nats_headers(message),
            )
            logger.debug(f"Published message to {message.subject}")
        except nats.errors.TimeoutError as e:
            raise BusTimeoutError(str(e)) from e
        except nats.errors.Error as e:
            logger.error(f"Failed to publish to {message.subject}: {e}")
            raise BusError(str(e)) from e

    async def request(self, message: BusMessage, timeout: float) -> BusMessage:
        """Send a request to its NATS subject and wait for the first reply."""
        client = self._require_client()
        try:
            reply = await client.request(
                message.subject,
                message.data,
                timeout=timeout,
                headers=to_nats_headers(message),
            )
        except nats.errors.TimeoutError as e:
            logger.info(f"Request to {message.subject} timed out after {timeout}s")
            raise BusTimeoutError(str(e)) from e
        except nats.errors.Error as e:
            logger.warning(f"Request to {message.subject} failed: {e}")
            raise BusError(str(e)) from e
        return from_nats_msg(reply)

    async def subscribe(
        self,
        subject: str,
        queue: "asyncio.Queue[BusMessage]",
    ) -> Subscription:
        """Subscribe to a NATS subject, delivering into `queue`."""
        if not self.is_connected:
            raise SubscriptionError("Not connected to NATS")

        sub_id = str(uuid4())

        async def nats_handler(msg: Msg) -> None:
            try:
                queue.put_nowait(from_nats_msg(msg))
            except asyncio.QueueFull:
                logger.warning(f"Slow consumer on {msg.subject}, dropping message")

        try:
            sub = await self._client.subscribe(subject, cb=nats_handler)
        except nats.errors.Error as e:
            logger.error(f"Failed to subscribe to {subject}: {e}")
            raise SubscriptionError(f"Failed to subscribe to {subject}: {e}") from e

        self._subscriptions[sub_id] = sub
        logger.info(f"Subscribed to {subject} (sub_id: {sub_id})")

        async def release() -> None:
            await self._unsubscribe(sub_id)

        return Subscription(subject, queue, release)

    @property
    def is_connected(self) -> bool:
        """Check if connected to NATS."""
        return self._client is not None and self._client.is_connected

    def _require_client(self) -> NatsClient:
        if not self.is_connected:
            raise BusError("nats: connection closed")
        return self._client

    async def _unsubscribe(self, sub_id: str) -> None:
        sub = self._subscriptions.pop(sub_id, None)
        if sub is None:
            return
        try:
            await sub.unsubscribe()
            logger.info(f"Unsubscribed {sub_id}")
        except nats.errors.Error as e:
            # Already gone on the server side (closed or draining connection)
            logger.warning(f"Error unsubscribing {sub_id}: {e}")

    # NATS callbacks for connection lifecycle

    async def _error_callback(self, e: Exception) -> None:
        """Called on NATS errors."""
        logger.error(f"NATS error: {e}")

    async def _disconnected_callback(self) -> None:
        """Called when disconnected from NATS."""
        logger.warning("Disconnected from NATS server")

    async def _reconnected_callback(self) -> None:
        """Called when reconnected to NATS."""
        logger.info(f"Reconnected to NATS server: {self._client.connected_url}")

    async def _closed_callback(self) -> None:
        """Called when NATS connection is closed."""
        logger.info("NATS connection closed")
