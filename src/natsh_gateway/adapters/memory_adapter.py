"""
In-memory adapter for the gateway.

This adapter is primarily used for:
- Local development without a NATS server
- Unit testing

Messages are delivered straight into subscriber queues; nothing is stored.
"""
import asyncio
import logging
from typing import Dict, List, Tuple
from uuid import uuid4

from ..models.schemas import BusMessage
from .base import BusAdapter, BusError, BusTimeoutError, Subscription, SubscriptionError

logger = logging.getLogger(__name__)

INBOX_PREFIX = "_INBOX."


class MemoryAdapter(BusAdapter):
    """
    In-memory bus for development and testing.

    Features:
    - NATS-style wildcard matching ("*" one token, ">" the rest)
    - Request/reply through a private inbox subject per request
    - Slow consumers lose new messages, as with NATS
    """

    def __init__(self):
        """Initialize the memory adapter."""
        self._connected = False
        # Subscription ID -> (pattern, queue)
        self._subscriptions: Dict[str, Tuple[str, "asyncio.Queue[BusMessage]"]] = {}
        # Inbox subject -> future waiting for the reply
        self._inboxes: Dict[str, "asyncio.Future[BusMessage]"] = {}

    async def connect(self) -> None:
        """Mark adapter as connected."""
        if self._connected:
            logger.warning("Memory adapter already connected")
            return

        self._connected = True
        logger.info("Memory adapter connected (in-memory mode)")

    async def disconnect(self) -> None:
        """Disconnect and clean up subscriptions."""
        self._subscriptions.clear()
        for future in self._inboxes.values():
            future.cancel()
        self._inboxes.clear()
        self._connected = False
        logger.info("Memory adapter disconnected")

    async def publish(self, message: BusMessage) -> None:
        """Deliver a message to every matching subscriber."""
        self._check_connected()
        if not self._valid_subject(message.subject):
            raise BusError(f"invalid subject: {message.subject!r}")

        logger.debug(f"Publishing to subject: {message.subject}")

        waiter = self._inboxes.get(message.subject)
        if waiter is not None and not waiter.done():
            waiter.set_result(message)

        for pattern, queue in list(self._subscriptions.values()):
            if not self._pattern_matches(pattern, message.subject):
                continue
            try:
                queue.put_nowait(message)
            except asyncio.QueueFull:
                logger.warning(f"Slow consumer on {pattern}, dropping message")

    async def request(self, message: BusMessage, timeout: float) -> BusMessage:
        """Publish with a private reply inbox and wait for the first reply."""
        self._check_connected()
        if not self._valid_subject(message.subject):
            raise BusError(f"invalid subject: {message.subject!r}")
        if not self._has_subscribers(message.subject):
            raise BusError("no responders available for request")

        inbox = f"{INBOX_PREFIX}{uuid4().hex}"
        waiter: "asyncio.Future[BusMessage]" = asyncio.get_running_loop().create_future()
        self._inboxes[inbox] = waiter

        try:
            await self.publish(message.model_copy(update={"reply": inbox}))
            return await asyncio.wait_for(waiter, timeout=timeout)
        except asyncio.TimeoutError as e:
            raise BusTimeoutError("request timed out") from e
        finally:
            self._inboxes.pop(inbox, None)

    async def subscribe(
        self,
        subject: str,
        queue: "asyncio.Queue[BusMessage]",
    ) -> Subscription:
        """Subscribe to a subject pattern, delivering into `queue`."""
        if not self._connected:
            raise SubscriptionError("Memory adapter not connected")
        if not self._valid_pattern(subject):
            raise SubscriptionError(f"invalid subject: {subject!r}")

        sub_id = str(uuid4())
        self._subscriptions[sub_id] = (subject, queue)
        logger.info(f"Subscribed to {subject} (sub_id: {sub_id})")

        async def release() -> None:
            if self._subscriptions.pop(sub_id, None) is not None:
                logger.info(f"Unsubscribed: {sub_id}")

        return Subscription(subject, queue, release)

    @property
    def is_connected(self) -> bool:
        """Check if adapter is connected."""
        return self._connected

    @property
    def subscription_count(self) -> int:
        return len(self._subscriptions)

    def _check_connected(self) -> None:
        if not self._connected:
            raise BusError("memory adapter not connected")

    def _has_subscribers(self, subject: str) -> bool:
        return any(
            self._pattern_matches(pattern, subject)
            for pattern, _ in self._subscriptions.values()
        )

    @staticmethod
    def _valid_subject(subject: str) -> bool:
        """Publish subjects have non-empty tokens and no wildcards."""
        tokens = subject.split(".")
        return all(t and t not in ("*", ">") and " " not in t for t in tokens)

    @staticmethod
    def _valid_pattern(pattern: str) -> bool:
        """Subscription patterns may use "*" anywhere and ">" as last token."""
        tokens: List[str] = pattern.split(".")
        for i, token in enumerate(tokens):
            if not token or " " in token:
                return False
            if token == ">" and i != len(tokens) - 1:
                return False
        return True

    @staticmethod
    def _pattern_matches(pattern: str, subject: str) -> bool:
        """
        Check if a pattern matches a subject.

        Args:
            pattern: Pattern with optional wildcards
            subject: Subject to match

        Returns:
            True if pattern matches subject
        """
        if pattern == subject:
            return True

        pattern_parts = pattern.split(".")
        subject_parts = subject.split(".")

        # ">" matches one or more remaining tokens
        if pattern_parts[-1] == ">":
            prefix = pattern_parts[:-1]
            if len(subject_parts) <= len(prefix):
                return False
            return all(p == "*" or p == s for p, s in zip(prefix, subject_parts))

        if len(pattern_parts) != len(subject_parts):
            return False

        return all(p == "*" or p == s for p, s in zip(pattern_parts, subject_parts))
