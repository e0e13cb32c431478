"""
Base adapter interface for bus backends.

The gateway only ever talks to the bus through this interface, so the same
bridges work against NATS in production and the in-memory bus in tests.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Callable

from ..models.schemas import BusMessage

logger = logging.getLogger(__name__)


class Subscription:
    """
    Handle for one active subscription.

    The handle delivers into a queue owned by the caller. `unsubscribe` is
    safe to call more than once; only the first call reaches the bus.
    """

    def __init__(
        self,
        subject: str,
        queue: "asyncio.Queue[BusMessage]",
        release: Callable[[], Awaitable[None]],
    ):
        self.subject = subject
        self.queue = queue
        self._release = release
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    async def unsubscribe(self) -> None:
        """Release the subscription on the bus."""
        if self._released:
            return
        self._released = True
        await self._release()
        logger.debug(f"Released subscription on {self.subject}")


class BusAdapter(ABC):
    """
    Abstract base class for bus adapters.

    A single adapter instance is shared by every request the gateway serves,
    so implementations must be safe for concurrent use.
    """

    @abstractmethod
    async def connect(self) -> None:
        """
        Establish connection to the bus.

        Raises:
            ConnectionError: If unable to connect
        """
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Gracefully disconnect, releasing every open subscription."""
        pass

    @abstractmethod
    async def publish(self, message: BusMessage) -> None:
        """
        Publish a message without waiting for any reply.

        Raises:
            BusTimeoutError: If the bus could not accept it in time
            BusError: For any other publish failure
        """
        pass

    @abstractmethod
    async def request(self, message: BusMessage, timeout: float) -> BusMessage:
        """
        Send a request and wait for the first reply.

        Args:
            message: The request; its reply subject is replaced by the
                     adapter's own reply inbox
            timeout: Seconds to wait for a reply

        Raises:
            BusTimeoutError: If no reply arrived within the timeout
            BusError: For any other failure (no responders, bad subject)
        """
        pass

    @abstractmethod
    async def subscribe(
        self,
        subject: str,
        queue: "asyncio.Queue[BusMessage]",
    ) -> Subscription:
        """
        Subscribe to a subject, delivering messages into `queue`.

        When the queue is full the adapter follows its bus's slow-consumer
        behaviour; no secondary buffering is added.

        Raises:
            SubscriptionError: If the subscription could not be created
        """
        pass

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """Check if the adapter is connected to the bus."""
        pass

    @property
    def name(self) -> str:
        """Return the adapter name for logging."""
        return self.__class__.__name__


class BusError(Exception):
    """Base exception for bus errors."""
    pass


class BusTimeoutError(BusError):
    """Raised when a bus operation exceeded its deadline."""
    pass


class SubscriptionError(BusError):
    """Raised when a subscription could not be created."""
    pass
