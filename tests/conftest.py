"""
Pytest configuration for gateway tests.
"""
import asyncio
import os
from typing import List, Optional, Tuple

import pytest

# Set test environment variables before the app module is imported
os.environ["BUS_ADAPTER"] = "memory"
os.environ["DEBUG"] = "true"

from natsh_gateway.adapters.base import BusAdapter, Subscription, SubscriptionError  # noqa: E402
from natsh_gateway.adapters.memory_adapter import MemoryAdapter  # noqa: E402
from natsh_gateway.models.schemas import BusMessage  # noqa: E402


class RecordingAdapter(BusAdapter):
    """
    Bus adapter that records every call and returns canned results.

    Set `request_error`, `publish_error` or `subscribe_error` to make the
    matching operation fail; `preload` messages are queued on subscribe.
    """

    def __init__(self):
        self._connected = False
        self.calls: List[str] = []
        self.published: List[BusMessage] = []
        self.requests: List[Tuple[BusMessage, float]] = []
        self.subscriptions: List[Subscription] = []
        self.releases = 0
        self.reply = BusMessage(subject="_INBOX.reply", headers={"status": ["ok"]}, data=b"pong")
        self.request_error: Optional[Exception] = None
        self.publish_error: Optional[Exception] = None
        self.subscribe_error: Optional[Exception] = None
        self.preload: List[BusMessage] = []

    async def connect(self) -> None:
        self._connected = True

    async def disconnect(self) -> None:
        self._connected = False

    async def publish(self, message: BusMessage) -> None:
        self.calls.append("publish")
        self.published.append(message)
        if self.publish_error:
            raise self.publish_error

    async def request(self, message: BusMessage, timeout: float) -> BusMessage:
        self.calls.append("request")
        self.requests.append((message, timeout))
        if self.request_error:
            raise self.request_error
        return self.reply

    async def subscribe(self, subject: str, queue: "asyncio.Queue[BusMessage]") -> Subscription:
        self.calls.append("subscribe")
        if self.subscribe_error:
            raise self.subscribe_error
        for message in self.preload:
            queue.put_nowait(message)

        async def release() -> None:
            self.releases += 1

        subscription = Subscription(subject, queue, release)
        self.subscriptions.append(subscription)
        return subscription

    @property
    def is_connected(self) -> bool:
        return self._connected


@pytest.fixture
def recording_adapter():
    """A connected-on-startup adapter that records bus calls."""
    return RecordingAdapter()


@pytest.fixture
def failing_subscribe_adapter():
    adapter = RecordingAdapter()
    adapter.subscribe_error = SubscriptionError("invalid subject")
    return adapter


@pytest.fixture
async def memory_adapter():
    """Create and connect a memory adapter for testing."""
    adapter = MemoryAdapter()
    await adapter.connect()
    yield adapter
    await adapter.disconnect()


@pytest.fixture(autouse=True)
def reset_sse_exit_event():
    """sse-starlette keeps a process-wide exit event bound to the first event loop."""
    from sse_starlette import sse

    app_status = getattr(sse, "AppStatus", None)
    if app_status is not None and hasattr(app_status, "should_exit_event"):
        app_status.should_exit_event = None
    yield
