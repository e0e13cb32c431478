"""
Tests for the NATS adapter, against a mocked nats-py client.
"""
import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import nats.errors
import pytest

from natsh_gateway.adapters.base import BusError, BusTimeoutError, SubscriptionError
from natsh_gateway.adapters.nats_adapter import NatsAdapter, from_nats_msg, to_nats_headers
from natsh_gateway.models.schemas import BusMessage


def nats_msg(subject="orders", reply="", data=b"", headers=None):
    msg = MagicMock()
    msg.subject = subject
    msg.reply = reply
    msg.data = data
    msg.headers = headers
    return msg


@pytest.fixture
def client():
    nc = MagicMock()
    nc.is_connected = True
    nc.connected_url = "nats://localhost:4222"
    nc.publish = AsyncMock()
    nc.request = AsyncMock()
    nc.subscribe = AsyncMock()
    nc.drain = AsyncMock()
    return nc


@pytest.fixture
def adapter(client):
    nats_adapter = NatsAdapter()
    nats_adapter._client = client
    return nats_adapter


class TestConversion:
    """Tests for BusMessage <-> NATS message conversion."""

    def test_headers_first_value_only(self):
        message = BusMessage(subject="s", headers={"a": ["1", "2"], "b": ["3"], "empty": []})
        assert to_nats_headers(message) == {"a": "1", "b": "3"}

    def test_no_headers(self):
        assert to_nats_headers(BusMessage(subject="s")) is None

    def test_from_nats_msg(self):
        message = from_nats_msg(nats_msg(subject="a.b", reply="", data=b"x", headers={"k": "v"}))
        assert message == BusMessage(subject="a.b", reply=None, headers={"k": ["v"]}, data=b"x")


class TestConnection:
    """Tests for connection lifecycle."""

    async def test_connect(self, client):
        adapter = NatsAdapter(url="nats://bus:4222", reconnect_time_wait=1, max_reconnect_attempts=5)

        with patch("natsh_gateway.adapters.nats_adapter.nats.connect", AsyncMock(return_value=client)) as connect:
            await adapter.connect()

        assert adapter.is_connected
        kwargs = connect.call_args.kwargs
        assert kwargs["servers"] == ["nats://bus:4222"]
        assert kwargs["reconnect_time_wait"] == 1
        assert kwargs["max_reconnect_attempts"] == 5

    async def test_connect_failure(self):
        adapter = NatsAdapter()
        failing = AsyncMock(side_effect=nats.errors.NoServersError())

        with patch("natsh_gateway.adapters.nats_adapter.nats.connect", failing):
            with pytest.raises(ConnectionError):
                await adapter.connect()

        assert not adapter.is_connected

    async def test_disconnect_releases_subscriptions(self, adapter, client):
        nats_sub = MagicMock()
        nats_sub.unsubscribe = AsyncMock()
        client.subscribe.return_value = nats_sub
        await adapter.subscribe("orders", asyncio.Queue())

        await adapter.disconnect()

        nats_sub.unsubscribe.assert_awaited_once()
        client.drain.assert_awaited_once()
        assert not adapter.is_connected


class TestPublish:
    """Tests for publish."""

    async def test_publish(self, adapter, client):
        await adapter.publish(BusMessage(subject="orders", reply="audit", headers={"k": ["v"]}, data=b"x"))

        client.publish.assert_awaited_once_with("orders", b"x", reply="audit", headers={"k": "v"})

    async def test_publish_without_reply(self, adapter, client):
        await adapter.publish(BusMessage(subject="orders"))

        client.publish.assert_awaited_once_with("orders", b"", reply="", headers=None)

    async def test_publish_error(self, adapter, client):
        client.publish.side_effect = nats.errors.MaxPayloadError()

        with pytest.raises(BusError) as exc_info:
            await adapter.publish(BusMessage(subject="orders"))
        assert not isinstance(exc_info.value, BusTimeoutError)

    async def test_publish_timeout(self, adapter, client):
        client.publish.side_effect = nats.errors.TimeoutError()

        with pytest.raises(BusTimeoutError):
            await adapter.publish(BusMessage(subject="orders"))

    async def test_publish_when_disconnected(self):
        with pytest.raises(BusError):
            await NatsAdapter().publish(BusMessage(subject="orders"))


class TestRequest:
    """Tests for request/reply."""

    async def test_request(self, adapter, client):
        client.request.return_value = nats_msg(subject="_INBOX.x", data=b"pong", headers={"s": "ok"})

        reply = await adapter.request(BusMessage(subject="orders", data=b"ping"), timeout=2.5)

        client.request.assert_awaited_once_with("orders", b"ping", timeout=2.5, headers=None)
        assert reply == BusMessage(subject="_INBOX.x", headers={"s": ["ok"]}, data=b"pong")

    async def test_request_timeout(self, adapter, client):
        client.request.side_effect = nats.errors.TimeoutError()

        with pytest.raises(BusTimeoutError):
            await adapter.request(BusMessage(subject="orders"), timeout=0.1)

    async def test_no_responders(self, adapter, client):
        client.request.side_effect = nats.errors.NoRespondersError()

        with pytest.raises(BusError) as exc_info:
            await adapter.request(BusMessage(subject="orders"), timeout=0.1)

        assert not isinstance(exc_info.value, BusTimeoutError)
        assert str(exc_info.value) == str(nats.errors.NoRespondersError())


class TestSubscribe:
    """Tests for subscriptions."""

    async def test_delivery_into_queue(self, adapter, client):
        nats_sub = MagicMock()
        nats_sub.unsubscribe = AsyncMock()
        client.subscribe.return_value = nats_sub
        queue = asyncio.Queue(maxsize=1)

        subscription = await adapter.subscribe("orders.*", queue)
        callback = client.subscribe.call_args.kwargs["cb"]
        await callback(nats_msg(subject="orders.1", data=b"1"))
        # Queue is full: the new message is dropped
        await callback(nats_msg(subject="orders.2", data=b"2"))

        assert queue.qsize() == 1
        assert queue.get_nowait().data == b"1"

        await subscription.unsubscribe()
        await subscription.unsubscribe()
        nats_sub.unsubscribe.assert_awaited_once()

    async def test_subscribe_error(self, adapter, client):
        client.subscribe.side_effect = nats.errors.BadSubjectError()

        with pytest.raises(SubscriptionError):
            await adapter.subscribe("bad subject", asyncio.Queue())

    async def test_subscribe_when_disconnected(self):
        with pytest.raises(SubscriptionError):
            await NatsAdapter().subscribe("orders", asyncio.Queue())
