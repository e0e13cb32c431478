"""
Bus Adapters

Adapter pattern implementation for the bus backends the gateway can bridge
to (NATS, In-Memory).
"""
from .base import BusAdapter, BusError, BusTimeoutError, Subscription, SubscriptionError
from .nats_adapter import NatsAdapter
from .memory_adapter import MemoryAdapter

__all__ = [
    "BusAdapter",
    "BusError",
    "BusTimeoutError",
    "Subscription",
    "SubscriptionError",
    "NatsAdapter",
    "MemoryAdapter",
]
