"""
NATS HTTP Gateway

Exposes the bus's publish, request/reply and subscribe operations over plain
HTTP so that HTTP-only clients can take part in the messaging fabric.
"""
__version__ = "0.1.0"
