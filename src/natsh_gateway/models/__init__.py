"""Pydantic models shared by the gateway and its adapters."""
from .schemas import BusMessage, ErrorResponse, HealthResponse

__all__ = [
    "BusMessage",
    "ErrorResponse",
    "HealthResponse",
]
