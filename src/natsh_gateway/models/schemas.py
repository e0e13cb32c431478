import base64
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_serializer


class BusMessage(BaseModel):
    """
    A message as it travels over the bus.

    Built fresh for every HTTP request and handed to the adapter; messages
    received from the bus are converted into this shape before being
    rendered back to HTTP callers.
    """
    subject: str = Field(..., min_length=1, description="Bus subject")
    reply: Optional[str] = Field(default=None, description="Reply-to subject")
    headers: Dict[str, List[str]] = Field(
        default_factory=dict,
        description="Bus headers (ordered, multi-valued)",
    )
    data: bytes = Field(default=b"", description="Opaque payload")

    @field_serializer("data")
    def _serialize_data(self, data: bytes) -> str:
        return base64.b64encode(data).decode("ascii")


class ErrorResponse(BaseModel):
    """The only structured error shape returned to callers."""
    message: str = Field(..., description="Error message")


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = Field(..., description="Service status")
    adapter: str = Field(..., description="Active adapter type")
    connected: bool = Field(..., description="Whether adapter is connected")
    active_streams: int = Field(..., description="Number of active event streams")
