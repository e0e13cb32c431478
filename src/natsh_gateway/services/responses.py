"""
Consistent JSON responses for the gateway.

Success bodies are pretty-printed; errors are always a compact
`{"message": ...}` envelope.
"""
import logging

from pydantic import BaseModel, ValidationError
from pydantic_core import PydanticSerializationError
from starlette.responses import Response

from ..core.errors import EncodingFailure
from ..models.schemas import BusMessage, ErrorResponse

logger = logging.getLogger(__name__)

JSON_MEDIA_TYPE = "application/json"
FALLBACK_ERROR_BODY = '{"code": 500, "message": "Could not write response"}'


def json_response(payload: BaseModel) -> Response:
    """
    Render a success body as indented JSON.

    A marshal failure degrades to a bare 500 with no body.
    """
    try:
        body = payload.model_dump_json(indent=2, warnings=False)
    except (PydanticSerializationError, ValueError, TypeError) as e:
        logger.error(f"JSON marshal failed: {e}")
        return Response(status_code=500)

    return Response(
        content=body,
        status_code=200,
        media_type=f"{JSON_MEDIA_TYPE}; charset=utf-8",
        headers={"X-Content-Type-Options": "nosniff"},
    )


def json_error(status_code: int, message: str) -> Response:
    """
    Render `{"message": ...}` with the given status.

    If the envelope itself cannot be marshalled, a hardcoded JSON body is sent
    with status 500 so the client still gets well-formed JSON.
    """
    try:
        body = ErrorResponse(message=message).model_dump_json()
    except (ValidationError, PydanticSerializationError, ValueError, TypeError) as e:
        logger.error(f"Could not marshal error response: {e}")
        return Response(content=FALLBACK_ERROR_BODY, status_code=500, media_type=JSON_MEDIA_TYPE)

    return Response(content=body, status_code=status_code, media_type=JSON_MEDIA_TYPE)


def encode_message(message: BusMessage) -> str:
    """
    Compact JSON for one event-stream frame.

    Raises:
        EncodingFailure: If the message cannot be marshalled
    """
    try:
        return message.model_dump_json(warnings=False)
    except (PydanticSerializationError, ValueError, TypeError) as e:
        raise EncodingFailure(f"Could not encode message on {message.subject}: {e}") from e
