"""
Error taxonomy for the gateway.

Every failure the gateway reports to an HTTP caller is one of these. Bus
adapter errors are translated into them at the bridge boundary and rendered
as a `{"message": ...}` JSON body with the carried status code.
"""


class GatewayError(Exception):
    """Base exception for errors rendered to the HTTP caller."""
    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ClientInputError(GatewayError):
    """The request itself is unusable (missing subject, unreadable body)."""
    status_code = 400
    default_message = "Bad request"


class MissingSubject(ClientInputError):
    """The URL path has no non-empty final segment."""
    default_message = "Subject not found"


class UpstreamTimeout(GatewayError):
    """The bus did not complete the operation before its deadline."""
    status_code = 504
    default_message = "Request timed out"


class UpstreamError(GatewayError):
    """Any other bus failure."""
    status_code = 400
    default_message = "Upstream error"


class MethodNotSupported(GatewayError):
    """The HTTP method has no bus operation."""
    status_code = 405
    default_message = "Invalid method"


class EncodingFailure(GatewayError):
    """A value could not be marshalled to JSON."""
    status_code = 500
    default_message = "Could not encode message"
