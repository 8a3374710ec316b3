import logging
import traceback
from typing import Optional

from fastapi.responses import JSONResponse, Response

logger = logging.getLogger(__name__)


class GatewayError(Exception):
    """Base class for errors converted to HTTP responses at the route boundary."""
    status_code: int = 500
    err_type: str = "internal_error"

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class ClientInputError(GatewayError):
    """Malformed or unsupported request shape. Raised before any upstream call."""
    status_code = 400
    err_type = "invalid_request_error"


class UnsupportedContentType(ClientInputError):
    pass


class UnsupportedResponseFormat(ClientInputError):
    pass


class MalformedDataURI(ClientInputError):
    pass


class FetchError(ClientInputError):
    """A remote image referenced by the request could not be fetched."""


class UpstreamTransportError(GatewayError):
    """Network failure reaching Gemini."""
    status_code = 500
    err_type = "upstream_error"


class UpstreamProtocolError(GatewayError):
    """Gemini answered with a non-2xx status; status and body go back verbatim."""

    def __init__(self, status_code: int, body: bytes, content_type: Optional[str] = None):
        self.body = body
        self.content_type = content_type
        super().__init__(f"Upstream error: {status_code}", status_code)


class StreamMalformedError(GatewayError):
    """Unparseable payload inside an upstream stream. Contained per event."""


class ResidualBufferWarning(RuntimeWarning):
    """Trailing unterminated data left in the SSE buffer at end of stream."""


def error_response(message: str, err_type: str, status_code: int, code: Optional[int] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": {
                "message": message,
                "type": err_type,
                "code": code if code is not None else status_code,
            }
        },
    )


def map_gateway_error(err: GatewayError) -> Response:
    """Map GatewayError to appropriate HTTP response with logging."""
    if isinstance(err, UpstreamProtocolError):
        logger.warning(
            f"Upstream returned status {err.status_code}",
            extra={"status_code": err.status_code, "error_type": type(err).__name__}
        )
        return Response(
            content=err.body,
            status_code=err.status_code,
            media_type=err.content_type,
        )

    # Client errors are expected; transport failures are not
    level = logging.WARNING if isinstance(err, ClientInputError) else logging.ERROR
    logger.log(
        level,
        f"{type(err).__name__}: {err.message} (status_code={err.status_code})",
        extra={"status_code": err.status_code, "error_type": type(err).__name__}
    )
    return error_response(err.message, err.err_type, err.status_code)


def map_generic_error(err: Exception) -> JSONResponse:
    """Map unexpected exceptions to 500 error with detailed logging."""
    logger.error(
        f"Unexpected error: {type(err).__name__}: {str(err)}",
        exc_info=True,
        extra={
            "error_type": type(err).__name__,
            "error_message": str(err),
            "traceback": traceback.format_exc(),
        }
    )

    # Avoid leaking internal details to client
    return error_response("Internal server error", "internal_error", 500)
