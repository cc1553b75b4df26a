"""
Translation of service errors into HTTP responses.

Public endpoints never see upstream error text; the body is always one of
the fixed messages on the exception class.
"""

from fastapi.responses import JSONResponse

from builder_bridge.services.errors import CredentialProtocolError


def protocol_error_response(exc: CredentialProtocolError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.public_message},
    )
