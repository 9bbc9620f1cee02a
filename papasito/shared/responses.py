"""Response envelopes shared by every API gateway"""

import logging

from fastapi.responses import JSONResponse
from pydantic import ValidationError

from .. import config

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "Internal server error"


def error_response(message: str, status_code: int, **extra) -> JSONResponse:
    """`{error: message}` with the given status"""
    return JSONResponse(status_code=status_code, content={"error": message, **extra})


def unauthorized_response() -> JSONResponse:
    return error_response("Unauthorized", 401)


def invalid_request_response(details: list) -> JSONResponse:
    return error_response("Invalid request data", 400, details=details)


def internal_error_response(log_prefix: str, exc: Exception) -> JSONResponse:
    """
    Log a gateway failure and turn it into a 500 envelope.

    The exception message reaches the client only while EXPOSE_ERROR_DETAILS is on.
    """
    logger.error(f"{log_prefix}: {exc}", exc_info=exc)
    message = str(exc) if config.EXPOSE_ERROR_DETAILS else GENERIC_ERROR_MESSAGE
    return error_response(message, 500)


def validation_details(exc: ValidationError) -> list:
    """JSON-safe view of a pydantic ValidationError"""
    return [
        {"field": ".".join(str(part) for part in error["loc"]), "message": error["msg"]}
        for error in exc.errors(include_url=False, include_context=False, include_input=False)
    ]
