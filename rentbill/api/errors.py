"""API error handling and response helpers."""

import logging
from typing import Any, Dict

from fastapi import Request, status
from fastapi.responses import JSONResponse

from rentbill.services.errors import BillingError

logger = logging.getLogger(__name__)

HTTP_STATUS_BY_CODE = {
    "validation_error": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "not_found": status.HTTP_404_NOT_FOUND,
    "invalid_contract": status.HTTP_400_BAD_REQUEST,
    "invalid_operation": status.HTTP_400_BAD_REQUEST,
    "duplicate_period": status.HTTP_409_CONFLICT,
    "concurrency_conflict": status.HTTP_409_CONFLICT,
}


def http_status_for(error: BillingError) -> int:
    return HTTP_STATUS_BY_CODE.get(error.code, status.HTTP_400_BAD_REQUEST)


def error_response(code: str, message: str) -> Dict[str, Any]:
    """Create a standardized error response."""
    return {
        "error": {
            "code": code,
            "message": message,
        }
    }


async def billing_error_handler(request: Request, exc: BillingError) -> JSONResponse:
    """Render a BillingError raised by a route as {"error": {...}}."""
    http_status = http_status_for(exc)
    logger.warning("%s %s -> %d [%s] %s", request.method, request.url.path, http_status, exc.code, exc.message)
    return JSONResponse(status_code=http_status, content=error_response(exc.code, exc.message))


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled error on %s %s: %s", request.method, request.url.path, exc, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_response("internal_error", "Internal server error"),
    )


__all__ = [
    "HTTP_STATUS_BY_CODE",
    "billing_error_handler",
    "error_response",
    "http_status_for",
    "unexpected_error_handler",
]
