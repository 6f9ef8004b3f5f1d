"""
HTTP error handling.

Plugin errors are mapped to status codes by type; anything else that escapes
a route is logged and returned as a 500.
"""

import logging
import uuid
from typing import Awaitable, Callable, Dict, Type

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from ...core.exceptions import (
    PluginError,
    PluginLoadError,
    PluginNotExecutableError,
    PluginNotFoundError,
    PluginUnloadAllError,
    PluginUnloadError,
    ResourceAccessDeniedError,
    VALIDATION_ERRORS,
)

logger = logging.getLogger(__name__)

ERROR_STATUS_CODES: Dict[Type[PluginError], int] = {
    PluginNotFoundError: status.HTTP_404_NOT_FOUND,
    ResourceAccessDeniedError: status.HTTP_403_FORBIDDEN,
    PluginNotExecutableError: status.HTTP_409_CONFLICT,
    PluginLoadError: status.HTTP_500_INTERNAL_SERVER_ERROR,
    PluginUnloadError: status.HTTP_500_INTERNAL_SERVER_ERROR,
    PluginUnloadAllError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}
ERROR_STATUS_CODES.update({error_type: status.HTTP_400_BAD_REQUEST for error_type in VALIDATION_ERRORS})


def status_code_for(error: PluginError) -> int:
    """Most specific registered status code for an error, 500 if none matches."""
    for error_type in type(error).__mro__:
        if error_type in ERROR_STATUS_CODES:
            return ERROR_STATUS_CODES[error_type]
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def plugin_error_handler(request: Request, exc: PluginError) -> JSONResponse:
    """Translate a PluginError raised by a route into a JSON error response."""
    status_code = status_code_for(exc)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    else:
        logger.warning(f"{request.method} {request.url.path} rejected: {exc}")

    return JSONResponse(
        status_code=status_code,
        content={
            "error": type(exc).__name__,
            "message": str(exc),
            "plugin_name": exc.plugin_name,
        }
    )


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Middleware for centralized handling of unexpected errors."""

    async def dispatch(self, request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        request.state.request_id = str(uuid.uuid4())
        try:
            return await call_next(request)
        except Exception as e:
            logger.exception(f"Unhandled error in {request.method} {request.url}: {e}")
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    "error": "Internal server error",
                    "message": str(e) if request.app.debug else "An unexpected error occurred",
                    "request_id": request.state.request_id
                }
            )
