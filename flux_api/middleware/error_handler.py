"""
Error handling middleware for the application.
"""

import traceback
import uuid
from typing import Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
import structlog

logger = structlog.get_logger()

REQUEST_ID_HEADER = "X-Request-ID"


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Assign request ids and turn uncaught exceptions into 500 envelopes."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request and handle any exceptions."""
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id

        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error(
                "Unexpected exception occurred",
                request_id=request_id,
                error_type=type(exc).__name__,
                error_message=str(exc),
                traceback=traceback.format_exc(),
                path=request.url.path,
                method=request.method
            )
            response = JSONResponse(
                status_code=500,
                content={
                    "success": False,
                    "error": "Internal server error",
                    "code": "INTERNAL_SERVER_ERROR"
                }
            )

        response.headers[REQUEST_ID_HEADER] = request_id
        return response
