"""
Security middleware for the application.
"""

from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from ..config import get_settings
from ..utils.constants import SECURITY_HEADERS

CONTENT_SECURITY_POLICY = (
    "default-src 'self'; "
    "script-src 'self'; "
    "style-src 'self' 'unsafe-inline'; "
    "img-src 'self' data: https:; "
    "font-src 'self'; "
    "connect-src 'self'; "
    "frame-ancestors 'none';"
)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Middleware to add security headers to responses."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Add security headers to the response."""
        response = await call_next(request)
        settings = getattr(request.app.state, "settings", None) or get_settings()

        for header, value in SECURITY_HEADERS.items():
            response.headers[header] = value

        # Only add HSTS in production with HTTPS
        if settings.is_production:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        # Interactive docs need inline scripts
        if not settings.debug and settings.docs_url is None:
            response.headers["Content-Security-Policy"] = CONTENT_SECURITY_POLICY

        return response
