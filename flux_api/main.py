"""
FastAPI application entry point.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
import structlog

from .config import Settings, settings
from .infrastructure import cleanup_database, cleanup_identity_client
from .middleware.error_handler import ErrorHandlerMiddleware
from .middleware.logging import LoggingMiddleware
from .middleware.security import SecurityHeadersMiddleware
from .routers import admin, auth, expenses, groups, health, oauth, settlements, testing
from .utils.exceptions import AppException
from .utils.validation import flatten_errors

HTTP_ERROR_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
}


# Configure structured logging
def configure_logging(app_settings: Optional[Settings] = None):
    """Configure structured logging."""
    app_settings = app_settings or settings
    logging.basicConfig(
        format="%(message)s",
        stream=None,
        level=getattr(logging, app_settings.log_level),
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management."""
    # Startup
    app_settings: Settings = app.state.settings
    configure_logging(app_settings)
    logger = structlog.get_logger()

    logger.info(
        "Application starting up",
        app_name=app_settings.app_name,
        version=app_settings.version,
        environment=app_settings.environment,
        debug=app_settings.debug,
        database_configured=bool(app_settings.database_url),
        admin_api_enabled=bool(app_settings.admin_api_key)
    )
    if not app_settings.admin_api_key:
        logger.warning("ADMIN_API_KEY is not set; admin endpoints will reject every request")

    yield

    # Shutdown
    logger.info("Application shutting down")

    # Cleanup resources
    await cleanup_database()
    await cleanup_identity_client()
    logger.info("Resources cleaned up")


def register_exception_handlers(app: FastAPI) -> None:
    """Render every error in the failed response envelope."""

    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException):
        """Handle application exceptions."""
        return JSONResponse(status_code=exc.status_code, content=exc.to_envelope())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        """Request body, query or path failed validation."""
        return JSONResponse(
            status_code=400,
            content={
                "success": False,
                "error": "Validation failed",
                "code": "VALIDATION_ERROR",
                "details": flatten_errors(exc.errors())
            }
        )

    @app.exception_handler(PydanticValidationError)
    async def model_validation_handler(request: Request, exc: PydanticValidationError):
        """A model built inside a dependency or handler rejected its input."""
        return JSONResponse(
            status_code=400,
            content={
                "success": False,
                "error": "Validation failed",
                "code": "VALIDATION_ERROR",
                "details": flatten_errors(exc.errors())
            }
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Framework errors such as unknown routes or wrong methods."""
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "success": False,
                "error": str(exc.detail),
                "code": HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR")
            },
            headers=getattr(exc, "headers", None)
        )


def create_app(app_settings: Optional[Settings] = None) -> FastAPI:
    """Create and configure FastAPI application."""
    app_settings = app_settings or settings

    app = FastAPI(
        title="Flux API",
        version=app_settings.version,
        description="""
**Flux API** - Expense tracking and splitting backend

## Features

- **Authentication**: Email/password and GitHub/Google OAuth through Supabase Auth
- **Expenses**: Create, list, update and delete expenses with categories
- **Groups**: Shared expense groups with join codes, equal splits and balances
- **Administration**: SQL migrations triggered over an API-key protected endpoint

## Authentication

Expense, group and profile endpoints require a **Bearer Token** issued by
`/api/v1/auth/signin` or the OAuth callback.
        """,
        debug=app_settings.debug,
        docs_url=app_settings.docs_url,
        redoc_url=None,
        openapi_url=app_settings.openapi_url,
        lifespan=lifespan
    )
    app.state.settings = app_settings

    # CORS middleware
    cors_origins = app_settings.get_cors_origins_list()
    if app_settings.debug and not cors_origins:
        # Default CORS for development
        cors_origins = [
            "http://localhost:3000",
            "http://localhost:5173",
            "http://127.0.0.1:3000",
            "http://127.0.0.1:5173"
        ]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=[
            "Authorization",
            "Content-Type",
            "X-API-Key",
            "X-Request-ID",
            "Accept",
            "Origin"
        ],
        expose_headers=["X-Request-ID", "X-Response-Time"]
    )

    # Custom middleware (order matters - last added is executed first)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(ErrorHandlerMiddleware)

    register_exception_handlers(app)

    # Include routers
    app.include_router(
        health.router,
        prefix="/api",
        tags=["health"]
    )

    app.include_router(
        health.v1_router,
        prefix=app_settings.api_prefix,
        tags=["health"]
    )

    app.include_router(
        auth.router,
        prefix=f"{app_settings.api_prefix}/auth",
        tags=["authentication"]
    )

    app.include_router(
        oauth.router,
        prefix=f"{app_settings.api_prefix}/auth/oauth",
        tags=["oauth"]
    )

    # Demo routes must be matched before /expenses/{expense_id}
    if not app_settings.is_production:
        app.include_router(
            testing.router,
            prefix=f"{app_settings.api_prefix}/expenses",
            tags=["testing"]
        )

    app.include_router(
        expenses.router,
        prefix=f"{app_settings.api_prefix}/expenses",
        tags=["expenses"]
    )

    app.include_router(
        groups.router,
        prefix=f"{app_settings.api_prefix}/groups",
        tags=["groups"]
    )

    app.include_router(
        settlements.router,
        prefix=f"{app_settings.api_prefix}/settlements",
        tags=["settlements"]
    )

    app.include_router(
        admin.router,
        prefix=app_settings.admin_prefix,
        tags=["admin"]
    )

    # Root endpoint
    @app.get("/", include_in_schema=False)
    async def root():
        """Root endpoint."""
        return {
            "message": f"Welcome to {app_settings.app_name}",
            "version": app_settings.version,
            "docs_url": app_settings.docs_url,
            "health_check": "/api/health"
        }

    return app


# Create app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "flux_api.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
