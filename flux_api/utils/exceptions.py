"""
Custom exceptions for the application.
All business logic and technical exceptions are defined here.
"""

from typing import Any, Dict, List, Optional, Union

Details = Union[List[str], Dict[str, List[str]]]


class AppException(Exception):
    """Base exception for all application exceptions."""

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        status_code: int = 500,
        details: Optional[Details] = None
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or []
        super().__init__(self.message)

    def to_envelope(self) -> Dict[str, Any]:
        """Render the exception as a failed response envelope."""
        body: Dict[str, Any] = {
            "success": False,
            "error": self.message,
            "code": self.code,
        }
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(AppException):
    """Raised when input validation fails."""

    def __init__(
        self,
        message: str = "Validation failed",
        details: Optional[Details] = None,
        code: str = "VALIDATION_ERROR"
    ):
        super().__init__(
            message=message,
            code=code,
            status_code=400,
            details=details
        )


class AuthenticationError(AppException):
    """Raised when the caller is not authenticated."""

    def __init__(
        self,
        message: str = "Authentication required",
        details: Optional[Details] = None,
        code: str = "UNAUTHORIZED"
    ):
        super().__init__(
            message=message,
            code=code,
            status_code=401,
            details=details
        )


class AuthorizationError(AppException):
    """Raised when the caller may not act on a resource."""

    def __init__(
        self,
        message: str = "Access denied",
        details: Optional[Details] = None
    ):
        super().__init__(
            message=message,
            code="FORBIDDEN",
            status_code=403,
            details=details
        )


class NotFoundError(AppException):
    """Raised when a resource is not found."""

    def __init__(
        self,
        message: str = "Resource not found",
        resource_type: str = "resource",
        resource_id: Optional[str] = None
    ):
        if resource_id:
            message = f"{resource_type.title()} with ID '{resource_id}' not found"

        super().__init__(
            message=message,
            code="NOT_FOUND",
            status_code=404
        )


class BusinessLogicError(AppException):
    """Raised when business rules are violated."""

    def __init__(
        self,
        message: str = "Business logic error",
        details: Optional[Details] = None,
        code: str = "BUSINESS_LOGIC_ERROR"
    ):
        super().__init__(
            message=message,
            code=code,
            status_code=400,
            details=details
        )


class OAuthNotConfiguredError(AppException):
    """Raised when an OAuth provider has no real client credentials."""

    def __init__(self, provider_display_name: str):
        super().__init__(
            message=f"{provider_display_name} OAuth not configured for this environment",
            code="OAUTH_NOT_CONFIGURED",
            status_code=501
        )


class IdentityProviderError(AppException):
    """Raised when the identity provider rejects a call or returns an unusable answer."""

    def __init__(
        self,
        message: str = "Identity provider error",
        status_code: int = 400,
        code: str = "IDENTITY_PROVIDER_ERROR",
        details: Optional[Details] = None
    ):
        super().__init__(
            message=message,
            code=code,
            status_code=status_code,
            details=details
        )


class DatabaseError(AppException):
    """Raised when database operations fail."""

    def __init__(self, message: str = "Database operation failed"):
        super().__init__(
            message=message,
            code="DATABASE_ERROR",
            status_code=500
        )
