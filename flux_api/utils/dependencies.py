"""
Dependency injection utilities for FastAPI.
"""
import secrets
from typing import Optional

from fastapi import Depends, Header, Query
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
import structlog

from ..config import Settings, get_settings
from ..models.api_responses import has_more
from ..models.auth import AuthUser
from ..services import (
    AuthService,
    CategoryService,
    ExpenseService,
    GroupService,
    MigrationRunner,
    SettlementService,
    UserService,
)
from .constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, ExpenseSortField, SortOrder
from .exceptions import AuthenticationError, ValidationError

logger = structlog.get_logger()
security = HTTPBearer(auto_error=False)

__all__ = [
    "PaginationParams",
    "get_access_token",
    "get_auth_service",
    "get_category_service",
    "get_current_user",
    "get_expense_service",
    "get_group_service",
    "get_migration_runner",
    "get_settlement_service",
    "get_user_service",
    "has_more",
    "require_admin_key",
]


# Service providers, overridable through app.dependency_overrides
def get_auth_service() -> AuthService:
    return AuthService()


def get_user_service() -> UserService:
    return UserService()


def get_expense_service() -> ExpenseService:
    return ExpenseService()


def get_category_service() -> CategoryService:
    return CategoryService()


def get_group_service() -> GroupService:
    return GroupService()


def get_settlement_service() -> SettlementService:
    return SettlementService()


def get_migration_runner() -> MigrationRunner:
    return MigrationRunner()


async def get_access_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> str:
    """Return the bearer token of the request or fail with 401."""
    if credentials is None or not credentials.credentials:
        raise AuthenticationError()
    return credentials.credentials


async def get_current_user(
    access_token: str = Depends(get_access_token),
    auth_service: AuthService = Depends(get_auth_service)
) -> AuthUser:
    """
    Resolve the authenticated user from ``Authorization: Bearer <token>``.

    The token is validated by the identity provider. Missing headers, other
    schemes and rejected tokens all produce 401 ``UNAUTHORIZED``.
    """
    return await auth_service.get_user(access_token)


class PaginationParams:
    """Offset pagination and sorting query parameters."""

    def __init__(
        self,
        limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE, description="Page size"),
        offset: int = Query(0, ge=0, description="Items to skip"),
        sort_by: ExpenseSortField = Query(ExpenseSortField.CREATED_AT, description="Sort column"),
        sort_order: str = Query(SortOrder.DESC.value, description="ASC or DESC, case-insensitive")
    ):
        normalized = sort_order.upper()
        if normalized not in (SortOrder.ASC.value, SortOrder.DESC.value):
            raise ValidationError(details={"sort_order": ["sort_order must be ASC or DESC"]})

        self.limit = limit
        self.offset = offset
        self.sort_by = sort_by
        self.sort_order = SortOrder(normalized)

    def has_more(self, total: int) -> bool:
        return has_more(total, self.limit, self.offset)


async def require_admin_key(
    x_api_key: Optional[str] = Header(None, alias="X-API-Key"),
    settings: Settings = Depends(get_settings)
) -> None:
    """
    Check ``X-API-Key`` against ``ADMIN_API_KEY`` in constant time.

    Without a configured key every request is rejected.
    """
    expected = settings.admin_api_key
    if not expected:
        logger.warning("Admin endpoint called but ADMIN_API_KEY is not configured")
        raise AuthenticationError(message="Unauthorized - Invalid API key")

    if not x_api_key or not secrets.compare_digest(x_api_key.encode(), expected.encode()):
        logger.warning("Admin endpoint called with invalid API key")
        raise AuthenticationError(message="Unauthorized - Invalid API key")
