"""
Pydantic models for the Flux API.
"""
from .api_responses import (
    DatabaseHealthResponse,
    Envelope,
    ErrorEnvelope,
    HealthCheckResponse,
    has_more,
    ok,
    paginated,
)
from .auth import (
    AuthSession,
    AuthUser,
    LinkProviderRequest,
    OAuthProviderInfo,
    ProfileUpdateRequest,
    RefreshRequest,
    SigninRequest,
    SignupRequest,
    UnlinkProviderRequest,
)
from .expense import (
    CategoryCreateRequest,
    CategoryUpdateRequest,
    ExpenseCreateRequest,
    ExpenseFilters,
    ExpenseUpdateRequest,
)
from .group import (
    GroupCreateRequest,
    GroupUpdateRequest,
    JoinGroupRequest,
    MemberAddRequest,
    MemberUpdateRequest,
)
from .settlement import SettlementCreateRequest, SettlementFilters

__all__ = [
    "AuthSession",
    "AuthUser",
    "CategoryCreateRequest",
    "CategoryUpdateRequest",
    "DatabaseHealthResponse",
    "Envelope",
    "ErrorEnvelope",
    "ExpenseCreateRequest",
    "ExpenseFilters",
    "ExpenseUpdateRequest",
    "GroupCreateRequest",
    "GroupUpdateRequest",
    "HealthCheckResponse",
    "JoinGroupRequest",
    "LinkProviderRequest",
    "MemberAddRequest",
    "MemberUpdateRequest",
    "OAuthProviderInfo",
    "ProfileUpdateRequest",
    "RefreshRequest",
    "SettlementCreateRequest",
    "SettlementFilters",
    "SigninRequest",
    "SignupRequest",
    "UnlinkProviderRequest",
    "has_more",
    "ok",
    "paginated",
]
