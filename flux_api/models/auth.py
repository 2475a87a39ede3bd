"""
Authentication and user models.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, ValidationInfo, field_validator

from ..utils.constants import MIN_PASSWORD_LENGTH


class AuthUser(BaseModel):
    """User as reported by the identity provider."""
    id: str
    email: Optional[str] = None
    email_confirmed: bool = False
    full_name: Optional[str] = None
    user_metadata: Dict[str, Any] = Field(default_factory=dict)
    app_metadata: Dict[str, Any] = Field(default_factory=dict)
    identities: List[Dict[str, Any]] = Field(default_factory=list)
    created_at: Optional[datetime] = None

    @classmethod
    def from_provider(cls, data: Dict[str, Any]) -> "AuthUser":
        """Build from a GoTrue user object."""
        user_metadata = data.get("user_metadata") or {}
        return cls(
            id=data["id"],
            email=data.get("email"),
            email_confirmed=bool(data.get("email_confirmed_at") or data.get("confirmed_at")),
            full_name=user_metadata.get("full_name") or user_metadata.get("name"),
            user_metadata=user_metadata,
            app_metadata=data.get("app_metadata") or {},
            identities=data.get("identities") or [],
            created_at=data.get("created_at"),
        )

    @property
    def providers(self) -> List[str]:
        """Names of the identity providers linked to this user."""
        names = [identity.get("provider") for identity in self.identities]
        return sorted({name for name in names if name and name != "email"})

    def public_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "email_confirmed": self.email_confirmed,
            "full_name": self.full_name,
        }


class AuthSession(BaseModel):
    """Token pair issued by the identity provider."""
    access_token: str
    refresh_token: str
    expires_in: Optional[int] = None
    expires_at: Optional[int] = None
    token_type: str = "bearer"

    model_config = ConfigDict(extra="ignore")


# DTOs for API requests
class SignupRequest(BaseModel):
    """Email/password registration request."""
    email: EmailStr
    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)
    full_name: Optional[str] = Field(None, max_length=100)
    confirm_password: Optional[str] = None

    @field_validator("confirm_password")
    @classmethod
    def passwords_match(cls, v: Optional[str], info: ValidationInfo) -> Optional[str]:
        password = info.data.get("password")
        if v is not None and password is not None and v != password:
            raise ValueError("Passwords don't match")
        return v


class SigninRequest(BaseModel):
    """Login request with email/password."""
    email: EmailStr
    password: str = Field(..., min_length=1)


class RefreshRequest(BaseModel):
    """Session refresh request."""
    refresh_token: str = Field(..., min_length=1)


class LinkProviderRequest(BaseModel):
    """Request to link an OAuth provider to the current account."""
    provider: str = Field(..., min_length=1)
    redirectTo: Optional[str] = None


class UnlinkProviderRequest(BaseModel):
    """Request to remove an OAuth provider from the current account."""
    provider: str = Field(..., min_length=1)


class ProfileUpdateRequest(BaseModel):
    """Editable fields of the local user record."""
    full_name: Optional[str] = Field(None, max_length=100)
    display_name: Optional[str] = Field(None, max_length=50)
    avatar_url: Optional[str] = None
    phone: Optional[str] = Field(None, max_length=20)
    timezone: Optional[str] = Field(None, max_length=50)
    language: Optional[str] = Field(None, max_length=10)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)

    model_config = ConfigDict(extra="forbid")


class OAuthProviderInfo(BaseModel):
    """OAuth provider as listed to clients."""
    name: str
    display_name: str
    icon: str
    scopes: Optional[str] = None
    enabled: bool = True
    configured: bool = False
    initiate_url: str
    callback_url: str
