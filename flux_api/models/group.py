"""
Group models.
"""
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator, model_validator

from ..utils.constants import DEFAULT_CURRENCY, GroupRole, SplitMethod


def _check_split(v: Optional[SplitMethod]) -> Optional[SplitMethod]:
    if v == SplitMethod.MANUAL:
        raise ValueError("Groups support equal, percentage or exact splits")
    return v


class GroupCreateRequest(BaseModel):
    """Request to create a group."""
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    currency: str = Field(default=DEFAULT_CURRENCY, min_length=3, max_length=3)
    default_split_method: SplitMethod = SplitMethod.EQUAL
    is_public: bool = False

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Group name is required")
        return v.strip()

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v: str) -> str:
        return v.upper()

    @field_validator("default_split_method")
    @classmethod
    def supported_split(cls, v: SplitMethod) -> SplitMethod:
        return _check_split(v)


class GroupUpdateRequest(BaseModel):
    """
    Request to update a group. Only provided fields change.

    Setting ``is_active`` to false archives the group; setting it back to
    true restores it.
    """
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    default_split_method: Optional[SplitMethod] = None
    is_public: Optional[bool] = None
    is_active: Optional[bool] = None

    model_config = ConfigDict(extra="forbid")

    @field_validator("name", "currency", "default_split_method", "is_public", "is_active", mode="before")
    @classmethod
    def not_null(cls, v: Any, info: ValidationInfo) -> Any:
        if v is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return v

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("Group name is required")
        return v.strip() if v is not None else v

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v: Optional[str]) -> Optional[str]:
        return v.upper() if v is not None else v

    @field_validator("default_split_method")
    @classmethod
    def supported_split(cls, v: Optional[SplitMethod]) -> Optional[SplitMethod]:
        return _check_split(v)

    @model_validator(mode="after")
    def at_least_one_field(self) -> "GroupUpdateRequest":
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided")
        return self


class JoinGroupRequest(BaseModel):
    """Request to join a group with its join code."""
    join_code: str = Field(..., min_length=1)

    @field_validator("join_code")
    @classmethod
    def normalize(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Join code is required")
        return v.strip().upper()


class MemberAddRequest(BaseModel):
    """Request to add a registered user to a group."""
    user_id: UUID
    role: GroupRole = GroupRole.MEMBER
    nickname: Optional[str] = Field(None, max_length=100)


class MemberUpdateRequest(BaseModel):
    """Request to change a member's role, nickname or notification settings."""
    role: Optional[GroupRole] = None
    nickname: Optional[str] = Field(None, max_length=100)
    notification_preferences: Optional[Dict[str, bool]] = None

    model_config = ConfigDict(extra="forbid")

    @field_validator("role", "notification_preferences", mode="before")
    @classmethod
    def not_null(cls, v: Any, info: ValidationInfo) -> Any:
        if v is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return v

    @model_validator(mode="after")
    def at_least_one_field(self) -> "MemberUpdateRequest":
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided")
        return self
