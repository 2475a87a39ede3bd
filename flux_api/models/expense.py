"""
Expense and category models.
"""
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator, model_validator

from ..utils.constants import (
    DEFAULT_CURRENCY,
    MAX_DESCRIPTION_LENGTH,
    MAX_EXPENSE_AMOUNT,
    MAX_NAME_LENGTH,
    ExpenseStatus,
    SplitMethod,
)


def _check_currency(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    if len(v) != 3 or not v.isalpha():
        raise ValueError("Currency must be a 3-letter ISO code")
    return v.upper()


class ExpenseCreateRequest(BaseModel):
    """Request to create a new expense."""
    description: str = Field(..., min_length=1, max_length=MAX_DESCRIPTION_LENGTH)
    amount: Decimal = Field(..., gt=0, le=Decimal(str(MAX_EXPENSE_AMOUNT)), decimal_places=2)
    currency: str = Field(default=DEFAULT_CURRENCY)
    category_id: Optional[UUID] = None
    expense_date: Optional[date] = None
    location: Optional[str] = Field(None, max_length=200)
    group_id: Optional[UUID] = None
    split_method: SplitMethod = SplitMethod.EQUAL
    split_data: Optional[Dict[str, Any]] = None
    notes: Optional[str] = None
    receipt_url: Optional[str] = None

    @field_validator("description")
    @classmethod
    def description_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Expense description is required")
        return v.strip()

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, v: str) -> str:
        return _check_currency(v)


class ExpenseUpdateRequest(BaseModel):
    """Request to update an expense. Only provided fields change."""
    description: Optional[str] = Field(None, min_length=1, max_length=MAX_DESCRIPTION_LENGTH)
    amount: Optional[Decimal] = Field(None, gt=0, le=Decimal(str(MAX_EXPENSE_AMOUNT)), decimal_places=2)
    currency: Optional[str] = None
    category_id: Optional[UUID] = None
    expense_date: Optional[date] = None
    location: Optional[str] = Field(None, max_length=200)
    split_method: Optional[SplitMethod] = None
    split_data: Optional[Dict[str, Any]] = None
    notes: Optional[str] = None
    status: Optional[ExpenseStatus] = None

    model_config = ConfigDict(extra="forbid")

    @field_validator("description", "amount", "currency", "split_method", "status", mode="before")
    @classmethod
    def not_null(cls, v: Any, info: ValidationInfo) -> Any:
        # These columns are NOT NULL; omit a field to leave it unchanged
        if v is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return v

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, v: Optional[str]) -> Optional[str]:
        return _check_currency(v)

    @field_validator("status")
    @classmethod
    def status_not_deleted(cls, v: Optional[ExpenseStatus]) -> Optional[ExpenseStatus]:
        if v == ExpenseStatus.DELETED:
            raise ValueError("Use DELETE /expenses/{id} to delete an expense")
        return v

    @model_validator(mode="after")
    def at_least_one_field(self) -> "ExpenseUpdateRequest":
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided")
        return self


class ExpenseFilters(BaseModel):
    """Query-string filters for expense listings."""
    group_id: Optional[UUID] = None
    category_id: Optional[UUID] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    min_amount: Optional[Decimal] = Field(None, ge=0)
    max_amount: Optional[Decimal] = Field(None, ge=0)
    currency: Optional[str] = None
    status: Optional[ExpenseStatus] = None
    is_settled: Optional[bool] = None


class CategoryCreateRequest(BaseModel):
    """Request to create a new expense category."""
    name: str = Field(..., min_length=1, max_length=MAX_NAME_LENGTH)
    description: Optional[str] = Field(None, max_length=MAX_DESCRIPTION_LENGTH)
    icon_name: Optional[str] = Field(None, max_length=50)
    color_hex: Optional[str] = Field(None, pattern=r"^#[0-9A-Fa-f]{6}$")
    parent_category_id: Optional[UUID] = None
    is_public: bool = False

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Category name is required")
        return v.strip()


class CategoryUpdateRequest(BaseModel):
    """Request to update a user-owned category. Only provided fields change."""
    name: Optional[str] = Field(None, min_length=1, max_length=MAX_NAME_LENGTH)
    description: Optional[str] = Field(None, max_length=MAX_DESCRIPTION_LENGTH)
    icon_name: Optional[str] = Field(None, max_length=50)
    color_hex: Optional[str] = Field(None, pattern=r"^#[0-9A-Fa-f]{6}$")
    parent_category_id: Optional[UUID] = None
    is_public: Optional[bool] = None

    model_config = ConfigDict(extra="forbid")

    @field_validator("name", "is_public", mode="before")
    @classmethod
    def not_null(cls, v: Any, info: ValidationInfo) -> Any:
        if v is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return v

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("Category name is required")
        return v.strip() if v is not None else v

    @model_validator(mode="after")
    def at_least_one_field(self) -> "CategoryUpdateRequest":
        if not self.model_fields_set:
            raise ValueError("No valid fields to update")
        return self
