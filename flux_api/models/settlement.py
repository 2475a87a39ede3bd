"""
Settlement payment models.
"""
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator

from ..utils.constants import DEFAULT_PAYMENT_METHOD, MAX_EXPENSE_AMOUNT, PaymentStatus


class SettlementCreateRequest(BaseModel):
    """
    Request to record a payment from one user to another.

    Completed payments count towards group balances straight away; pending
    ones are only listed. ``group_id`` is ignored on group-scoped routes,
    which take the group from the path.
    """
    payer_user_id: UUID
    payee_user_id: UUID
    amount: Decimal = Field(..., gt=0, le=Decimal(str(MAX_EXPENSE_AMOUNT)), decimal_places=2)
    group_id: Optional[UUID] = None
    currency: Optional[str] = None
    status: PaymentStatus = PaymentStatus.COMPLETED
    payment_method: str = Field(default=DEFAULT_PAYMENT_METHOD, min_length=1, max_length=50)
    notes: Optional[str] = None

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        if len(v) != 3 or not v.isalpha():
            raise ValueError("Currency must be a 3-letter ISO code")
        return v.upper()

    @field_validator("status")
    @classmethod
    def not_cancelled(cls, v: PaymentStatus) -> PaymentStatus:
        if v == PaymentStatus.CANCELLED:
            raise ValueError("A new payment must be pending or completed")
        return v

    @model_validator(mode="after")
    def distinct_parties(self) -> "SettlementCreateRequest":
        if self.payer_user_id == self.payee_user_id:
            raise ValueError("Payer and payee must be different users")
        return self


class SettlementFilters(BaseModel):
    """Query-string filters for payment listings."""
    group_id: Optional[UUID] = None
    user_id: Optional[UUID] = None
    status: Optional[PaymentStatus] = None
