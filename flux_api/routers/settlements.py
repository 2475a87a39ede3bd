"""
Settlement payment endpoints.
"""
from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from ..models.api_responses import ERROR_RESPONSES, ok, paginated
from ..models.auth import AuthUser
from ..models.settlement import SettlementCreateRequest, SettlementFilters
from ..services import SettlementService
from ..utils.constants import PaymentStatus
from ..utils.dependencies import PaginationParams, get_current_user, get_settlement_service

router = APIRouter()


def get_settlement_filters(
    group_id: Optional[UUID] = Query(None),
    user_id: Optional[UUID] = Query(None, description="Only payments with this counterparty"),
    payment_status: Optional[PaymentStatus] = Query(None, alias="status")
) -> SettlementFilters:
    return SettlementFilters(group_id=group_id, user_id=user_id, status=payment_status)


@router.get("", status_code=status.HTTP_200_OK, responses=ERROR_RESPONSES)
async def list_settlements(
    filters: SettlementFilters = Depends(get_settlement_filters),
    pagination: PaginationParams = Depends(),
    current_user: AuthUser = Depends(get_current_user),
    settlement_service: SettlementService = Depends(get_settlement_service)
) -> Dict[str, Any]:
    """
    **Payment history**

    Payments the caller made or received, newest first, together with the
    completed totals exchanged with each counterparty.
    """
    payments, total, balances = await settlement_service.list_payments(
        current_user.id,
        filters=filters,
        limit=pagination.limit,
        offset=pagination.offset
    )
    return paginated(payments, "settlements", total, pagination.limit, pagination.offset, balances=balances)


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    responses={**ERROR_RESPONSES, 403: {"description": "Caller is neither payer nor payee"}}
)
async def create_settlement(
    request: SettlementCreateRequest,
    current_user: AuthUser = Depends(get_current_user),
    settlement_service: SettlementService = Depends(get_settlement_service)
) -> Dict[str, Any]:
    """Record a payment the caller made or received."""
    payment = await settlement_service.record_payment(current_user.id, request)
    return ok({"settlement": payment}, "Settlement recorded successfully")
