"""
Expense and category endpoints.
"""
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from ..models.api_responses import ERROR_RESPONSES, ok, paginated
from ..models.auth import AuthUser
from ..models.expense import (
    CategoryCreateRequest,
    CategoryUpdateRequest,
    ExpenseCreateRequest,
    ExpenseFilters,
    ExpenseUpdateRequest,
)
from ..services import CategoryService, ExpenseService
from ..utils.constants import ExpenseStatus
from ..utils.dependencies import (
    PaginationParams,
    get_category_service,
    get_current_user,
    get_expense_service,
)

router = APIRouter()

NOT_FOUND_RESPONSES = {
    **ERROR_RESPONSES,
    403: {"description": "Only the expense payer may change it"},
    404: {"description": "Expense not found"},
}


def get_expense_filters(
    group_id: Optional[UUID] = Query(None),
    category_id: Optional[UUID] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    min_amount: Optional[Decimal] = Query(None, ge=0),
    max_amount: Optional[Decimal] = Query(None, ge=0),
    currency: Optional[str] = Query(None, min_length=3, max_length=3),
    expense_status: Optional[ExpenseStatus] = Query(None, alias="status"),
    is_settled: Optional[bool] = Query(None)
) -> ExpenseFilters:
    return ExpenseFilters(
        group_id=group_id,
        category_id=category_id,
        start_date=start_date,
        end_date=end_date,
        min_amount=min_amount,
        max_amount=max_amount,
        currency=currency.upper() if currency else None,
        status=expense_status,
        is_settled=is_settled
    )


# Category routes are declared first so "/categories" is not read as an expense id

@router.get("/categories", status_code=status.HTTP_200_OK, responses=ERROR_RESPONSES)
async def list_categories(
    include_system: bool = Query(False, description="Include built-in categories"),
    pagination: PaginationParams = Depends(),
    current_user: AuthUser = Depends(get_current_user),
    category_service: CategoryService = Depends(get_category_service)
) -> Dict[str, Any]:
    """List the caller's own and public categories."""
    categories, total = await category_service.list_categories(
        current_user.id,
        include_system=include_system,
        limit=pagination.limit,
        offset=pagination.offset
    )
    return paginated(categories, "categories", total, pagination.limit, pagination.offset)


@router.post("/categories", status_code=status.HTTP_201_CREATED, responses=ERROR_RESPONSES)
async def create_category(
    request: CategoryCreateRequest,
    current_user: AuthUser = Depends(get_current_user),
    category_service: CategoryService = Depends(get_category_service)
) -> Dict[str, Any]:
    category = await category_service.create_category(current_user.id, request)
    return ok({"category": category}, "Category created successfully")


CATEGORY_RESPONSES = {
    **ERROR_RESPONSES,
    403: {"description": "System category, or not created by the caller"},
    404: {"description": "Category not found"},
}


@router.get("/categories/{category_id}", status_code=status.HTTP_200_OK, responses=CATEGORY_RESPONSES)
async def get_category(
    category_id: UUID,
    current_user: AuthUser = Depends(get_current_user),
    category_service: CategoryService = Depends(get_category_service)
) -> Dict[str, Any]:
    category = await category_service.get_category(str(category_id), current_user.id)
    return ok({"category": category})


@router.put("/categories/{category_id}", status_code=status.HTTP_200_OK, responses=CATEGORY_RESPONSES)
async def update_category(
    category_id: UUID,
    request: CategoryUpdateRequest,
    current_user: AuthUser = Depends(get_current_user),
    category_service: CategoryService = Depends(get_category_service)
) -> Dict[str, Any]:
    """Update a category the caller created. System categories are read-only."""
    category = await category_service.update_category(str(category_id), current_user.id, request)
    return ok({"category": category}, "Category updated successfully")


@router.delete("/categories/{category_id}", status_code=status.HTTP_200_OK, responses=CATEGORY_RESPONSES)
async def delete_category(
    category_id: UUID,
    current_user: AuthUser = Depends(get_current_user),
    category_service: CategoryService = Depends(get_category_service)
) -> Dict[str, Any]:
    """Delete an unused category the caller created."""
    await category_service.delete_category(str(category_id), current_user.id)
    return ok(message="Category deleted successfully")


@router.get("", status_code=status.HTTP_200_OK, responses=ERROR_RESPONSES)
async def list_expenses(
    filters: ExpenseFilters = Depends(get_expense_filters),
    pagination: PaginationParams = Depends(),
    current_user: AuthUser = Depends(get_current_user),
    expense_service: ExpenseService = Depends(get_expense_service)
) -> Dict[str, Any]:
    """
    List expenses paid by the caller or shared through the caller's groups.

    Deleted expenses are never listed.
    """
    expenses, total = await expense_service.list_expenses(
        current_user.id,
        filters=filters,
        limit=pagination.limit,
        offset=pagination.offset,
        sort_by=pagination.sort_by,
        sort_order=pagination.sort_order
    )
    return paginated(expenses, "expenses", total, pagination.limit, pagination.offset)


@router.post("", status_code=status.HTTP_201_CREATED, responses=ERROR_RESPONSES)
async def create_expense(
    request: ExpenseCreateRequest,
    current_user: AuthUser = Depends(get_current_user),
    expense_service: ExpenseService = Depends(get_expense_service)
) -> Dict[str, Any]:
    """Create an expense paid by the caller."""
    expense = await expense_service.create_expense(current_user.id, request)
    return ok({"expense": expense}, "Expense created successfully")


@router.get("/{expense_id}", status_code=status.HTTP_200_OK, responses=NOT_FOUND_RESPONSES)
async def get_expense(
    expense_id: UUID,
    current_user: AuthUser = Depends(get_current_user),
    expense_service: ExpenseService = Depends(get_expense_service)
) -> Dict[str, Any]:
    expense = await expense_service.get_expense(str(expense_id), current_user.id)
    return ok({"expense": expense})


@router.put("/{expense_id}", status_code=status.HTTP_200_OK, responses=NOT_FOUND_RESPONSES)
async def update_expense(
    expense_id: UUID,
    request: ExpenseUpdateRequest,
    current_user: AuthUser = Depends(get_current_user),
    expense_service: ExpenseService = Depends(get_expense_service)
) -> Dict[str, Any]:
    expense = await expense_service.update_expense(str(expense_id), current_user.id, request)
    return ok({"expense": expense}, "Expense updated successfully")


@router.delete("/{expense_id}", status_code=status.HTTP_200_OK, responses=NOT_FOUND_RESPONSES)
async def delete_expense(
    expense_id: UUID,
    current_user: AuthUser = Depends(get_current_user),
    expense_service: ExpenseService = Depends(get_expense_service)
) -> Dict[str, Any]:
    """Soft delete an expense."""
    await expense_service.delete_expense(str(expense_id), current_user.id)
    return ok(message="Expense deleted successfully")
