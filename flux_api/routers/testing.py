"""
Unauthenticated demo endpoints acting as the oldest registered user.

Not mounted in production.
"""
from typing import Any, Dict

from fastapi import APIRouter, Depends, status
import structlog

from ..models.api_responses import ok, paginated
from ..services import CategoryService, ExpenseService, UserService
from ..utils.dependencies import (
    PaginationParams,
    get_category_service,
    get_expense_service,
    get_user_service,
)
from ..utils.exceptions import AppException

logger = structlog.get_logger()
router = APIRouter()


async def get_test_user_id(user_service: UserService = Depends(get_user_service)) -> str:
    user_id = await user_service.get_first_user_id()
    if user_id is None:
        raise AppException(message="No users found in database", code="NO_TEST_USER", status_code=500)
    logger.info("Using test user", user_id=user_id)
    return user_id


@router.get("/test", status_code=status.HTTP_200_OK)
async def list_test_expenses(
    pagination: PaginationParams = Depends(),
    test_user_id: str = Depends(get_test_user_id),
    expense_service: ExpenseService = Depends(get_expense_service)
) -> Dict[str, Any]:
    """Expense listing for the first user in the database."""
    expenses, total = await expense_service.list_expenses(
        test_user_id,
        limit=pagination.limit,
        offset=pagination.offset,
        sort_by=pagination.sort_by,
        sort_order=pagination.sort_order
    )
    return paginated(
        expenses,
        "expenses",
        total,
        pagination.limit,
        pagination.offset,
        test_user_id=test_user_id
    )


@router.get("/test/categories", status_code=status.HTTP_200_OK)
async def list_test_categories(
    test_user_id: str = Depends(get_test_user_id),
    category_service: CategoryService = Depends(get_category_service)
) -> Dict[str, Any]:
    categories = await category_service.list_test_categories(test_user_id)
    return ok({
        "categories": categories,
        "total": len(categories),
        "test_user_id": test_user_id
    })
