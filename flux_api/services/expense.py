"""
Expense service for expense CRUD and group splits.
"""
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional, Sequence, Tuple

import asyncpg
import structlog

from ..infrastructure import PostgresDatabase, get_database
from ..models.expense import ExpenseCreateRequest, ExpenseFilters, ExpenseUpdateRequest
from ..utils.constants import ExpenseSortField, SortOrder
from ..utils.exceptions import AuthorizationError, NotFoundError

logger = structlog.get_logger()

CENT = Decimal("0.01")

# Only these expressions may appear in ORDER BY
SORT_COLUMNS = {
    ExpenseSortField.CREATED_AT: "e.created_at",
    ExpenseSortField.EXPENSE_DATE: "e.expense_date",
    ExpenseSortField.AMOUNT: "e.amount",
    ExpenseSortField.DESCRIPTION: "e.description",
}

VISIBLE_TO_USER = """
    e.is_deleted = false
    AND (
        e.paid_by_user_id = $1
        OR e.group_id IN (
            SELECT group_id FROM group_members WHERE user_id = $1 AND is_active = true
        )
    )
"""

EXPENSE_SELECT = """
    SELECT e.*,
           ec.name AS category_name,
           ec.icon_name AS category_icon,
           ec.color_hex AS category_color,
           u.display_name AS paid_by_name,
           g.name AS group_name
    FROM expenses e
    LEFT JOIN expense_categories ec ON e.category_id = ec.id
    LEFT JOIN users u ON e.paid_by_user_id = u.id
    LEFT JOIN groups g ON e.group_id = g.id
"""


def equal_splits(amount: Decimal, member_ids: Sequence[Any]) -> List[Tuple[Any, Decimal, Decimal]]:
    """
    Split ``amount`` equally between members.

    Each share and percentage is rounded to cents; the last member absorbs
    the rounding difference so shares sum to ``amount`` and percentages to 100.
    """
    count = len(member_ids)
    if count == 0:
        return []

    share = (amount / count).quantize(CENT, rounding=ROUND_HALF_UP)
    percentage = (Decimal(100) / count).quantize(CENT, rounding=ROUND_HALF_UP)
    splits = []
    for index, member_id in enumerate(member_ids):
        if index == count - 1:
            splits.append((
                member_id,
                amount - share * (count - 1),
                Decimal(100) - percentage * (count - 1)
            ))
        else:
            splits.append((member_id, share, percentage))
    return splits


def build_expense_filters(
    filters: Optional[ExpenseFilters],
    first_param: int = 2
) -> Tuple[str, List[Any]]:
    """Translate listing filters into an ``AND ...`` SQL fragment and its values."""
    clauses: List[str] = []
    values: List[Any] = []
    if filters is None:
        return "", values

    conditions = [
        ("group_id", "e.group_id = ${}"),
        ("category_id", "e.category_id = ${}"),
        ("start_date", "e.expense_date >= ${}"),
        ("end_date", "e.expense_date <= ${}"),
        ("min_amount", "e.amount >= ${}"),
        ("max_amount", "e.amount <= ${}"),
        ("currency", "e.currency = ${}"),
        ("status", "e.status = ${}"),
        ("is_settled", "e.is_settled = ${}"),
    ]
    for field, template in conditions:
        value = getattr(filters, field)
        if value is None:
            continue
        if field == "status":
            value = value.value
        elif field == "currency":
            value = value.upper()
        values.append(value)
        clauses.append(template.format(first_param + len(values) - 1))

    if not clauses:
        return "", values
    return " AND " + " AND ".join(clauses), values


class ExpenseService:
    """Service for expense operations."""

    def __init__(self, db: Optional[PostgresDatabase] = None):
        self.db = db or get_database()

    async def list_expenses(
        self,
        user_id: str,
        filters: Optional[ExpenseFilters] = None,
        limit: int = 10,
        offset: int = 0,
        sort_by: ExpenseSortField = ExpenseSortField.CREATED_AT,
        sort_order: SortOrder = SortOrder.DESC
    ) -> Tuple[List[Dict[str, Any]], int]:
        """Return one page of expenses visible to the user and the total count."""
        filter_sql, filter_values = build_expense_filters(filters)
        where = f"WHERE {VISIBLE_TO_USER}{filter_sql}"

        total = await self.db.fetchval(
            f"SELECT COUNT(*) FROM expenses e {where}",
            user_id,
            *filter_values
        )

        limit_param = len(filter_values) + 2
        order = f"{SORT_COLUMNS[ExpenseSortField(sort_by)]} {SortOrder(sort_order).value}"
        expenses = await self.db.fetch(
            f"""
            {EXPENSE_SELECT}
            {where}
            ORDER BY {order}, e.id
            LIMIT ${limit_param} OFFSET ${limit_param + 1}
            """,
            user_id,
            *filter_values,
            limit,
            offset
        )
        return expenses, int(total or 0)

    async def get_expense(self, expense_id: str, user_id: str) -> Dict[str, Any]:
        """Get an expense the user paid or shares through a group."""
        expense = await self.db.fetchrow(
            f"{EXPENSE_SELECT} WHERE e.id = $2 AND {VISIBLE_TO_USER}",
            user_id,
            expense_id
        )
        if expense is None:
            raise NotFoundError(
                message="Expense not found",
                resource_type="expense",
                resource_id=str(expense_id)
            )
        return expense

    async def _ensure_group_member(self, conn: asyncpg.Connection, group_id: Any, user_id: str) -> None:
        is_member = await conn.fetchval(
            """
            SELECT EXISTS (
                SELECT 1 FROM group_members
                WHERE group_id = $1 AND user_id = $2 AND is_active = true
            )
            """,
            group_id,
            user_id
        )
        if not is_member:
            raise AuthorizationError("You are not a member of this group")

    async def _write_splits(self, conn: asyncpg.Connection, expense_id: Any, group_id: Any, amount: Decimal) -> int:
        members = await conn.fetch(
            """
            SELECT user_id FROM group_members
            WHERE group_id = $1 AND is_active = true
            ORDER BY joined_at ASC, user_id
            """,
            group_id
        )
        splits = equal_splits(amount, [member["user_id"] for member in members])
        await conn.execute("DELETE FROM expense_splits WHERE expense_id = $1", expense_id)
        await conn.executemany(
            """
            INSERT INTO expense_splits (expense_id, user_id, amount, percentage)
            VALUES ($1, $2, $3, $4)
            """,
            [(expense_id, member_id, value, percentage) for member_id, value, percentage in splits]
        )
        return len(splits)

    async def create_expense(self, user_id: str, request: ExpenseCreateRequest) -> Dict[str, Any]:
        """Create an expense paid by the user; group expenses are split equally."""
        async with self.db.transaction() as conn:
            if request.group_id is not None:
                await self._ensure_group_member(conn, request.group_id, user_id)

            row = await conn.fetchrow(
                """
                INSERT INTO expenses (
                    description, amount, currency, category_id, expense_date,
                    location, paid_by_user_id, group_id, split_method, split_data,
                    notes, receipt_url
                ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12)
                RETURNING *
                """,
                request.description,
                request.amount,
                request.currency,
                request.category_id,
                request.expense_date or date.today(),
                request.location,
                user_id,
                request.group_id,
                request.split_method.value,
                request.split_data,
                request.notes,
                request.receipt_url
            )
            expense = dict(row)

            if expense["group_id"] is not None:
                split_count = await self._write_splits(conn, expense["id"], expense["group_id"], expense["amount"])
                logger.info("Expense splits created", expense_id=str(expense["id"]), members=split_count)

        logger.info(
            "Expense created successfully",
            user_id=user_id,
            expense_id=str(expense["id"]),
            amount=str(expense["amount"])
        )
        return expense

    async def _get_own_expense(self, expense_id: str, user_id: str, action: str) -> Dict[str, Any]:
        expense = await self.get_expense(expense_id, user_id)
        if str(expense["paid_by_user_id"]) != str(user_id):
            raise AuthorizationError(f"Only the expense creator can {action} this expense")
        return expense

    async def update_expense(
        self,
        expense_id: str,
        user_id: str,
        request: ExpenseUpdateRequest
    ) -> Dict[str, Any]:
        """Update provided fields of an expense; only its payer may do so."""
        expense = await self._get_own_expense(expense_id, user_id, "update")

        changes = request.model_dump(exclude_unset=True, mode="python")
        for key in ("split_method", "status"):
            if changes.get(key) is not None:
                changes[key] = changes[key].value

        # Column names come from the request model's declared fields
        assignments = [f"{column} = ${index}" for index, column in enumerate(changes, start=2)]
        async with self.db.transaction() as conn:
            row = await conn.fetchrow(
                f"""
                UPDATE expenses SET {", ".join(assignments)}, updated_at = NOW()
                WHERE id = $1 AND is_deleted = false
                RETURNING *
                """,
                expense["id"],
                *changes.values()
            )
            if row is None:
                raise NotFoundError(
                    message="Expense not found",
                    resource_type="expense",
                    resource_id=str(expense_id)
                )
            updated = dict(row)

            if "amount" in changes and updated["group_id"] is not None:
                await self._write_splits(conn, updated["id"], updated["group_id"], updated["amount"])

        logger.info("Expense updated successfully", expense_id=str(expense_id), fields=list(changes))
        return updated

    async def delete_expense(self, expense_id: str, user_id: str) -> None:
        """Soft delete an expense; only its payer may do so."""
        expense = await self._get_own_expense(expense_id, user_id, "delete")

        deleted = await self.db.fetchval(
            """
            UPDATE expenses
            SET is_deleted = true, deleted_at = NOW(), updated_at = NOW()
            WHERE id = $1 AND is_deleted = false
            RETURNING id
            """,
            expense["id"]
        )
        if deleted is None:
            raise NotFoundError(
                message="Expense not found",
                resource_type="expense",
                resource_id=str(expense_id)
            )

        logger.info("Expense deleted successfully", expense_id=str(expense_id), user_id=user_id)

