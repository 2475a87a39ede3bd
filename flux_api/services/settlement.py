"""
Settlement service for recording and listing payments between users.
"""
from typing import Any, Dict, List, Optional, Tuple

import structlog

from ..infrastructure import PostgresDatabase, get_database
from ..models.settlement import SettlementCreateRequest, SettlementFilters
from ..utils.constants import DEFAULT_CURRENCY, PaymentStatus
from ..utils.exceptions import AuthorizationError, BusinessLogicError, NotFoundError
from .group import GroupService

logger = structlog.get_logger()

PAYMENT_SELECT = """
    SELECT p.*,
           g.name AS group_name,
           COALESCE(payer.display_name, payer.full_name) AS payer_name,
           COALESCE(payee.display_name, payee.full_name) AS payee_name
    FROM payments p
    LEFT JOIN groups g ON p.group_id = g.id
    LEFT JOIN users payer ON p.payer_user_id = payer.id
    LEFT JOIN users payee ON p.payee_user_id = payee.id
"""

# Completed payments between the user and each counterparty; positive net means the user paid more
COUNTERPARTY_BALANCES_QUERY = """
    SELECT flows.user_id,
           u.full_name,
           u.display_name,
           u.avatar_url,
           SUM(flows.paid) AS total_paid,
           SUM(flows.received) AS total_received,
           SUM(flows.paid) - SUM(flows.received) AS net_balance
    FROM (
        SELECT payee_user_id AS user_id, amount AS paid, 0 AS received
        FROM payments
        WHERE payer_user_id = $1 AND status = 'completed'
        UNION ALL
        SELECT payer_user_id AS user_id, 0 AS paid, amount AS received
        FROM payments
        WHERE payee_user_id = $1 AND status = 'completed'
    ) flows
    JOIN users u ON u.id = flows.user_id
    GROUP BY flows.user_id, u.full_name, u.display_name, u.avatar_url
    ORDER BY net_balance DESC, flows.user_id
"""


def build_settlement_filters(
    filters: Optional[SettlementFilters],
    first_param: int = 2
) -> Tuple[str, List[Any]]:
    """Translate listing filters into an ``AND ...`` SQL fragment and its values."""
    clauses: List[str] = []
    values: List[Any] = []
    if filters is None:
        return "", values

    if filters.group_id is not None:
        values.append(filters.group_id)
        clauses.append(f"p.group_id = ${first_param + len(values) - 1}")
    if filters.user_id is not None:
        values.append(filters.user_id)
        index = first_param + len(values) - 1
        clauses.append(f"(p.payer_user_id = ${index} OR p.payee_user_id = ${index})")
    if filters.status is not None:
        values.append(filters.status.value)
        clauses.append(f"p.status = ${first_param + len(values) - 1}")

    if not clauses:
        return "", values
    return " AND " + " AND ".join(clauses), values


class SettlementService:
    """Service for settlement payments."""

    def __init__(self, db: Optional[PostgresDatabase] = None, groups: Optional[GroupService] = None):
        self.db = db or get_database()
        self.groups = groups or GroupService(db=self.db)

    async def _insert_payment(self, request: SettlementCreateRequest, group_id: Optional[Any]) -> Dict[str, Any]:
        currency = request.currency
        async with self.db.transaction() as conn:
            if group_id is not None:
                group = await conn.fetchrow(
                    "SELECT currency, is_active FROM groups WHERE id = $1",
                    group_id
                )
                if group is None:
                    raise NotFoundError(message="Group not found", resource_type="group", resource_id=str(group_id))

                active_parties = await conn.fetchval(
                    """
                    SELECT COUNT(*) FROM group_members
                    WHERE group_id = $1 AND user_id = ANY($2::uuid[]) AND is_active = true
                    """,
                    group_id,
                    [request.payer_user_id, request.payee_user_id]
                )
                if int(active_parties or 0) != 2:
                    raise BusinessLogicError(
                        message="Both payer and payee must be active members of the group",
                        code="NOT_GROUP_MEMBERS"
                    )
                currency = currency or group["currency"]

            payment_id = await conn.fetchval(
                """
                INSERT INTO payments (
                    group_id, payer_user_id, payee_user_id, amount, currency,
                    status, payment_method, notes, completed_at
                ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, CASE WHEN $9 THEN NOW() END)
                RETURNING id
                """,
                group_id,
                request.payer_user_id,
                request.payee_user_id,
                request.amount,
                currency or DEFAULT_CURRENCY,
                request.status.value,
                request.payment_method,
                request.notes,
                request.status == PaymentStatus.COMPLETED
            )
            payment = await conn.fetchrow(f"{PAYMENT_SELECT} WHERE p.id = $1", payment_id)

        logger.info(
            "Payment recorded",
            payment_id=str(payment_id),
            group_id=str(group_id) if group_id is not None else None,
            amount=str(request.amount),
            status=request.status.value
        )
        return dict(payment)

    async def record_payment(self, user_id: str, request: SettlementCreateRequest) -> Dict[str, Any]:
        """Record a payment the caller made or received, optionally inside a group."""
        if str(user_id) not in {str(request.payer_user_id), str(request.payee_user_id)}:
            raise AuthorizationError("You must be either the payer or the payee of the payment")
        return await self._insert_payment(request, request.group_id)

    async def record_group_payment(
        self,
        group_id: str,
        user_id: str,
        request: SettlementCreateRequest
    ) -> Dict[str, Any]:
        """Record a payment between two group members and return the new balances."""
        await self.groups.get_group(group_id)
        await self.groups.require_role(group_id, user_id)

        payment = await self._insert_payment(request, group_id)
        return {
            "settlement": payment,
            "balances": await self.groups.get_balances(group_id),
        }

    async def list_payments(
        self,
        user_id: str,
        filters: Optional[SettlementFilters] = None,
        limit: int = 10,
        offset: int = 0
    ) -> Tuple[List[Dict[str, Any]], int, List[Dict[str, Any]]]:
        """One page of payments involving the user, the total, and per-counterparty totals."""
        filter_sql, filter_values = build_settlement_filters(filters)
        where = f"WHERE (p.payer_user_id = $1 OR p.payee_user_id = $1){filter_sql}"

        total = await self.db.fetchval(
            f"SELECT COUNT(*) FROM payments p {where}",
            user_id,
            *filter_values
        )
        limit_param = len(filter_values) + 2
        payments = await self.db.fetch(
            f"""
            {PAYMENT_SELECT}
            {where}
            ORDER BY p.created_at DESC, p.id
            LIMIT ${limit_param} OFFSET ${limit_param + 1}
            """,
            user_id,
            *filter_values,
            limit,
            offset
        )
        balances = await self.db.fetch(COUNTERPARTY_BALANCES_QUERY, user_id)
        return payments, int(total or 0), balances

    async def list_group_payments(self, group_id: str, user_id: str) -> List[Dict[str, Any]]:
        """Every payment recorded in the group, newest first."""
        await self.groups.get_group(group_id)
        await self.groups.require_role(group_id, user_id)
        return await self.db.fetch(
            f"{PAYMENT_SELECT} WHERE p.group_id = $1 ORDER BY p.created_at DESC, p.id",
            group_id
        )
