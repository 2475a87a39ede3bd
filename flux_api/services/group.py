"""
Group service for groups, memberships and balances.
"""
import secrets
from typing import Any, Dict, List, Optional

import asyncpg
import structlog

from ..infrastructure import PostgresDatabase, get_database
from ..models.group import GroupCreateRequest, GroupUpdateRequest, MemberAddRequest, MemberUpdateRequest
from ..utils.constants import JOIN_CODE_LENGTH, GroupRole
from ..utils.exceptions import AuthorizationError, BusinessLogicError, DatabaseError, NotFoundError

logger = structlog.get_logger()

JOIN_CODE_ATTEMPTS = 5

MEMBER_SELECT = """
    SELECT gm.group_id, gm.user_id, gm.role, gm.is_active, gm.joined_at, gm.left_at,
           gm.nickname, gm.notification_preferences,
           u.email, u.full_name, u.display_name, u.avatar_url
    FROM group_members gm
    LEFT JOIN users u ON gm.user_id = u.id
"""

# Net position per active member: paid - owed share + payments made - payments received.
# Positive means the group owes the member.
BALANCES_QUERY = """
    WITH expense_payments AS (
        SELECT paid_by_user_id AS user_id, SUM(amount) AS paid_amount
        FROM expenses
        WHERE group_id = $1 AND is_deleted = false
        GROUP BY paid_by_user_id
    ),
    expense_shares AS (
        SELECT es.user_id, SUM(es.amount) AS share_amount
        FROM expense_splits es
        JOIN expenses e ON es.expense_id = e.id
        WHERE e.group_id = $1 AND e.is_deleted = false
        GROUP BY es.user_id
    ),
    direct_payments AS (
        SELECT payer_user_id AS user_id, SUM(amount) AS payment_amount
        FROM payments
        WHERE group_id = $1 AND status = 'completed'
        GROUP BY payer_user_id
        UNION ALL
        SELECT payee_user_id AS user_id, -SUM(amount) AS payment_amount
        FROM payments
        WHERE group_id = $1 AND status = 'completed'
        GROUP BY payee_user_id
    )
    SELECT gm.user_id,
           COALESCE(ep.paid_amount, 0)
             - COALESCE(es.share_amount, 0)
             + COALESCE(dp.payment_amount, 0) AS balance,
           g.currency
    FROM group_members gm
    JOIN groups g ON g.id = gm.group_id
    LEFT JOIN expense_payments ep ON gm.user_id = ep.user_id
    LEFT JOIN expense_shares es ON gm.user_id = es.user_id
    LEFT JOIN (
        SELECT user_id, SUM(payment_amount) AS payment_amount
        FROM direct_payments
        GROUP BY user_id
    ) dp ON gm.user_id = dp.user_id
    WHERE gm.group_id = $1 AND gm.is_active = true
    ORDER BY balance DESC, gm.user_id
"""


def generate_join_code() -> str:
    """Eight upper-case hex characters."""
    return secrets.token_hex(JOIN_CODE_LENGTH // 2).upper()


class GroupService:
    """Service for group operations."""

    def __init__(self, db: Optional[PostgresDatabase] = None):
        self.db = db or get_database()

    async def list_groups(self, user_id: str, include_archived: bool = False) -> List[Dict[str, Any]]:
        archived_filter = "" if include_archived else "AND g.is_active = true"
        return await self.db.fetch(
            f"""
            SELECT g.*, gm.role,
                   (SELECT COUNT(*) FROM group_members m
                    WHERE m.group_id = g.id AND m.is_active = true) AS member_count
            FROM groups g
            JOIN group_members gm ON g.id = gm.group_id
            WHERE gm.user_id = $1 AND gm.is_active = true
            {archived_filter}
            ORDER BY g.created_at DESC
            """,
            user_id
        )

    async def _with_fresh_join_code(self, conn: asyncpg.Connection, query: str, *args: Any) -> Optional[Dict[str, Any]]:
        """Run ``query`` with a new join code as its last parameter, retrying on collisions."""
        for _ in range(JOIN_CODE_ATTEMPTS):
            try:
                async with conn.transaction():
                    row = await conn.fetchrow(query, *args, generate_join_code())
                return dict(row) if row is not None else None
            except asyncpg.UniqueViolationError:
                logger.warning("Join code collision, retrying")
        raise DatabaseError(message="Could not allocate a unique join code")

    async def create_group(self, user_id: str, request: GroupCreateRequest) -> Dict[str, Any]:
        """Create a group with a fresh join code; the creator becomes its admin."""
        async with self.db.transaction() as conn:
            group = await self._with_fresh_join_code(
                conn,
                """
                INSERT INTO groups (
                    name, description, currency, default_split_method,
                    is_public, created_by_user_id, join_code
                ) VALUES ($1, $2, $3, $4, $5, $6, $7)
                RETURNING *
                """,
                request.name,
                request.description,
                request.currency,
                request.default_split_method.value,
                request.is_public,
                user_id
            )

            await conn.execute(
                """
                INSERT INTO group_members (group_id, user_id, role)
                VALUES ($1, $2, $3)
                """,
                group["id"],
                user_id,
                GroupRole.ADMIN.value
            )

        logger.info("Group created successfully", group_id=str(group["id"]), user_id=user_id)
        return group

    async def get_group(self, group_id: str) -> Dict[str, Any]:
        group = await self.db.fetchrow("SELECT * FROM groups WHERE id = $1", group_id)
        if group is None:
            raise NotFoundError(
                message="Group not found",
                resource_type="group",
                resource_id=str(group_id)
            )
        return group

    async def get_user_role(self, group_id: str, user_id: Any) -> Optional[str]:
        return await self.db.fetchval(
            """
            SELECT role FROM group_members
            WHERE group_id = $1 AND user_id = $2 AND is_active = true
            """,
            group_id,
            user_id
        )

    async def require_role(self, group_id: str, user_id: str, admin: bool = False, action: str = "do this") -> str:
        """
        Return the caller's role in the group.

        Raises ``AuthorizationError`` when the caller is not an active member,
        or is not an admin and ``admin`` is set.
        """
        role = await self.get_user_role(group_id, user_id)
        if role is None:
            raise AuthorizationError("You do not have access to this group")
        if admin and role != GroupRole.ADMIN.value:
            raise AuthorizationError(f"You must be a group admin to {action}")
        return role

    async def get_members(self, group_id: Any, include_inactive: bool = False) -> List[Dict[str, Any]]:
        active_filter = "" if include_inactive else "AND gm.is_active = true"
        return await self.db.fetch(
            f"""
            {MEMBER_SELECT}
            WHERE gm.group_id = $1 {active_filter}
            ORDER BY gm.role = 'admin' DESC, gm.joined_at ASC
            """,
            group_id
        )

    async def get_balances(self, group_id: Any) -> List[Dict[str, Any]]:
        return await self.db.fetch(BALANCES_QUERY, group_id)

    async def get_group_details(self, group_id: str, user_id: str) -> Dict[str, Any]:
        """Group, members and balances; only active members may read them."""
        group = await self.get_group(group_id)
        role = await self.require_role(group_id, user_id)

        return {
            "group": group,
            "members": await self.get_members(group_id),
            "balances": await self.get_balances(group_id),
            "role": role,
        }

    async def update_group(self, group_id: str, user_id: str, request: GroupUpdateRequest) -> Dict[str, Any]:
        """Update provided group fields; admins only."""
        await self.get_group(group_id)
        await self.require_role(group_id, user_id, admin=True, action="update the group")

        changes = request.model_dump(exclude_unset=True)
        if "default_split_method" in changes:
            changes["default_split_method"] = changes["default_split_method"].value

        # Column names come from the request model's declared fields
        assignments = [f"{column} = ${index}" for index, column in enumerate(changes, start=2)]
        if "is_active" in changes:
            assignments.append("archived_at = NULL" if changes["is_active"] else "archived_at = NOW()")

        group = await self.db.fetchrow(
            f"""
            UPDATE groups SET {", ".join(assignments)}, updated_at = NOW()
            WHERE id = $1
            RETURNING *
            """,
            group_id,
            *changes.values()
        )
        logger.info("Group updated successfully", group_id=str(group_id), fields=list(changes))
        return group

    async def archive_group(self, group_id: str, user_id: str) -> None:
        """Archive a group; its expenses and balances are kept."""
        await self.get_group(group_id)
        await self.require_role(group_id, user_id, admin=True, action="delete the group")

        await self.db.execute(
            """
            UPDATE groups SET is_active = false, archived_at = NOW(), updated_at = NOW()
            WHERE id = $1
            """,
            group_id
        )
        logger.info("Group archived", group_id=str(group_id), user_id=user_id)

    async def get_join_code(self, group_id: str, user_id: str) -> str:
        group = await self.get_group(group_id)
        await self.require_role(group_id, user_id, admin=True, action="view the join code")
        return group["join_code"]

    async def regenerate_join_code(self, group_id: str, user_id: str) -> str:
        """Replace the join code; the previous code stops working at once."""
        await self.get_group(group_id)
        await self.require_role(group_id, user_id, admin=True, action="regenerate the join code")

        async with self.db.transaction() as conn:
            group = await self._with_fresh_join_code(
                conn,
                "UPDATE groups SET join_code = $2, updated_at = NOW() WHERE id = $1 RETURNING join_code",
                group_id
            )
        if group is None:
            raise NotFoundError(message="Group not found", resource_type="group", resource_id=str(group_id))

        logger.info("Join code regenerated", group_id=str(group_id), user_id=user_id)
        return group["join_code"]

    async def join_group(self, user_id: str, join_code: str) -> Dict[str, Any]:
        """
        Join the active group owning ``join_code``.

        Joining twice is a no-op; a member who left is reactivated.
        """
        async with self.db.transaction() as conn:
            group = await conn.fetchrow(
                "SELECT * FROM groups WHERE join_code = $1 AND is_active = true",
                join_code
            )
            if group is None:
                raise NotFoundError(message="Invalid join code or group not found")

            membership = await conn.fetchrow(
                "SELECT is_active FROM group_members WHERE group_id = $1 AND user_id = $2",
                group["id"],
                user_id
            )
            if membership is None:
                await conn.execute(
                    "INSERT INTO group_members (group_id, user_id, role) VALUES ($1, $2, $3)",
                    group["id"],
                    user_id,
                    GroupRole.MEMBER.value
                )
                logger.info("User joined group", group_id=str(group["id"]), user_id=user_id)
            elif not membership["is_active"]:
                await conn.execute(
                    """
                    UPDATE group_members SET is_active = true, left_at = NULL
                    WHERE group_id = $1 AND user_id = $2
                    """,
                    group["id"],
                    user_id
                )
                logger.info("Group membership reactivated", group_id=str(group["id"]), user_id=user_id)

        return {
            "group": dict(group),
            "members": await self.get_members(group["id"]),
            "balances": await self.get_balances(group["id"]),
        }

    async def list_members(self, group_id: str, user_id: str, include_inactive: bool = False) -> List[Dict[str, Any]]:
        await self.require_role(group_id, user_id)
        return await self.get_members(group_id, include_inactive=include_inactive)

    async def get_member(self, group_id: str, user_id: str, member_id: str) -> Dict[str, Any]:
        """One member of the group, including members who left."""
        await self.require_role(group_id, user_id)
        member = await self.db.fetchrow(
            f"{MEMBER_SELECT} WHERE gm.group_id = $1 AND gm.user_id = $2",
            group_id,
            member_id
        )
        if member is None:
            raise NotFoundError(message="Member not found in this group")
        return member

    async def add_member(self, group_id: str, user_id: str, request: MemberAddRequest) -> Dict[str, Any]:
        """
        Add a registered user to the group.

        Any member may add plain members; only admins may add admins. A user
        who left earlier is reactivated with the requested role.
        """
        group = await self.get_group(group_id)
        if not group["is_active"]:
            raise BusinessLogicError(message="Group is archived", code="GROUP_ARCHIVED")
        role = await self.require_role(group_id, user_id)
        if request.role == GroupRole.ADMIN and role != GroupRole.ADMIN.value:
            raise AuthorizationError("Only group admins can add admin members")

        async with self.db.transaction() as conn:
            user_exists = await conn.fetchval(
                "SELECT EXISTS (SELECT 1 FROM users WHERE id = $1 AND is_deleted = false)",
                request.user_id
            )
            if not user_exists:
                raise NotFoundError(message="User not found")

            membership = await conn.fetchrow(
                "SELECT is_active FROM group_members WHERE group_id = $1 AND user_id = $2",
                group_id,
                request.user_id
            )
            if membership is not None and membership["is_active"]:
                raise BusinessLogicError(
                    message="User is already a member of this group",
                    code="ALREADY_MEMBER"
                )

            if membership is None:
                await conn.execute(
                    """
                    INSERT INTO group_members (group_id, user_id, role, nickname)
                    VALUES ($1, $2, $3, $4)
                    """,
                    group_id,
                    request.user_id,
                    request.role.value,
                    request.nickname
                )
            else:
                await conn.execute(
                    """
                    UPDATE group_members
                    SET is_active = true, left_at = NULL, role = $3, nickname = $4, updated_at = NOW()
                    WHERE group_id = $1 AND user_id = $2
                    """,
                    group_id,
                    request.user_id,
                    request.role.value,
                    request.nickname
                )

            member = await conn.fetchrow(
                f"{MEMBER_SELECT} WHERE gm.group_id = $1 AND gm.user_id = $2",
                group_id,
                request.user_id
            )

        logger.info(
            "Member added to group",
            group_id=str(group_id),
            member_id=str(request.user_id),
            role=request.role.value,
            added_by=user_id
        )
        return dict(member)

    async def _ensure_admin_remains(self, group_id: str, member_role: Optional[str]) -> None:
        if member_role != GroupRole.ADMIN.value:
            return
        admins = await self.db.fetchval(
            """
            SELECT COUNT(*) FROM group_members
            WHERE group_id = $1 AND role = 'admin' AND is_active = true
            """,
            group_id
        )
        if int(admins or 0) <= 1:
            raise BusinessLogicError(
                message="Cannot remove the last admin from the group",
                code="LAST_ADMIN"
            )

    async def update_member(
        self,
        group_id: str,
        user_id: str,
        member_id: str,
        request: MemberUpdateRequest
    ) -> Dict[str, Any]:
        """Members may edit their own nickname and notifications; role changes need an admin."""
        role = await self.require_role(group_id, user_id)
        is_admin = role == GroupRole.ADMIN.value
        if not is_admin and str(member_id) != str(user_id):
            raise AuthorizationError("You do not have permission to update this member")

        member_role = await self.get_user_role(group_id, member_id)
        if member_role is None:
            raise NotFoundError(message="Member not found in this group")

        changes = request.model_dump(exclude_unset=True)
        if "role" in changes:
            if not is_admin:
                raise AuthorizationError("Only admins can change member roles")
            changes["role"] = changes["role"].value
            if changes["role"] != GroupRole.ADMIN.value:
                await self._ensure_admin_remains(group_id, member_role)

        assignments = [f"{column} = ${index}" for index, column in enumerate(changes, start=3)]
        member = await self.db.fetchrow(
            f"""
            UPDATE group_members SET {", ".join(assignments)}, updated_at = NOW()
            WHERE group_id = $1 AND user_id = $2 AND is_active = true
            RETURNING *
            """,
            group_id,
            member_id,
            *changes.values()
        )
        if member is None:
            raise NotFoundError(message="Member not found in this group")

        logger.info("Group member updated", group_id=str(group_id), member_id=str(member_id), fields=list(changes))
        return member

    async def remove_member(self, group_id: str, user_id: str, member_id: str) -> None:
        """
        Deactivate a membership.

        Admins may remove anyone and members may remove themselves, which is
        how a member leaves. The last active admin can be neither removed nor
        leave.
        """
        role = await self.require_role(group_id, user_id)
        is_self = str(member_id) == str(user_id)
        if role != GroupRole.ADMIN.value and not is_self:
            raise AuthorizationError("You do not have permission to remove this member")

        member_role = role if is_self else await self.get_user_role(group_id, member_id)
        if member_role is None:
            raise NotFoundError(message="Member not found in this group")
        await self._ensure_admin_remains(group_id, member_role)

        await self.db.execute(
            """
            UPDATE group_members SET is_active = false, left_at = NOW(), updated_at = NOW()
            WHERE group_id = $1 AND user_id = $2
            """,
            group_id,
            member_id
        )
        if is_self:
            logger.info("Member left group", group_id=str(group_id), user_id=user_id)
        else:
            logger.info("Member removed from group", group_id=str(group_id), member_id=str(member_id), removed_by=user_id)
