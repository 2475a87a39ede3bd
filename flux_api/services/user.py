"""
User service keeping the local users table in step with the identity provider.
"""
from typing import Any, Dict, List, Optional

import structlog

from ..infrastructure import PostgresDatabase, get_database
from ..models.auth import AuthUser, ProfileUpdateRequest
from ..utils.exceptions import NotFoundError

logger = structlog.get_logger()

USER_COLUMNS = """
    id, email, full_name, display_name, avatar_url, phone, timezone,
    language, currency, oauth_providers, email_verified, account_status,
    last_active_at, created_at, updated_at
"""


class UserService:
    """Service for local user records."""

    def __init__(self, db: Optional[PostgresDatabase] = None):
        self.db = db or get_database()

    async def sync_user(self, user: AuthUser) -> Dict[str, Any]:
        """
        Insert or refresh the local row for an identity-provider user.

        The row id is the provider's user id, so repeated syncs update the
        same record.
        """
        metadata = user.user_metadata
        display_name = metadata.get("user_name") or metadata.get("preferred_username")
        if not display_name and user.email:
            display_name = user.email.split("@")[0]

        row = await self.db.fetchrow(
            f"""
            INSERT INTO users (
                id, email, full_name, display_name, avatar_url,
                oauth_providers, email_verified, last_active_at
            ) VALUES ($1, $2, $3, $4, $5, $6, $7, NOW())
            ON CONFLICT (id) DO UPDATE SET
                email = EXCLUDED.email,
                full_name = COALESCE(EXCLUDED.full_name, users.full_name),
                avatar_url = COALESCE(EXCLUDED.avatar_url, users.avatar_url),
                oauth_providers = EXCLUDED.oauth_providers,
                email_verified = EXCLUDED.email_verified,
                last_active_at = NOW()
            RETURNING {USER_COLUMNS}
            """,
            user.id,
            user.email,
            user.full_name,
            display_name[:50] if display_name else None,
            metadata.get("avatar_url"),
            user.providers,
            user.email_confirmed,
        )

        logger.info("User synced", user_id=user.id, providers=user.providers)
        return row

    async def get_user(self, user_id: str) -> Dict[str, Any]:
        row = await self.db.fetchrow(
            f"SELECT {USER_COLUMNS} FROM users WHERE id = $1 AND is_deleted = false",
            user_id
        )
        if row is None:
            raise NotFoundError(
                message="User not found",
                resource_type="user",
                resource_id=user_id
            )
        return row

    async def update_profile(self, user_id: str, request: ProfileUpdateRequest) -> Dict[str, Any]:
        """Update the provided profile fields of a user."""
        changes = request.model_dump(exclude_unset=True)
        if not changes:
            return await self.get_user(user_id)

        # Column names come from the request model's declared fields
        assignments = [f"{column} = ${index}" for index, column in enumerate(changes, start=2)]
        row = await self.db.fetchrow(
            f"""
            UPDATE users SET {", ".join(assignments)}, updated_at = NOW()
            WHERE id = $1 AND is_deleted = false
            RETURNING {USER_COLUMNS}
            """,
            user_id,
            *changes.values()
        )
        if row is None:
            raise NotFoundError(
                message="User not found",
                resource_type="user",
                resource_id=user_id
            )

        logger.info("User profile updated", user_id=user_id, fields=list(changes))
        return row

    async def set_oauth_providers(self, user_id: str, providers: List[str]) -> None:
        await self.db.execute(
            "UPDATE users SET oauth_providers = $2, updated_at = NOW() WHERE id = $1",
            user_id,
            providers
        )

    async def get_first_user_id(self) -> Optional[str]:
        """Return the oldest user's id, used by the demo endpoints."""
        user_id = await self.db.fetchval(
            "SELECT id FROM users WHERE is_deleted = false ORDER BY created_at ASC LIMIT 1"
        )
        return str(user_id) if user_id is not None else None
