"""
Category service for managing expense categories.
"""
from typing import Any, Dict, List, Optional, Tuple

import structlog

from ..infrastructure import PostgresDatabase, get_database
from ..models.expense import CategoryCreateRequest, CategoryUpdateRequest
from ..utils.constants import TEST_CATEGORY_LIMIT
from ..utils.exceptions import (
    AuthorizationError,
    BusinessLogicError,
    NotFoundError,
    ValidationError as AppValidationError,
)

logger = structlog.get_logger()

CATEGORY_COLUMNS = """
    id, name, description, icon_name, color_hex, parent_category_id,
    is_system_category, is_public, created_by_user_id, created_at, updated_at
"""


class CategoryService:
    """Service for category operations."""

    def __init__(self, db: Optional[PostgresDatabase] = None):
        self.db = db or get_database()

    async def list_categories(
        self,
        user_id: str,
        include_system: bool = False,
        limit: int = 10,
        offset: int = 0
    ) -> Tuple[List[Dict[str, Any]], int]:
        """
        List the user's own and public categories.

        System categories are only included when ``include_system`` is set.
        """
        where = "WHERE (created_by_user_id = $1 OR is_public = true"
        where += " OR is_system_category = true)" if include_system else ") AND is_system_category = false"

        total = await self.db.fetchval(
            f"SELECT COUNT(*) FROM expense_categories {where}",
            user_id
        )
        categories = await self.db.fetch(
            f"""
            SELECT {CATEGORY_COLUMNS}
            FROM expense_categories
            {where}
            ORDER BY is_system_category DESC, name ASC
            LIMIT $2 OFFSET $3
            """,
            user_id,
            limit,
            offset
        )
        return categories, int(total or 0)

    async def list_test_categories(self, user_id: str) -> List[Dict[str, Any]]:
        """System, public and the given user's categories, capped for demo use."""
        return await self.db.fetch(
            f"""
            SELECT {CATEGORY_COLUMNS}
            FROM expense_categories
            WHERE is_system_category = true OR is_public = true OR created_by_user_id = $1
            ORDER BY is_system_category DESC, name ASC
            LIMIT $2
            """,
            user_id,
            TEST_CATEGORY_LIMIT
        )

    async def _check_parent(self, parent_id: Any, user_id: str) -> None:
        parent = await self.db.fetchval(
            """
            SELECT id FROM expense_categories
            WHERE id = $1
              AND (created_by_user_id = $2 OR is_public = true OR is_system_category = true)
            """,
            parent_id,
            user_id
        )
        if parent is None:
            raise AppValidationError(
                message="Parent category not found",
                details={"parent_category_id": ["Parent category does not exist"]}
            )

    async def create_category(self, user_id: str, request: CategoryCreateRequest) -> Dict[str, Any]:
        """Create a category owned by the user; names are unique per user."""
        duplicate = await self.db.fetchval(
            "SELECT id FROM expense_categories WHERE name = $1 AND created_by_user_id = $2",
            request.name,
            user_id
        )
        if duplicate is not None:
            raise BusinessLogicError(
                message="A category with this name already exists",
                code="DUPLICATE_CATEGORY"
            )

        if request.parent_category_id is not None:
            await self._check_parent(request.parent_category_id, user_id)

        category = await self.db.fetchrow(
            f"""
            INSERT INTO expense_categories (
                name, description, icon_name, color_hex,
                parent_category_id, is_public, created_by_user_id
            ) VALUES ($1, $2, $3, $4, $5, $6, $7)
            RETURNING {CATEGORY_COLUMNS}
            """,
            request.name,
            request.description,
            request.icon_name,
            request.color_hex,
            request.parent_category_id,
            request.is_public,
            user_id
        )

        logger.info(
            "Category created successfully",
            user_id=user_id,
            category_id=str(category["id"]),
            category_name=category["name"]
        )
        return category

    async def get_category(self, category_id: str, user_id: str) -> Dict[str, Any]:
        """A category the user owns, or one that is public or built in."""
        category = await self.db.fetchrow(
            f"""
            SELECT {CATEGORY_COLUMNS}
            FROM expense_categories
            WHERE id = $1
              AND (created_by_user_id = $2 OR is_public = true OR is_system_category = true)
            """,
            category_id,
            user_id
        )
        if category is None:
            raise NotFoundError(message="Category not found")
        return category

    async def _get_own_category(self, category_id: str, user_id: str, action: str) -> Dict[str, Any]:
        category = await self.db.fetchrow(
            f"SELECT {CATEGORY_COLUMNS} FROM expense_categories WHERE id = $1",
            category_id
        )
        if category is None:
            raise NotFoundError(message="Category not found")
        if category["is_system_category"]:
            raise AuthorizationError(f"Cannot {action} system categories")
        if str(category["created_by_user_id"]) != str(user_id):
            raise AuthorizationError(f"You do not have permission to {action} this category")
        return category

    async def update_category(
        self,
        category_id: str,
        user_id: str,
        request: CategoryUpdateRequest
    ) -> Dict[str, Any]:
        """Update provided fields of a category the user created."""
        category = await self._get_own_category(category_id, user_id, "modify")
        changes = request.model_dump(exclude_unset=True)

        if changes.get("name") is not None and changes["name"] != category["name"]:
            duplicate = await self.db.fetchval(
                """
                SELECT id FROM expense_categories
                WHERE name = $1 AND created_by_user_id = $2 AND id <> $3
                """,
                changes["name"],
                user_id,
                category_id
            )
            if duplicate is not None:
                raise BusinessLogicError(
                    message="A category with this name already exists",
                    code="DUPLICATE_CATEGORY"
                )

        parent_id = changes.get("parent_category_id")
        if parent_id is not None:
            if str(parent_id) == str(category_id):
                raise AppValidationError(
                    message="Invalid parent category",
                    details={"parent_category_id": ["A category cannot be its own parent"]}
                )
            await self._check_parent(parent_id, user_id)

        # Column names come from the request model's declared fields
        assignments = [f"{column} = ${index}" for index, column in enumerate(changes, start=2)]
        updated = await self.db.fetchrow(
            f"""
            UPDATE expense_categories SET {", ".join(assignments)}, updated_at = NOW()
            WHERE id = $1
            RETURNING {CATEGORY_COLUMNS}
            """,
            category_id,
            *changes.values()
        )

        logger.info("Category updated successfully", category_id=str(category_id), fields=list(changes))
        return updated

    async def delete_category(self, category_id: str, user_id: str) -> None:
        """Delete a category the user created; categories still referenced by expenses are kept."""
        await self._get_own_category(category_id, user_id, "delete")

        in_use = await self.db.fetchval(
            "SELECT COUNT(*) FROM expenses WHERE category_id = $1",
            category_id
        )
        if in_use:
            raise BusinessLogicError(
                message=f"Cannot delete category that is used by {in_use} expenses",
                code="CATEGORY_IN_USE"
            )

        await self.db.execute("DELETE FROM expense_categories WHERE id = $1", category_id)
        logger.info("Category deleted successfully", category_id=str(category_id), user_id=user_id)
