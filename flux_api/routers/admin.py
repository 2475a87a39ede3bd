"""
Administrative endpoints protected by the X-API-Key header.
"""
from typing import Any, Dict

from fastapi import APIRouter, Depends, status
import structlog

from ..models.api_responses import ErrorEnvelope, ok
from ..services import MigrationRunner
from ..utils.dependencies import get_migration_runner, require_admin_key
from ..utils.exceptions import AppException, DatabaseError

logger = structlog.get_logger()
router = APIRouter(dependencies=[Depends(require_admin_key)])

ADMIN_RESPONSES = {
    401: {"model": ErrorEnvelope, "description": "Missing or invalid API key"},
    500: {"model": ErrorEnvelope, "description": "Migration failed"},
}


@router.post("/migrate", status_code=status.HTTP_200_OK, responses=ADMIN_RESPONSES)
async def migrate(
    runner: MigrationRunner = Depends(get_migration_runner)
) -> Dict[str, Any]:
    """
    **Apply pending database migrations**

    Runs every SQL migration not yet recorded in `schema_migrations`, in
    numeric order. Requires the `X-API-Key` header to match `ADMIN_API_KEY`.
    """
    logger.info("Migration triggered via admin endpoint")
    try:
        applied = await runner.run_migrations()
    except AppException:
        raise
    except Exception as e:
        logger.error("Migration run failed", error=str(e))
        raise DatabaseError(message="Migration failed")

    return ok({
        "message": "Database migrations completed successfully",
        "applied": applied
    })


@router.get("/migrations", status_code=status.HTTP_200_OK, responses=ADMIN_RESPONSES)
async def list_migrations(
    runner: MigrationRunner = Depends(get_migration_runner)
) -> Dict[str, Any]:
    """Every known migration and whether it has been applied."""
    migrations = await runner.get_status()
    return ok({"migrations": migrations, "total": len(migrations)})
