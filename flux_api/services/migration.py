"""
SQL migration runner.

Migrations are plain ``NNN_name.sql`` files shipped in ``flux_api/migrations``.
They run in numeric order, each inside its own transaction together with the
``schema_migrations`` row that records it.
"""
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import structlog

from ..infrastructure import PostgresDatabase, get_database

logger = structlog.get_logger()

MIGRATIONS_PATH = Path(__file__).resolve().parent.parent / "migrations"

_DESCRIPTION = re.compile(r"^--\s*Description:\s*(.+)$", re.MULTILINE)

CREATE_MIGRATIONS_TABLE = """
    CREATE TABLE IF NOT EXISTS schema_migrations (
        version VARCHAR(255) PRIMARY KEY,
        description TEXT,
        applied_at TIMESTAMP WITH TIME ZONE DEFAULT NOW()
    )
"""


@dataclass
class Migration:
    """A single SQL migration file."""
    version: str
    filename: str
    sql: str
    description: str = ""


def _sort_key(path: Path):
    prefix = path.stem.split("_", 1)[0]
    return (int(prefix) if prefix.isdigit() else float("inf"), path.name)


class MigrationRunner:
    """Applies pending SQL migrations."""

    def __init__(
        self,
        db: Optional[PostgresDatabase] = None,
        migrations_path: Optional[Path] = None
    ):
        self.db = db or get_database()
        self.migrations_path = Path(migrations_path or MIGRATIONS_PATH)

    def discover(self) -> List[Migration]:
        """Load every migration file, ordered by its numeric prefix."""
        if not self.migrations_path.is_dir():
            logger.warning("Migrations directory not found", path=str(self.migrations_path))
            return []

        migrations = []
        for path in sorted(self.migrations_path.glob("*.sql"), key=_sort_key):
            sql = path.read_text(encoding="utf-8")
            match = _DESCRIPTION.search(sql)
            migrations.append(
                Migration(
                    version=path.stem,
                    filename=path.name,
                    sql=sql,
                    description=match.group(1).strip() if match else ""
                )
            )
        return migrations

    async def _applied_versions(self) -> set:
        rows = await self.db.fetch("SELECT version FROM schema_migrations")
        return {row["version"] for row in rows}

    async def _apply(self, migration: Migration) -> None:
        async with self.db.transaction() as conn:
            await conn.execute(migration.sql)
            await conn.execute(
                """
                INSERT INTO schema_migrations (version, description, applied_at)
                VALUES ($1, $2, NOW())
                ON CONFLICT (version) DO NOTHING
                """,
                migration.version,
                migration.description
            )

    async def run_migrations(self) -> List[str]:
        """Apply every pending migration and return the versions applied."""
        migrations = self.discover()
        logger.info("Starting database migrations", found=len(migrations))

        await self.db.execute(CREATE_MIGRATIONS_TABLE)
        applied = await self._applied_versions()

        newly_applied = []
        for migration in migrations:
            if migration.version in applied:
                logger.debug("Skipping applied migration", version=migration.version)
                continue

            try:
                await self._apply(migration)
            except Exception as e:
                logger.error("Migration failed", version=migration.version, error=str(e))
                raise

            newly_applied.append(migration.version)
            logger.info(
                "Applied migration",
                version=migration.version,
                description=migration.description
            )

        logger.info("Database migrations completed", applied=len(newly_applied))
        return newly_applied

    async def get_applied_migrations(self) -> List[Dict[str, Any]]:
        await self.db.execute(CREATE_MIGRATIONS_TABLE)
        return await self.db.fetch(
            "SELECT version, description, applied_at FROM schema_migrations ORDER BY version"
        )

    async def get_status(self) -> List[Dict[str, Any]]:
        """Every known migration with whether it has been applied."""
        applied = {row["version"]: row for row in await self.get_applied_migrations()}
        return [
            {
                "version": migration.version,
                "description": migration.description,
                "applied": migration.version in applied,
                "applied_at": applied[migration.version]["applied_at"] if migration.version in applied else None,
            }
            for migration in self.discover()
        ]
