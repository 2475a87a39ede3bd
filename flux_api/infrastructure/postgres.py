"""
PostgreSQL client implementation with connection pooling and error handling.
"""
import asyncio
import json
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

import asyncpg
import structlog

from ..config import Settings, get_settings
from ..utils.exceptions import DatabaseError

logger = structlog.get_logger()

_STATEMENT_PREVIEW = 100


def _preview(query: str) -> str:
    text = " ".join(query.split())
    if len(text) > _STATEMENT_PREVIEW:
        return text[:_STATEMENT_PREVIEW] + "..."
    return text


class PostgresDatabase:
    """
    PostgreSQL service wrapping an asyncpg pool.

    The pool is created on first use. When ``DATABASE_URL`` is not configured
    every query raises ``DatabaseError`` and the health check reports
    ``disabled``.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self._pool: Optional[asyncpg.Pool] = None
        self._settings = settings or get_settings()
        self._lock = asyncio.Lock()

    @property
    def is_configured(self) -> bool:
        return bool(self._settings.database_url)

    async def get_pool(self) -> asyncpg.Pool:
        """Get or create the connection pool."""
        if self._pool is None:
            async with self._lock:
                if self._pool is None:
                    self._pool = await self._create_pool()
        return self._pool

    @staticmethod
    async def _init_connection(conn: asyncpg.Connection) -> None:
        for type_name in ("json", "jsonb"):
            await conn.set_type_codec(
                type_name,
                encoder=json.dumps,
                decoder=json.loads,
                schema="pg_catalog"
            )

    async def _create_pool(self) -> asyncpg.Pool:
        if not self.is_configured:
            raise DatabaseError(message="Database not configured")

        try:
            pool = await asyncpg.create_pool(
                dsn=self._settings.database_url,
                min_size=self._settings.database_pool_min,
                max_size=self._settings.database_pool_max,
                timeout=self._settings.database_timeout,
                command_timeout=self._settings.database_timeout,
                init=self._init_connection,
            )
        except (OSError, asyncpg.PostgresError) as e:
            logger.error("Failed to create PostgreSQL pool", error=str(e))
            raise DatabaseError(message="Failed to connect to database")

        logger.info(
            "PostgreSQL pool created",
            min_size=self._settings.database_pool_min,
            max_size=self._settings.database_pool_max
        )
        return pool

    async def _run(self, method: str, query: str, *args: Any) -> Any:
        pool = await self.get_pool()
        start = time.perf_counter()
        try:
            async with pool.acquire() as conn:
                result = await getattr(conn, method)(query, *args)
        except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
            logger.error(
                "Query failed",
                query=_preview(query),
                error=str(e)
            )
            raise DatabaseError(message="Database operation failed")

        logger.debug(
            "Query executed",
            query=_preview(query),
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
            rows=len(result) if isinstance(result, list) else None
        )
        return result

    async def fetch(self, query: str, *args: Any) -> List[Dict[str, Any]]:
        """Run a query and return every row as a dict."""
        rows = await self._run("fetch", query, *args)
        return [dict(row) for row in rows]

    async def fetchrow(self, query: str, *args: Any) -> Optional[Dict[str, Any]]:
        """Run a query and return the first row, or None."""
        row = await self._run("fetchrow", query, *args)
        return dict(row) if row is not None else None

    async def fetchval(self, query: str, *args: Any) -> Any:
        """Run a query and return the first column of the first row."""
        return await self._run("fetchval", query, *args)

    async def execute(self, query: str, *args: Any) -> str:
        """Run a statement and return its status string."""
        return await self._run("execute", query, *args)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[asyncpg.Connection]:
        """
        Acquire a connection and run the enclosed block in a transaction.

        The transaction is committed when the block exits normally and
        rolled back when it raises.
        """
        pool = await self.get_pool()
        async with pool.acquire() as conn:
            try:
                async with conn.transaction():
                    yield conn
            except asyncpg.PostgresError as e:
                logger.error("Transaction rolled back", error=str(e))
                raise DatabaseError(message="Database transaction failed")

    async def health_check(self) -> Dict[str, Any]:
        """Check database connectivity."""
        if not self.is_configured:
            return {
                "status": "disabled",
                "message": "PostgreSQL not configured - DATABASE_URL missing",
                "details": {}
            }

        start = time.perf_counter()
        try:
            row = await self.fetchrow(
                "SELECT NOW() AS current_time, version() AS version"
            )
        except DatabaseError as e:
            return {
                "status": "unhealthy",
                "message": "PostgreSQL connection failed",
                "details": {"error": e.message}
            }

        pool = self._pool
        return {
            "status": "healthy",
            "message": "PostgreSQL connection successful",
            "details": {
                "response_time_ms": round((time.perf_counter() - start) * 1000, 2),
                "server_time": row["current_time"].isoformat() if row else None,
                "version": row["version"].split(" ")[1] if row else None,
                "pool_size": pool.get_size() if pool else 0,
                "idle_connections": pool.get_idle_size() if pool else 0,
            }
        }

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            logger.info("PostgreSQL pool closed")


# Global database instance
_database: Optional[PostgresDatabase] = None


def get_database() -> PostgresDatabase:
    """Get the global database instance."""
    global _database
    if _database is None:
        _database = PostgresDatabase()
    return _database


async def cleanup_database():
    """Close the global database pool."""
    global _database
    if _database is not None:
        await _database.close()
        _database = None
