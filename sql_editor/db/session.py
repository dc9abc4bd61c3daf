"""Async SQLAlchemy engine + per-execution connections (asyncpg)."""
from typing import Any

from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from sql_editor.core.config import Settings


def create_engine(settings: Settings) -> AsyncEngine:
    return create_async_engine(
        settings.database_url,
        pool_size=settings.DATABASE_POOL_SIZE,
        max_overflow=settings.DATABASE_MAX_OVERFLOW,
        pool_pre_ping=True,
        echo=False,
    )


class QueryConnection:
    """One pooled connection, owned by a single execution until released."""

    def __init__(self, conn: AsyncConnection):
        self._conn = conn

    async def query(self, sql: str, params: tuple | None = None) -> list[dict[str, Any]]:
        # User SQL goes to the driver verbatim; text() would treat ":name" as a bind param.
        result = await self._conn.exec_driver_sql(sql, params)
        if not result.returns_rows:
            return []
        keys = list(result.keys())
        return [dict(zip(keys, row)) for row in result.fetchall()]

    async def release(self) -> None:
        await self._conn.close()


class ConnectionProvider:
    def __init__(self, engine: AsyncEngine):
        self._engine = engine

    async def connect(self) -> QueryConnection:
        return QueryConnection(await self._engine.connect())

    async def dispose(self) -> None:
        await self._engine.dispose()
