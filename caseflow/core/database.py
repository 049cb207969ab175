from __future__ import annotations

from typing import AsyncIterator

from fastapi import Request
from sqlalchemy import MetaData, text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from caseflow.core.config import settings

DATABASE_SCHEMA = settings.DATABASE_SCHEMA or None

Base = declarative_base(metadata=MetaData(schema=DATABASE_SCHEMA))


class Database:
    """Engine + session factory owned by the application instance.

    Built once in ``create_app()`` and kept on ``app.state.db``; request
    handlers reach it through :func:`get_session`.
    """

    def __init__(self, url: str, *, echo: bool = False, schema: str | None = DATABASE_SCHEMA):
        self.url = url
        self.schema = schema
        self.engine: AsyncEngine = create_async_engine(url, echo=echo)
        self.session_factory = async_sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False
        )

    @property
    def is_sqlite(self) -> bool:
        return self.engine.dialect.name == "sqlite"

    async def ensure_schema(self, conn) -> None:
        """Create the service schema if it does not exist (idempotent)."""
        if self.schema and not self.is_sqlite:
            await conn.execute(text(f"CREATE SCHEMA IF NOT EXISTS {self.schema}"))

    async def create_all(self) -> None:
        async with self.engine.begin() as conn:
            await self.ensure_schema(conn)
            await conn.run_sync(Base.metadata.create_all)

    async def drop_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    async def ping(self) -> None:
        async with self.session_factory() as session:
            await session.execute(text("SELECT 1"))

    async def dispose(self) -> None:
        await self.engine.dispose()


async def get_session(request: Request) -> AsyncIterator[AsyncSession]:
    db: Database = request.app.state.db
    async with db.session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
