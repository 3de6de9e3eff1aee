"""
Database setup (async SQLAlchemy).

The engine and session factory live on a Database object built at process
start (see app.main lifespan) and disposed at shutdown. Request handlers get
their session through the get_db dependency, which reads the instance from
app.state.
"""

from typing import AsyncIterator

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.config import Settings


class Database:
    """Owns one async engine and its session factory."""

    def __init__(self, url: str, **engine_kwargs):
        self.url = url
        self.engine: AsyncEngine = create_async_engine(url, **engine_kwargs)
        self.session_maker = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        # statement_cache_size=0 required for pgbouncer/Supavisor compatibility
        return cls(
            settings.database_url,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=True,
            echo=settings.debug,
            connect_args={"statement_cache_size": 0},
        )

    async def create_all(self) -> None:
        """Create all tables (tests and local development only)."""
        from app.models.base import Base
        import app.models  # noqa: F401  register every mapper

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def ping(self) -> bool:
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True

    async def dispose(self) -> None:
        await self.engine.dispose()


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    """Dependency: yields a DB session, auto-closes after use."""
    database: Database = request.app.state.database
    async with database.session_maker() as session:
        try:
            yield session
        finally:
            await session.close()
