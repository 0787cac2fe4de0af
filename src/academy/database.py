"""Async SQLAlchemy engine for the SQL reward store."""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from academy.db.base import Base

_engine: AsyncEngine | None = None


def _engine_options(url: str) -> dict[str, object]:
    # Pool sizing only applies to the Postgres driver; SQLite (tests) keeps defaults.
    if url.startswith("postgresql+asyncpg"):
        return {
            "pool_size": 20,
            "max_overflow": 10,
            "pool_pre_ping": True,
            "connect_args": {"statement_cache_size": 0},
        }
    return {}


async def init_db(url: str, create_tables: bool = False) -> async_sessionmaker[AsyncSession]:
    """Create the engine and return a session factory; optionally create missing tables."""
    global _engine  # noqa: PLW0603
    _engine = create_async_engine(url, echo=False, **_engine_options(url))

    if create_tables:
        async with _engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    return async_sessionmaker(_engine, class_=AsyncSession, expire_on_commit=False)


async def close_db() -> None:
    global _engine  # noqa: PLW0603
    if _engine is not None:
        await _engine.dispose()
    _engine = None
