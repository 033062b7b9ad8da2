"""SQLAlchemy async engine factory and declarative base."""

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


def build_engine(database_url: str, **kwargs) -> AsyncEngine:
    """Create the async engine the record store owns.

    The engine is opened at application startup and disposed at shutdown
    by whoever holds the store, never kept as a module global.
    """
    return create_async_engine(database_url, echo=False, pool_pre_ping=True, **kwargs)


async def create_tables(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
