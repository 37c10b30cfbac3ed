"""Database engine and session management."""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from accounts.app.core.config import settings

engine = create_async_engine(settings.database_url, echo=settings.debug, pool_pre_ping=True)
async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all models."""
    pass


async def get_db() -> AsyncSession:
    """FastAPI dependency: yields a database session."""
    async with async_session() as session:
        yield session


async def init_db(bind: AsyncEngine = engine) -> None:
    """Create all tables (the schema is small enough to sync at startup)."""
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def ping_db(bind: AsyncEngine = engine) -> None:
    """Round-trip a trivial query. Raises on any connectivity problem."""
    async with bind.connect() as conn:
        await conn.execute(text("SELECT 1"))
