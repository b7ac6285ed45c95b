"""Database engine and session management."""

from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from ..core.config import get_settings


def normalize_database_url(url: str) -> str:
    """Rewrite Heroku/Supabase style postgres URLs to the asyncpg driver."""
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+asyncpg://", 1)
    if url.startswith("postgresql://") and "+asyncpg" not in url:
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


def build_engine(url: str, echo: bool = False, **kwargs) -> AsyncEngine:
    """
    Create an async engine for SQLite (development, tests) or PostgreSQL.

    Quota charges run as single conditional UPDATE statements, so neither
    backend needs a stricter isolation level than its default.
    """
    url = normalize_database_url(url)
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    else:
        # Hosted Postgres drops idle connections
        kwargs.setdefault("pool_pre_ping", True)
    return create_async_engine(url, echo=echo, **kwargs)


settings = get_settings()

engine = build_engine(settings.database_url, echo=settings.database_echo)

async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

# Base class for SQLAlchemy models
Base = declarative_base()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one session per request."""
    async with async_session() as session:
        yield session


async def init_db() -> None:
    """
    Create all tables.

    Used when AUTO_MIGRATE is on (local SQLite). Deployed databases are
    managed with the Alembic revisions under migrations/versions.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Dispose of pooled connections on shutdown."""
    await engine.dispose()
