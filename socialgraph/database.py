from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from socialgraph.config import settings


def _engine_options(url: str) -> dict:
    options = {"echo": settings.db_echo}
    # SQLite pools do not take sizing arguments
    if not url.startswith("sqlite"):
        options.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
        )
    return options


# Create async engine
engine = create_async_engine(settings.database_url, **_engine_options(settings.database_url))

# Session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


# Base class for models
class Base(DeclarativeBase):
    pass


@asynccontextmanager
async def get_session() -> AsyncIterator[AsyncSession]:
    """Unit of work: commit on success, roll back on any error."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db():
    """Initialize database tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def is_unique_violation(exc: IntegrityError) -> bool:
    """Tell a unique-index rejection apart from other integrity failures.

    SQLite reports ``UNIQUE constraint failed``, PostgreSQL reports
    ``duplicate key value violates unique constraint`` (SQLSTATE 23505).
    """
    orig = getattr(exc, "orig", None)
    if getattr(orig, "sqlstate", None) == "23505" or getattr(orig, "pgcode", None) == "23505":
        return True
    message = str(orig if orig is not None else exc).lower()
    return "unique" in message or "duplicate key" in message
