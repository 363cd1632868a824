"""
BuildPilot Database Configuration

SQLAlchemy async engine with SQLite for development.
Holds project metadata and chat logs; generated files live in the sandbox.
"""
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy import event
from .config import settings


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine with the SQLite pragmas applied on connect."""
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args = {
            "timeout": 30,  # Wait up to 30 seconds for locks
            "check_same_thread": False,
        }

    new_engine = create_async_engine(
        database_url,
        echo=echo,
        future=True,
        connect_args=connect_args,
    )

    if database_url.startswith("sqlite"):
        @event.listens_for(new_engine.sync_engine, "connect")
        def configure_sqlite(dbapi_connection, connection_record):
            """Configure SQLite for better concurrency."""
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA busy_timeout=30000")
            cursor.close()

    return new_engine


engine = build_engine(settings.database_url, echo=settings.debug)

# Session factory
async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncSession:
    """Dependency to get database session."""
    async with async_session() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_db(target: AsyncEngine = None) -> None:
    """Initialize database tables."""
    # Register models on Base.metadata
    from . import models  # noqa: F401

    async with (target or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Close database connections."""
    await engine.dispose()
