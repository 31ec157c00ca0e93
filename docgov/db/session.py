"""
Database Session Management
Relational store connection and session handling
"""

from typing import AsyncGenerator, Optional

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from docgov.core.config import settings
from docgov.core.logging import get_logger
from docgov.db.base import Base

logger = get_logger(__name__)

# Engine
engine = None
async_session_maker = None


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


async def init_db(database_url: Optional[str] = None, create_tables: Optional[bool] = None) -> None:
    """Initialize database engine and create tables"""
    global engine, async_session_maker

    url = database_url or settings.SQLALCHEMY_DATABASE_URL
    logger.info(f"Connecting to database: {url.split('@')[-1].split('?')[0]}")

    if url.startswith("sqlite"):
        engine = create_async_engine(
            url,
            echo=settings.DEBUG,
            connect_args={
                "check_same_thread": False,
                "timeout": settings.DB_COMMAND_TIMEOUT_SECONDS,
            },
        )
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
    else:
        engine = create_async_engine(
            url,
            echo=settings.DEBUG,
            pool_pre_ping=True,
            pool_size=10,
            max_overflow=20,
            pool_timeout=settings.DB_COMMAND_TIMEOUT_SECONDS,
            connect_args={"command_timeout": settings.DB_COMMAND_TIMEOUT_SECONDS},
        )

    async_session_maker = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    # Import all models so they're registered with Base
    from docgov.db import models  # noqa: F401
    from docgov.models import magic_link, permission  # noqa: F401

    if create_tables is None:
        create_tables = settings.ENVIRONMENT in ("development", "testing")

    # Create tables (use migrations for production)
    if create_tables:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created")


async def close_db() -> None:
    """Close database connections"""
    global engine

    if engine:
        await engine.dispose()
        logger.info("Database connection closed")


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session (dependency injection)"""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def check_database() -> bool:
    """Check the database answers a trivial query"""
    try:
        async with async_session_maker() as session:
            await session.execute(text("SELECT 1"))
            return True
    except Exception as e:
        logger.warning(f"Database check failed: {e}")
        return False
