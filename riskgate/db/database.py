"""Async SQLAlchemy database engine and session management."""

from collections.abc import AsyncGenerator

import structlog
from sqlalchemy import inspect, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from riskgate.config import settings

logger = structlog.get_logger()

engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_pre_ping=True,
    pool_size=10,
    max_overflow=20,
)

async_session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Provide an async database session."""
    async with async_session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def init_db() -> None:
    """Create the fraud tables. Use Alembic migrations in production."""
    from riskgate.db.models import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("database_initialized", tables=sorted(Base.metadata.tables))


def missing_fraud_tables(sync_conn) -> list[str]:
    """Names of mapped fraud tables absent from the connected database."""
    from riskgate.db.models import Base

    present = set(inspect(sync_conn).get_table_names())
    return sorted(set(Base.metadata.tables) - present)


async def check_db() -> bool:
    """Database is reachable and holds the fraud event and review tables."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
            missing = await conn.run_sync(missing_fraud_tables)
    except Exception:
        logger.warning("database_check_failed", exc_info=True)
        return False
    if missing:
        logger.warning("fraud_tables_missing", tables=missing)
        return False
    return True
