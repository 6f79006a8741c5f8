"""Async database engine and session management.

Provides:
    - build_engine: SQLAlchemy async engine for the configured URL.
    - build_session_factory: async_sessionmaker bound to an engine.
    - init_db / close_db: lifecycle hooks used by FastAPI's lifespan.

The engine is owned by whoever builds it (the app lifespan, the simulation
script, a test fixture); nothing here is a module-level singleton.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from verified_escrow.infrastructure.database.orm_models import Base
from verified_escrow.logging_config import get_logger

if TYPE_CHECKING:
    from verified_escrow.config import Settings

logger = get_logger(__name__)


def build_engine(settings: Settings) -> AsyncEngine:
    """Create the async engine. SQLite URLs skip pool sizing."""
    if settings.is_sqlite:
        engine = create_async_engine(
            settings.database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=settings.db_echo_sql,
        )
    else:
        engine = create_async_engine(
            settings.database_url,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_timeout=settings.db_pool_timeout,
            pool_pre_ping=True,
            echo=settings.db_echo_sql,
        )
    logger.info("database.engine_created", dialect=engine.dialect.name)
    return engine


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def create_tables(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("database.tables_created")


async def init_db(engine: AsyncEngine, settings: Settings) -> None:
    """Create tables in development (and for SQLite, which has no migrations).

    Called during FastAPI's lifespan startup.
    """
    if settings.is_development or settings.is_sqlite:
        await create_tables(engine)
    else:
        logger.info("database.skipping_create_all", reason="not in development mode")


async def close_db(engine: AsyncEngine) -> None:
    """Dispose of the engine. Called during FastAPI's lifespan shutdown."""
    await engine.dispose()
    logger.info("database.engine_disposed")
