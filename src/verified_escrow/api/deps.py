"""FastAPI dependency injection providers.

These are used with Depends() in route handlers to inject database sessions,
the decision workflow, and configuration. Everything is read from
``app.state``, which the lifespan populates on startup.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import Request

from verified_escrow.config import Settings

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from verified_escrow.orchestration import EscrowWorkflow


def get_app_settings(request: Request) -> Settings:
    """Provide the settings the app was created with."""
    return request.app.state.settings


def get_session_factory(request: Request) -> async_sessionmaker[AsyncSession]:
    return request.app.state.session_factory


async def get_db_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Yield a session for one request. Commits on success, rolls back on error."""
    async with get_session_factory(request)() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_workflow(request: Request) -> EscrowWorkflow:
    """Provide the process-wide decision workflow."""
    return request.app.state.workflow
