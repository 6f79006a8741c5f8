"""FastAPI application entry point for the verified escrow service.

Lifecycle:
    1. Startup: logging, database engine (tables in dev/SQLite), ledger
       adapter, verification service and decision workflow on ``app.state``.
    2. Running: serve the REST API at /api/v1/*.
    3. Shutdown: close the ledger client and dispose of the engine.

Run with:
    uvicorn verified_escrow.main:app --reload --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI

from verified_escrow.config import Settings, get_settings
from verified_escrow.logging_config import get_logger, setup_logging

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application startup and shutdown lifecycle."""
    settings: Settings = app.state.settings

    setup_logging(
        log_level=settings.app_log_level,
        json_logs=not settings.is_development,
    )
    logger = get_logger(__name__)
    logger.info("app.starting", env=settings.app_env, debug=settings.app_debug)

    from verified_escrow.infrastructure.database.engine import (
        build_engine,
        build_session_factory,
        close_db,
        init_db,
    )
    from verified_escrow.infrastructure.ledger import create_ledger
    from verified_escrow.orchestration import EscrowWorkflow
    from verified_escrow.services.verification_service import VerificationService

    engine = build_engine(settings)
    await init_db(engine, settings)
    session_factory = build_session_factory(engine)
    ledger = create_ledger(settings)

    app.state.engine = engine
    app.state.session_factory = session_factory
    app.state.ledger = ledger
    app.state.workflow = EscrowWorkflow(
        session_factory=session_factory,
        verification_service=VerificationService(settings=settings),
        ledger=ledger,
        settings=settings,
    )

    logger.info(
        "app.started",
        host=settings.app_host,
        port=settings.app_port,
        ledger_mode=settings.ledger_mode,
        verifier=settings.verifier_type,
    )

    try:
        yield
    finally:
        logger.info("app.shutting_down")
        aclose = getattr(ledger, "aclose", None)
        if aclose is not None:
            await aclose()
        await close_db(engine)
        logger.info("app.stopped")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Application factory: creates and configures the FastAPI app."""
    settings = settings or get_settings()

    app = FastAPI(
        title="Verified Escrow",
        description=(
            "Escrow that releases payment only after the submitted work "
            "passes automated verification."
        ),
        version=VERSION,
        lifespan=lifespan,
        debug=settings.app_debug,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )
    app.state.settings = settings

    from verified_escrow.api.middleware import setup_middleware

    setup_middleware(app)

    from verified_escrow.api.routes.escrow import fees_router
    from verified_escrow.api.routes.escrow import router as escrow_router
    from verified_escrow.api.routes.health import router as health_router

    app.include_router(health_router)
    app.include_router(escrow_router)
    app.include_router(fees_router)

    return app


# The app instance used by Uvicorn
app = create_app()
