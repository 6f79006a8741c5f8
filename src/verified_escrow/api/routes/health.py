"""Health check endpoint.

Verifies database connectivity and reports the configured ledger mode.
Used by container healthchecks and load balancers.
"""

from __future__ import annotations

from fastapi import APIRouter, Request
from sqlalchemy import text

from verified_escrow.logging_config import get_logger
from verified_escrow.schemas.escrow import HealthResponse

router = APIRouter(tags=["Health"])
logger = get_logger(__name__)


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
)
async def health_check(request: Request) -> HealthResponse:
    """Check connectivity to the database."""
    db_status = "unknown"
    try:
        async with request.app.state.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        db_status = "healthy"
    except Exception as exc:
        db_status = f"unhealthy: {exc}"
        logger.error("health.db_check_failed", error=str(exc))

    return HealthResponse(
        status="ok" if db_status == "healthy" else "degraded",
        version=request.app.version,
        database=db_status,
        ledger=request.app.state.settings.ledger_mode,
    )
