"""Escrow REST API routes.

These endpoints are the HTTP surface over the escrow service (lifecycle and
queries) and the decision workflow (verify, refund, settle).

Routes:
    POST   /api/v1/escrow                     Create a new escrow
    POST   /api/v1/escrow/{id}/deposit        Client deposits funds
    POST   /api/v1/escrow/verify-and-release  Upload work, verify, release on pass
    POST   /api/v1/escrow/{id}/return         Refund the client
    POST   /api/v1/escrow/{id}/settle         Replay settlement of a decided escrow
    GET    /api/v1/escrow/{id}                Escrow details
    GET    /api/v1/escrow/{id}/status         Lightweight status check
    GET    /api/v1/escrow/{id}/events         Audit trail
    GET    /api/v1/fees/quote                 Fee breakdown for an amount

Decision endpoints answer with the workflow's envelope. REJECTED is a normal
outcome (200); ERROR envelopes carry the HTTP status of their error kind.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from verified_escrow.api.deps import get_app_settings, get_db_session, get_workflow
from verified_escrow.api.middleware import status_for_code
from verified_escrow.api.uploads import spool_upload
from verified_escrow.config import Settings
from verified_escrow.domain.enums import DecisionStatus
from verified_escrow.domain.exceptions import EscrowError
from verified_escrow.logging_config import get_logger
from verified_escrow.orchestration import EscrowWorkflow, error_envelope
from verified_escrow.schemas.escrow import (
    CreateEscrowRequest,
    DepositRequest,
    EscrowEventResponse,
    EscrowResponse,
    EscrowStatusResponse,
    ReturnFundsRequest,
)
from verified_escrow.services.escrow_service import EscrowService

router = APIRouter(prefix="/api/v1/escrow", tags=["Escrow"])
fees_router = APIRouter(prefix="/api/v1/fees", tags=["Fees"])
logger = get_logger(__name__)


def _envelope_response(envelope: dict[str, Any]) -> JSONResponse:
    status_code = 200
    if envelope.get("status") == DecisionStatus.ERROR.value:
        status_code = status_for_code(envelope.get("error", ""))
    return JSONResponse(status_code=status_code, content=envelope)


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------


@router.post(
    "",
    response_model=EscrowResponse,
    status_code=201,
    summary="Create a new escrow",
)
async def create_escrow(
    request: CreateEscrowRequest,
    session: AsyncSession = Depends(get_db_session),
    settings: Settings = Depends(get_app_settings),
) -> EscrowResponse:
    """Create a new escrow in NONE status."""
    svc = EscrowService(session, settings)
    escrow = await svc.create_escrow(
        client=request.client,
        freelancer=request.freelancer,
        escrow_id=request.escrow_id,
    )
    return EscrowResponse.model_validate(escrow)


# ---------------------------------------------------------------------------
# Deposit
# ---------------------------------------------------------------------------


@router.post(
    "/{escrow_id}/deposit",
    response_model=EscrowResponse,
    summary="Deposit the escrow amount",
)
async def deposit_funds(
    escrow_id: str,
    request: DepositRequest,
    workflow: EscrowWorkflow = Depends(get_workflow),
) -> EscrowResponse:
    """Client deposits funds: NONE -> DEPOSITED, serialized per escrow."""
    escrow = await workflow.deposit_funds(
        escrow_id, caller=request.caller, amount=request.amount
    )
    return EscrowResponse.model_validate(escrow)


# ---------------------------------------------------------------------------
# Decisions
# ---------------------------------------------------------------------------


@router.post(
    "/verify-and-release",
    summary="Verify a submission and release payment if it passes",
)
async def verify_and_release(
    escrow_id: str = Form(default="", alias="escrowId"),
    task_description: str = Form(default="", alias="taskDescription"),
    escrow_amount: str | None = Form(default=None, alias="escrowAmount"),
    submission: UploadFile | None = File(default=None),
    settings: Settings = Depends(get_app_settings),
    workflow: EscrowWorkflow = Depends(get_workflow),
) -> JSONResponse:
    """Multipart form: escrowId, taskDescription, optional escrowAmount, file ``submission``."""
    try:
        upload = await spool_upload(submission, settings)
    except EscrowError as exc:
        return _envelope_response(error_envelope(exc))

    envelope = await workflow.run(
        escrow_id,
        task_description,
        upload,
        escrow_amount=escrow_amount,
    )
    logger.info(
        "api.verify_and_release",
        escrow_id=escrow_id,
        status=envelope.get("status"),
    )
    return _envelope_response(envelope)


@router.post(
    "/{escrow_id}/return",
    summary="Refund the client",
)
async def return_funds(
    escrow_id: str,
    request: ReturnFundsRequest,
    workflow: EscrowWorkflow = Depends(get_workflow),
) -> JSONResponse:
    """Refund after a rejected verdict, or on explicit cancellation."""
    envelope = await workflow.return_funds(
        escrow_id, caller=request.caller, cancelled=request.cancelled
    )
    return _envelope_response(envelope)


@router.post(
    "/{escrow_id}/settle",
    summary="Retry settlement of a decided escrow",
)
async def retry_settlement(
    escrow_id: str,
    workflow: EscrowWorkflow = Depends(get_workflow),
) -> JSONResponse:
    """Safe to call repeatedly; a confirmed settlement is returned as replayed."""
    return _envelope_response(await workflow.retry_settlement(escrow_id))


# ---------------------------------------------------------------------------
# Read
# ---------------------------------------------------------------------------


@router.get(
    "/{escrow_id}",
    response_model=EscrowResponse,
    summary="Get escrow details",
)
async def get_escrow(
    escrow_id: str,
    session: AsyncSession = Depends(get_db_session),
    settings: Settings = Depends(get_app_settings),
) -> EscrowResponse:
    svc = EscrowService(session, settings)
    return EscrowResponse.model_validate(await svc.get_escrow(escrow_id))


@router.get(
    "/{escrow_id}/status",
    response_model=EscrowStatusResponse,
    summary="Lightweight status check",
)
async def get_escrow_status(
    escrow_id: str,
    session: AsyncSession = Depends(get_db_session),
    settings: Settings = Depends(get_app_settings),
) -> EscrowStatusResponse:
    svc = EscrowService(session, settings)
    return EscrowStatusResponse(**await svc.get_status(escrow_id))


@router.get(
    "/{escrow_id}/events",
    response_model=list[EscrowEventResponse],
    summary="Get audit trail",
)
async def get_escrow_events(
    escrow_id: str,
    session: AsyncSession = Depends(get_db_session),
    settings: Settings = Depends(get_app_settings),
) -> list[EscrowEventResponse]:
    """All events for an escrow, oldest first."""
    svc = EscrowService(session, settings)
    events = await svc.get_events(escrow_id)
    return [EscrowEventResponse.model_validate(e) for e in events]


@fees_router.get(
    "/quote",
    summary="Fee breakdown for a raw escrow amount",
)
async def quote_fees(
    amount: str = Query(..., description="Raw escrow amount"),
    session: AsyncSession = Depends(get_db_session),
    settings: Settings = Depends(get_app_settings),
) -> dict[str, str]:
    return EscrowService(session, settings).quote(amount).to_dict()
