"""Pydantic schemas for the Escrow API.

These schemas define the request/response shapes for the REST API. They are
separate from the ORM models to keep the API and database layers apart.
Business validation (parties, amounts, states) stays in the escrow service so
that it yields the domain's error kinds rather than a generic 422.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Request Schemas
# ---------------------------------------------------------------------------


class CreateEscrowRequest(BaseModel):
    """Request body for creating a new escrow."""

    client: str = Field(
        ...,
        max_length=128,
        description="Opaque identifier of the paying party",
        examples=["0x742d35Cc6634C0532925a3b844Bc9e7595f2bD18"],
    )
    freelancer: str | None = Field(
        default=None,
        max_length=128,
        description="Opaque identifier of the party doing the work (must differ from client)",
    )
    escrow_id: str | None = Field(
        default=None,
        max_length=64,
        description="Caller-chosen escrow id; generated when omitted",
    )


class DepositRequest(BaseModel):
    """Request body for depositing funds."""

    caller: str = Field(..., description="Must be the escrow's client")
    amount: Decimal = Field(
        ...,
        description="Raw escrow amount (the client fee is charged on top)",
        examples=["100.00"],
    )


class ReturnFundsRequest(BaseModel):
    """Request body for refunding the client."""

    caller: str = Field(..., description="Must be the escrow's client")
    cancelled: bool = Field(
        default=False,
        description="Explicit cancellation; otherwise a rejected verdict is required",
    )


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------


class EscrowResponse(BaseModel):
    """Response schema for an escrow."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    client: str
    freelancer: str
    amount: Decimal | None
    status: str
    last_verification: dict | None
    created_at: datetime
    updated_at: datetime
    deposited_at: datetime | None


class EscrowEventResponse(BaseModel):
    """Response schema for an audit event."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    escrow_id: str
    event_type: str
    old_status: str | None
    new_status: str
    actor: str
    metadata: dict | None = Field(default=None, validation_alias="metadata_json")
    created_at: datetime


class EscrowStatusResponse(BaseModel):
    """Lightweight status check response."""

    escrow_id: str
    status: str
    amount: str | None
    allowed_events: list[str] = Field(
        description="State machine events that can fire from the current status"
    )
    workflow_step: int = Field(description="Progress indicator derived from the status (2-6)")
    last_verification: dict | None = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    version: str = "0.1.0"
    database: str = "unknown"
    ledger: str = "unknown"
