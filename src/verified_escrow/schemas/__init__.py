"""Pydantic API schemas."""

from verified_escrow.schemas.escrow import (
    CreateEscrowRequest,
    DepositRequest,
    EscrowEventResponse,
    EscrowResponse,
    EscrowStatusResponse,
    HealthResponse,
    ReturnFundsRequest,
)

__all__ = [
    "CreateEscrowRequest",
    "DepositRequest",
    "EscrowEventResponse",
    "EscrowResponse",
    "EscrowStatusResponse",
    "HealthResponse",
    "ReturnFundsRequest",
]
