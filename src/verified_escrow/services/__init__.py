"""Application services — use case orchestration."""

from verified_escrow.services.escrow_service import EscrowService
from verified_escrow.services.settlement_service import SettlementService
from verified_escrow.services.verification_service import VerificationService

__all__ = ["EscrowService", "SettlementService", "VerificationService"]
