"""Domain layer — pure business logic with zero framework dependencies."""

from verified_escrow.domain.enums import (
    EscrowStatus,
    EventType,
    SettlementAction,
    SubmissionCategory,
)
from verified_escrow.domain.exceptions import (
    EscrowError,
    EscrowNotFoundError,
    InvalidStateError,
)
from verified_escrow.domain.fees import FeeBreakdown, compute_fees
from verified_escrow.domain.models import Submission, SubmittedFile, VerificationResult
from verified_escrow.domain.state_machine import (
    EscrowStateMachine,
    validate_transition,
)
from verified_escrow.domain.verifier_protocol import (
    VerificationRequest,
    VerifierStrategy,
)

__all__ = [
    "EscrowStatus",
    "EventType",
    "SettlementAction",
    "SubmissionCategory",
    "EscrowError",
    "EscrowNotFoundError",
    "InvalidStateError",
    "FeeBreakdown",
    "compute_fees",
    "Submission",
    "SubmittedFile",
    "VerificationResult",
    "EscrowStateMachine",
    "validate_transition",
    "VerificationRequest",
    "VerifierStrategy",
]
