"""Domain exceptions for the verified escrow.

These exceptions are framework-agnostic and represent business rule violations.
Each carries a machine-readable ``code`` (the error kind callers branch on)
and a human message. They are translated to HTTP responses by the API
layer's middleware and to ERROR envelopes by the decision workflow.
"""

from __future__ import annotations


class EscrowError(Exception):
    """Base exception for all domain errors."""

    retryable = False

    def __init__(self, message: str, code: str = "ESCROW_ERROR") -> None:
        self.message = message
        self.code = code
        self.details: dict = {}
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Structured form for API bodies and decision envelopes."""
        body = {"error": self.code, "message": self.message}
        if self.details:
            body["details"] = self.details
        if self.retryable:
            body["retryable"] = True
        return body


# --- Input Errors ---


class ValidationError(EscrowError):
    """Malformed or missing required input (description, file, escrow id)."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message=message, code="VALIDATION_ERROR")
        if field:
            self.details = {"field": field}


class InvalidAmountError(ValidationError):
    """Raised when an amount is not a positive, 6-decimal currency quantity."""

    def __init__(self, amount: object) -> None:
        super().__init__(
            message=f"Invalid amount: {amount}. Must be greater than zero.",
            field="amount",
        )
        self.code = "INVALID_AMOUNT"


class EscrowExistsError(ValidationError):
    """Raised when creating an escrow with an id that is already taken."""

    def __init__(self, escrow_id: str) -> None:
        super().__init__(message=f"Escrow already exists: {escrow_id}", field="escrow_id")
        self.code = "ESCROW_EXISTS"


class FileUnavailableError(EscrowError):
    """Raised when submission metadata or content cannot be read."""

    def __init__(self, file_name: str, reason: str = "") -> None:
        message = f"Submitted file is unavailable: {file_name}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message=message, code="FILE_UNAVAILABLE")
        self.file_name = file_name


# --- Escrow Errors ---


class EscrowNotFoundError(EscrowError):
    """Raised when an escrow id does not exist."""

    def __init__(self, escrow_id: str) -> None:
        super().__init__(
            message=f"Escrow not found: {escrow_id}",
            code="ESCROW_NOT_FOUND",
        )
        self.escrow_id = escrow_id


class InvalidStateError(EscrowError):
    """Raised when an attempted transition is not allowed from the current status.

    Example: RELEASED -> release_payment (already terminal).
    """

    def __init__(self, current_state: str, attempted: str) -> None:
        super().__init__(
            message=f"Invalid state transition: {attempted} is not allowed from {current_state}",
            code="INVALID_STATE",
        )
        self.current_state = current_state
        self.attempted = attempted
        self.details = {"current_state": current_state, "attempted": attempted}


class AlreadyFundedError(EscrowError):
    """Raised when depositing into an escrow that is no longer in NONE."""

    def __init__(self, escrow_id: str) -> None:
        super().__init__(
            message=f"Escrow already funded: {escrow_id}",
            code="ALREADY_FUNDED",
        )
        self.escrow_id = escrow_id


class UnauthorizedError(EscrowError):
    """Raised when the caller is not the party allowed to perform the action."""

    def __init__(self, caller: str, action: str) -> None:
        super().__init__(
            message=f"Caller {caller or '<anonymous>'} is not allowed to {action}",
            code="UNAUTHORIZED",
        )
        self.caller = caller


class InvalidPartyError(EscrowError):
    """Raised when the freelancer is missing or the same party as the client."""

    def __init__(self, message: str = "Freelancer must be present and distinct from client") -> None:
        super().__init__(message=message, code="INVALID_PARTY")


# --- Verification Errors ---


class VerificationTimedOutError(EscrowError):
    """Raised when a verification attempt exceeds its time budget.

    The escrow status is left untouched and the attempt is not retried.
    """

    def __init__(self, escrow_id: str, timeout_seconds: float) -> None:
        super().__init__(
            message=f"Verification for escrow {escrow_id} timed out after {timeout_seconds:g}s",
            code="VERIFICATION_TIMED_OUT",
        )
        self.escrow_id = escrow_id


# --- Settlement Errors ---


class LedgerError(EscrowError):
    """Raised by a ledger adapter when the external transfer is refused or fails."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message=message, code="LEDGER_ERROR")
        self.status_code = status_code


class SettlementFailedError(EscrowError):
    """Raised when the external ledger did not confirm a decided settlement.

    The escrow's terminal status and verdict stand; replaying ``settle`` for
    the same escrow and action is safe.
    """

    retryable = True

    def __init__(self, escrow_id: str, action: str, reason: str) -> None:
        super().__init__(
            message=f"Settlement {action} for escrow {escrow_id} failed: {reason}",
            code="SETTLEMENT_FAILED",
        )
        self.escrow_id = escrow_id
        self.action = action
        self.details = {"action": action}


class InternalError(EscrowError):
    """Unexpected fault, surfaced without internal detail."""

    def __init__(self, message: str = "An unexpected error occurred") -> None:
        super().__init__(message=message, code="INTERNAL_ERROR")
