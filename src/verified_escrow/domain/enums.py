"""Domain enumerations for the verified escrow.

These enums define the canonical states and types used throughout the system.
They are framework-agnostic (no SQLAlchemy, no FastAPI imports).
"""

import enum


class EscrowStatus(enum.StrEnum):
    """Lifecycle states of an escrow.

    NONE -> DEPOSITED -> RELEASED | REFUNDED. Both outcomes are terminal.
    Transitions are enforced by the EscrowStateMachine guard
    (see domain/state_machine.py).
    """

    NONE = "NONE"
    DEPOSITED = "DEPOSITED"
    RELEASED = "RELEASED"
    REFUNDED = "REFUNDED"

    @property
    def is_terminal(self) -> bool:
        return self in (EscrowStatus.RELEASED, EscrowStatus.REFUNDED)


class EventType(enum.StrEnum):
    """Types of audit events recorded in the escrow_events table.

    Every status transition produces exactly one event; verdicts and
    settlement attempts are recorded alongside without changing status.
    """

    # Lifecycle events
    ESCROW_CREATED = "ESCROW_CREATED"
    FUNDS_DEPOSITED = "FUNDS_DEPOSITED"

    # Verification events
    VERIFICATION_PASSED = "VERIFICATION_PASSED"
    VERIFICATION_REJECTED = "VERIFICATION_REJECTED"

    # Terminal transitions
    PAYMENT_RELEASED = "PAYMENT_RELEASED"
    FUNDS_RETURNED = "FUNDS_RETURNED"

    # Settlement events
    SETTLEMENT_CONFIRMED = "SETTLEMENT_CONFIRMED"
    SETTLEMENT_FAILED = "SETTLEMENT_FAILED"


class SubmissionCategory(enum.StrEnum):
    """Semantic category of a submitted file, derived from its extension."""

    VIDEO = "video"
    WEBPAGE = "webpage"
    JAVASCRIPT = "javascript"
    STYLESHEET = "stylesheet"
    DATA = "data"
    TEXT = "text"
    DOCUMENT = "document"
    ARCHIVE = "archive"
    IMAGE = "image"
    UNKNOWN = "unknown"


class SettlementAction(enum.StrEnum):
    """Which way the escrowed funds move once the escrow is terminal."""

    RELEASE = "RELEASE"
    REFUND = "REFUND"

    @property
    def terminal_status(self) -> EscrowStatus:
        """The escrow status that must be committed before this action settles."""
        if self is SettlementAction.RELEASE:
            return EscrowStatus.RELEASED
        return EscrowStatus.REFUNDED


class SettlementStatus(enum.StrEnum):
    """State of a settlement record in the settlements table."""

    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    FAILED = "FAILED"


class DecisionStatus(enum.StrEnum):
    """Status field of the decision envelope returned to the transport layer."""

    VERIFIED = "VERIFIED"
    REJECTED = "REJECTED"
    REFUNDED = "REFUNDED"
    ERROR = "ERROR"


class VerifierType(enum.StrEnum):
    """Verification strategies the VerifierFactory can build."""

    RULE_BASED = "rule_based"
    MOCK = "mock"
