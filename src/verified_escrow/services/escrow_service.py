"""Escrow Service — the only writer of an escrow's status.

Coordinates between:
    - Domain state machine (transition guard)
    - Fee calculator (quotes on deposit and at each terminal transition)
    - Repositories (data access)
    - Event log (audit trail)

Both the REST routes and the decision workflow call into this service. It
never commits and never settles: a terminal transition returns a
TransitionOutcome that the caller hands to the settlement service once the
transition is committed.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy.exc import IntegrityError
from statemachine.exceptions import TransitionNotAllowed

from verified_escrow.config import get_settings
from verified_escrow.domain.enums import EscrowStatus, EventType, SettlementAction
from verified_escrow.domain.exceptions import (
    AlreadyFundedError,
    EscrowExistsError,
    EscrowNotFoundError,
    InvalidPartyError,
    InvalidStateError,
    UnauthorizedError,
    ValidationError,
)
from verified_escrow.domain.fees import FeeBreakdown, compute_fees, to_amount, to_minor_units
from verified_escrow.domain.models import TransitionOutcome
from verified_escrow.domain.state_machine import (
    EscrowStateMachine,
    derive_workflow_step,
    validate_transition,
)
from verified_escrow.infrastructure.database.orm_models import Escrow
from verified_escrow.infrastructure.database.repositories import (
    EscrowRepository,
    EventRepository,
)
from verified_escrow.logging_config import get_logger

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from verified_escrow.config import Settings
    from verified_escrow.domain.models import VerificationResult
    from verified_escrow.infrastructure.database.orm_models import EscrowEvent

logger = get_logger(__name__)

MAX_ESCROW_ID_LENGTH = 64


class EscrowService:
    """Manages the escrow lifecycle."""

    def __init__(self, session: AsyncSession, settings: Settings | None = None) -> None:
        self._session = session
        self._settings = settings or get_settings()
        self._escrow_repo = EscrowRepository(session)
        self._event_repo = EventRepository(session)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create_escrow(
        self,
        client: str,
        freelancer: str | None,
        escrow_id: str | None = None,
    ) -> Escrow:
        """Create a new escrow in NONE status. The amount is set on deposit."""
        client = (client or "").strip()
        freelancer = (freelancer or "").strip()
        if not client:
            raise ValidationError("Client is required", field="client")
        if not freelancer:
            raise InvalidPartyError("Freelancer is required")
        if freelancer == client:
            raise InvalidPartyError("Freelancer must be different from client")

        escrow_id = (escrow_id or "").strip() or uuid.uuid4().hex
        if len(escrow_id) > MAX_ESCROW_ID_LENGTH:
            raise ValidationError(
                f"Escrow id must be at most {MAX_ESCROW_ID_LENGTH} characters", field="escrow_id"
            )
        if await self._escrow_repo.exists(escrow_id):
            raise EscrowExistsError(escrow_id)

        try:
            escrow = await self._escrow_repo.create(
                Escrow(
                    id=escrow_id,
                    client=client,
                    freelancer=freelancer,
                    status=EscrowStatus.NONE.value,
                )
            )
        except IntegrityError as exc:
            # A concurrent create with the same id won the insert.
            raise EscrowExistsError(escrow_id) from exc
        await self._event_repo.record(
            escrow_id=escrow.id,
            event_type=EventType.ESCROW_CREATED,
            old_status=None,
            new_status=EscrowStatus.NONE,
            actor=client,
            metadata={"freelancer": freelancer},
        )

        logger.info("escrow.created", escrow_id=escrow.id, client=client, freelancer=freelancer)
        return escrow

    # ------------------------------------------------------------------
    # Funding
    # ------------------------------------------------------------------

    async def deposit_funds(self, escrow_id: str, caller: str, amount: object) -> Escrow:
        """Client deposits the escrow amount: NONE -> DEPOSITED."""
        escrow = await self._get_escrow_or_raise(escrow_id)

        if caller != escrow.client:
            raise UnauthorizedError(caller, "deposit funds")
        if escrow.status != EscrowStatus.NONE:
            raise AlreadyFundedError(escrow_id)

        raw = to_amount(amount)
        quote = self.quote(raw)
        new_status = self._fire_transition(escrow, "deposit_funds")

        funded = await self._escrow_repo.transition_status(
            escrow,
            expected=EscrowStatus.NONE,
            new_status=new_status,
            amount_units=to_minor_units(raw),
            deposited_at=datetime.now(UTC),
        )
        if not funded:
            raise AlreadyFundedError(escrow_id)

        await self._event_repo.record(
            escrow_id=escrow.id,
            event_type=EventType.FUNDS_DEPOSITED,
            old_status=EscrowStatus.NONE,
            new_status=EscrowStatus.DEPOSITED,
            actor=caller,
            metadata={"amount": str(raw), "feeBreakdown": quote.to_dict()},
        )

        logger.info(
            "escrow.deposited",
            escrow_id=escrow_id,
            amount=str(raw),
            client_pays=str(quote.client_pays),
        )
        return escrow

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    async def record_verification(self, escrow_id: str, result: VerificationResult) -> Escrow:
        """Store the latest verdict. Status is unchanged."""
        escrow = await self._get_escrow_or_raise(escrow_id)
        if escrow.status != EscrowStatus.DEPOSITED:
            raise InvalidStateError(escrow.status, "record_verification")

        await self._escrow_repo.record_verification(escrow, result.to_dict())

        event_type = (
            EventType.VERIFICATION_PASSED if result.verified else EventType.VERIFICATION_REJECTED
        )
        await self._event_repo.record(
            escrow_id=escrow.id,
            event_type=event_type,
            old_status=EscrowStatus.DEPOSITED,
            new_status=EscrowStatus.DEPOSITED,
            actor="VERIFIER",
            metadata={
                "confidenceScore": result.confidence_score,
                "issues": list(result.issues),
            },
        )

        logger.info(
            "verification.passed" if result.verified else "verification.rejected",
            escrow_id=escrow_id,
            score=result.confidence_score,
            issues=len(result.issues),
        )
        return escrow

    # ------------------------------------------------------------------
    # Terminal transitions
    # ------------------------------------------------------------------

    async def release_payment(
        self,
        escrow_id: str,
        result: VerificationResult,
    ) -> TransitionOutcome:
        """DEPOSITED -> RELEASED, only on a verified result."""
        escrow = await self._get_escrow_or_raise(escrow_id)
        new_status = self._fire_transition(escrow, "release_payment")
        if not result.verified:
            raise ValidationError(
                "Cannot release payment without a verified result", field="verification"
            )

        await self._commit_transition(escrow, new_status, "release_payment")
        outcome = self._outcome(escrow, EscrowStatus.DEPOSITED, SettlementAction.RELEASE)

        await self._event_repo.record(
            escrow_id=escrow.id,
            event_type=EventType.PAYMENT_RELEASED,
            old_status=EscrowStatus.DEPOSITED,
            new_status=new_status,
            actor="SYSTEM",
            metadata={
                "payee": outcome.payee,
                "confidenceScore": result.confidence_score,
                "feeBreakdown": outcome.fee_breakdown.to_dict(),
            },
        )

        logger.info(
            "escrow.released",
            escrow_id=escrow_id,
            payee=outcome.payee,
            payout=str(outcome.fee_breakdown.freelancer_receives),
        )
        return outcome

    async def return_funds(
        self,
        escrow_id: str,
        caller: str,
        result: VerificationResult | None = None,
        cancelled: bool = False,
    ) -> TransitionOutcome:
        """DEPOSITED -> REFUNDED on a rejected verdict or an explicit cancellation.

        Without ``result`` the stored latest verdict is used.
        """
        escrow = await self._get_escrow_or_raise(escrow_id)
        if caller != escrow.client:
            raise UnauthorizedError(caller, "return funds")
        new_status = self._fire_transition(escrow, "return_funds")

        if result is not None:
            rejected = not result.verified
        else:
            last = escrow.last_verification or {}
            rejected = last.get("verified") is False
        if not (rejected or cancelled):
            raise ValidationError(
                "Refund requires a rejected verification or an explicit cancellation",
                field="verification",
            )

        await self._commit_transition(escrow, new_status, "return_funds")
        outcome = self._outcome(escrow, EscrowStatus.DEPOSITED, SettlementAction.REFUND)

        await self._event_repo.record(
            escrow_id=escrow.id,
            event_type=EventType.FUNDS_RETURNED,
            old_status=EscrowStatus.DEPOSITED,
            new_status=new_status,
            actor=caller,
            metadata={
                "payee": outcome.payee,
                "reason": "cancelled" if cancelled and not rejected else "rejected",
                "feeBreakdown": outcome.fee_breakdown.to_dict(),
            },
        )

        logger.info(
            "escrow.refunded",
            escrow_id=escrow_id,
            payee=outcome.payee,
            cancelled=cancelled,
        )
        return outcome

    async def terminal_outcome(self, escrow_id: str) -> TransitionOutcome:
        """Rebuild the outcome of an already-decided escrow (settlement retries)."""
        escrow = await self._get_escrow_or_raise(escrow_id)
        status = EscrowStatus(escrow.status)
        if not status.is_terminal:
            raise InvalidStateError(escrow.status, "settle")
        action = (
            SettlementAction.RELEASE if status is EscrowStatus.RELEASED else SettlementAction.REFUND
        )
        return self._outcome(escrow, EscrowStatus.DEPOSITED, action)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def quote(self, amount: object) -> FeeBreakdown:
        return compute_fees(
            amount,
            self._settings.client_fee_rate,
            self._settings.freelancer_fee_rate,
        )

    async def get_escrow(self, escrow_id: str) -> Escrow:
        return await self._get_escrow_or_raise(escrow_id)

    async def get_status(self, escrow_id: str) -> dict:
        """Status, allowed events and the derived progress step."""
        escrow = await self._get_escrow_or_raise(escrow_id)
        sm = EscrowStateMachine(current_status=escrow.status)
        last = escrow.last_verification
        return {
            "escrow_id": escrow.id,
            "status": escrow.status,
            "amount": str(escrow.amount) if escrow.amount is not None else None,
            "allowed_events": sm.get_allowed_events(),
            "workflow_step": derive_workflow_step(
                escrow.status, last.get("verified") if last else None
            ),
            "last_verification": last,
        }

    async def get_events(self, escrow_id: str) -> list[EscrowEvent]:
        await self._get_escrow_or_raise(escrow_id)
        return await self._event_repo.get_by_escrow(escrow_id)

    # ------------------------------------------------------------------
    # Private Helpers
    # ------------------------------------------------------------------

    async def _get_escrow_or_raise(self, escrow_id: str) -> Escrow:
        if not escrow_id or not str(escrow_id).strip():
            raise ValidationError("Escrow id is required", field="escrow_id")
        escrow = await self._escrow_repo.get_by_id(escrow_id)
        if escrow is None:
            raise EscrowNotFoundError(escrow_id)
        return escrow

    def _fire_transition(self, escrow: Escrow, event_name: str) -> EscrowStatus:
        """Validate a transition on the domain state machine and return the target."""
        try:
            return validate_transition(escrow.status, event_name)
        except TransitionNotAllowed as exc:
            raise InvalidStateError(escrow.status, event_name) from exc

    async def _commit_transition(
        self,
        escrow: Escrow,
        new_status: EscrowStatus,
        event_name: str,
    ) -> None:
        """Write DEPOSITED -> ``new_status`` unless another caller got there first."""
        moved = await self._escrow_repo.transition_status(
            escrow, expected=EscrowStatus.DEPOSITED, new_status=new_status
        )
        if not moved:
            current = await self._get_escrow_or_raise(escrow.id)
            raise InvalidStateError(current.status, event_name)

    def _outcome(
        self,
        escrow: Escrow,
        previous: EscrowStatus,
        action: SettlementAction,
    ) -> TransitionOutcome:
        payee = escrow.freelancer if action is SettlementAction.RELEASE else escrow.client
        return TransitionOutcome(
            escrow_id=escrow.id,
            previous_status=previous,
            new_status=action.terminal_status,
            action=action,
            payee=payee,
            fee_breakdown=self.quote(escrow.amount),
        )
