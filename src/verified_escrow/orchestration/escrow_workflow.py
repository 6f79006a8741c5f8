"""Decision workflow: submit -> verify -> transition -> settle.

One EscrowWorkflow is built per process. Each call:

    1. Takes the per-escrow lock (same escrow: serialized; different: parallel)
    2. Opens its own database session
    3. Verifies under the verification timeout
    4. Records the verdict and, if verified, commits the RELEASED transition
    5. Settles the committed transition through the ledger
    6. Returns a decision envelope; errors become ERROR envelopes

The uploaded file is discarded on every exit path. A timeout or cancellation
before step 4 commits leaves the escrow untouched.

Deposits take the same lock through deposit_funds but raise instead of
returning an envelope.

Envelopes:
    {success: False, status: "REJECTED", confidenceScore, feedback, issues}
    {success: True,  status: "VERIFIED", confidenceScore, feedback, feeBreakdown, settlementReceipt}
    {success: True,  status: "REFUNDED", feeBreakdown, settlementReceipt}
    {success: False, status: "ERROR", error, message, ...}
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from verified_escrow.config import get_settings
from verified_escrow.domain.enums import DecisionStatus, EscrowStatus, SettlementAction
from verified_escrow.domain.exceptions import (
    EscrowError,
    InternalError,
    InvalidStateError,
    SettlementFailedError,
    ValidationError,
    VerificationTimedOutError,
)
from verified_escrow.domain.fees import to_amount
from verified_escrow.infrastructure.locks import KeyedLock
from verified_escrow.logging_config import escrow_context, get_logger
from verified_escrow.services.escrow_service import EscrowService
from verified_escrow.services.settlement_service import SettlementService

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from verified_escrow.config import Settings
    from verified_escrow.domain.models import SubmittedFile, TransitionOutcome
    from verified_escrow.domain.settlement_port import LedgerPort, SettlementReceipt
    from verified_escrow.infrastructure.database.orm_models import Escrow
    from verified_escrow.services.verification_service import VerificationService

logger = get_logger(__name__)


def error_envelope(exc: EscrowError) -> dict[str, Any]:
    return {"success": False, "status": DecisionStatus.ERROR.value, **exc.to_dict()}


class EscrowWorkflow:
    """Runs decisions for escrows, one at a time per escrow id."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        verification_service: VerificationService,
        ledger: LedgerPort,
        settings: Settings | None = None,
        locks: KeyedLock | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._verification = verification_service
        self._ledger = ledger
        self._settings = settings or get_settings()
        self._locks = locks or KeyedLock()

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def run(
        self,
        escrow_id: str,
        task_description: str,
        upload: SubmittedFile | None,
        escrow_amount: object = None,
    ) -> dict[str, Any]:
        """Verify a submission and release payment if it passes."""
        try:
            return await self._guarded(
                escrow_id,
                lambda: self._verify_and_release(escrow_id, task_description, upload, escrow_amount),
            )
        finally:
            self._discard(upload)

    async def return_funds(
        self,
        escrow_id: str,
        caller: str,
        cancelled: bool = False,
    ) -> dict[str, Any]:
        """Refund the client after a rejection or an explicit cancellation."""
        return await self._guarded(
            escrow_id, lambda: self._return_funds(escrow_id, caller, cancelled)
        )

    async def retry_settlement(self, escrow_id: str) -> dict[str, Any]:
        """Replay only the settlement step of an already-decided escrow."""
        return await self._guarded(escrow_id, lambda: self._retry_settlement(escrow_id))

    async def deposit_funds(self, escrow_id: str, caller: str, amount: object) -> Escrow:
        """Fund an escrow under its lock and commit.

        Unlike the decision operations this raises EscrowError subclasses
        instead of returning an envelope; the HTTP layer maps them.
        """
        with escrow_context(escrow_id):
            async with self._locks.hold(escrow_id):
                async with self._session_factory() as session:
                    escrow = await EscrowService(session, self._settings).deposit_funds(
                        escrow_id, caller=caller, amount=amount
                    )
                    await session.commit()
                    return escrow

    # ------------------------------------------------------------------
    # Steps (run under the escrow lock)
    # ------------------------------------------------------------------

    async def _verify_and_release(
        self,
        escrow_id: str,
        task_description: str,
        upload: SubmittedFile | None,
        escrow_amount: object,
    ) -> dict[str, Any]:
        async with self._session_factory() as session:
            escrows = EscrowService(session, self._settings)
            escrow = await escrows.get_escrow(escrow_id)
            if escrow.status != EscrowStatus.DEPOSITED:
                raise InvalidStateError(escrow.status, "verify_and_release")
            if escrow_amount not in (None, "") and to_amount(escrow_amount) != escrow.amount:
                raise ValidationError(
                    "Escrow amount does not match the deposited amount", field="escrowAmount"
                )

            timeout = self._settings.verification_timeout_seconds
            try:
                async with asyncio.timeout(timeout):
                    result = await self._verification.verify(escrow_id, task_description, upload)
            except TimeoutError as exc:
                logger.warning("workflow.timed_out", timeout=timeout)
                raise VerificationTimedOutError(escrow_id, timeout) from exc

            await escrows.record_verification(escrow_id, result)
            if not result.verified:
                await session.commit()
                return {
                    "success": False,
                    "status": DecisionStatus.REJECTED.value,
                    "confidenceScore": result.confidence_score,
                    "feedback": result.feedback,
                    "issues": list(result.issues),
                    "strengths": list(result.strengths),
                }

            outcome = await escrows.release_payment(escrow_id, result)
            await session.commit()

            receipt = await self._settle(session, outcome)
            return {
                "success": True,
                "status": DecisionStatus.VERIFIED.value,
                "confidenceScore": result.confidence_score,
                "feedback": result.feedback,
                "strengths": list(result.strengths),
                "feeBreakdown": outcome.fee_breakdown.to_dict(),
                "settlementReceipt": receipt.to_dict(),
            }

    async def _return_funds(self, escrow_id: str, caller: str, cancelled: bool) -> dict[str, Any]:
        async with self._session_factory() as session:
            escrows = EscrowService(session, self._settings)
            outcome = await escrows.return_funds(escrow_id, caller, cancelled=cancelled)
            await session.commit()
            receipt = await self._settle(session, outcome)
            return self._settled_envelope(outcome, receipt)

    async def _retry_settlement(self, escrow_id: str) -> dict[str, Any]:
        async with self._session_factory() as session:
            outcome = await EscrowService(session, self._settings).terminal_outcome(escrow_id)
            receipt = await self._settle(session, outcome)
            return self._settled_envelope(outcome, receipt)

    async def _settle(self, session: AsyncSession, outcome: TransitionOutcome) -> SettlementReceipt:
        """Settle a committed transition and persist the attempt either way."""
        settlement = SettlementService(session, self._ledger, self._settings)
        try:
            receipt = await settlement.settle(
                outcome.escrow_id, outcome.action, outcome.fee_breakdown
            )
        except SettlementFailedError:
            await session.commit()
            raise
        await session.commit()
        return receipt

    # ------------------------------------------------------------------
    # Private Helpers
    # ------------------------------------------------------------------

    async def _guarded(
        self,
        escrow_id: str,
        step: Callable[[], Awaitable[dict[str, Any]]],
    ) -> dict[str, Any]:
        """Run ``step`` under the escrow lock and turn errors into envelopes."""
        if not escrow_id or not str(escrow_id).strip():
            return error_envelope(ValidationError("Escrow id is required", field="escrowId"))

        with escrow_context(escrow_id):
            try:
                async with self._locks.hold(escrow_id):
                    return await step()
            except EscrowError as exc:
                logger.info("workflow.error", error=exc.code, message=exc.message)
                return error_envelope(exc)
            except Exception:
                logger.exception("workflow.unexpected_error")
                return error_envelope(InternalError())

    @staticmethod
    def _settled_envelope(
        outcome: TransitionOutcome,
        receipt: SettlementReceipt,
    ) -> dict[str, Any]:
        status = (
            DecisionStatus.VERIFIED
            if outcome.action is SettlementAction.RELEASE
            else DecisionStatus.REFUNDED
        )
        return {
            "success": True,
            "status": status.value,
            "feeBreakdown": outcome.fee_breakdown.to_dict(),
            "settlementReceipt": receipt.to_dict(),
        }

    @staticmethod
    def _discard(upload: SubmittedFile | None) -> None:
        if upload is None:
            return
        try:
            upload.discard()
        except OSError as exc:
            logger.warning("workflow.discard_failed", file_name=upload.file_name, error=str(exc))
