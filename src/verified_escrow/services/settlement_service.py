"""Settlement Service — drives the external ledger exactly once per decision.

Implements the SettlementDispatcher contract on top of the settlements table:

    1. The escrow must already be in the action's terminal status.
    2. A CONFIRMED record for (escrow, action) is returned as-is (replayed);
       the ledger is not called again.
    3. Otherwise an attempt is recorded and the ledger is called under the
       settlement timeout with idempotency key "<escrowId>:<action>".
    4. The outcome is stored as CONFIRMED or FAILED. A failure never touches
       the escrow's status or stored verdict and can be replayed.

The caller owns the transaction and must commit after settle() returns or
raises SettlementFailedError, so that the attempt is persisted either way.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from verified_escrow.config import get_settings
from verified_escrow.domain.enums import (
    EscrowStatus,
    EventType,
    SettlementAction,
    SettlementStatus,
)
from verified_escrow.domain.exceptions import (
    EscrowNotFoundError,
    InvalidStateError,
    LedgerError,
    SettlementFailedError,
)
from verified_escrow.domain.fees import to_minor_units
from verified_escrow.domain.settlement_port import (
    SettlementReceipt,
    TransferInstruction,
    idempotency_key,
)
from verified_escrow.infrastructure.database.orm_models import SettlementRecord
from verified_escrow.infrastructure.database.repositories import (
    EscrowRepository,
    EventRepository,
    SettlementRepository,
)
from verified_escrow.logging_config import get_logger

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from verified_escrow.config import Settings
    from verified_escrow.domain.fees import FeeBreakdown
    from verified_escrow.domain.settlement_port import LedgerPort

logger = get_logger(__name__)


class SettlementService:
    """Idempotent settlement of terminal escrow decisions."""

    def __init__(
        self,
        session: AsyncSession,
        ledger: LedgerPort,
        settings: Settings | None = None,
    ) -> None:
        self._ledger = ledger
        self._settings = settings or get_settings()
        self._escrow_repo = EscrowRepository(session)
        self._event_repo = EventRepository(session)
        self._settlement_repo = SettlementRepository(session)

    async def settle(
        self,
        escrow_id: str,
        action: SettlementAction,
        fee_breakdown: FeeBreakdown,
    ) -> SettlementReceipt:
        escrow = await self._escrow_repo.get_by_id(escrow_id)
        if escrow is None:
            raise EscrowNotFoundError(escrow_id)

        terminal = action.terminal_status
        if escrow.status != terminal:
            raise InvalidStateError(escrow.status, f"settle {action.value}")

        record = await self._settlement_repo.get(escrow_id, action)
        if record is not None and record.status == SettlementStatus.CONFIRMED:
            logger.info(
                "settlement.replayed",
                escrow_id=escrow_id,
                action=action.value,
                reference=record.reference,
            )
            return self._receipt(record, replayed=True)

        payee = escrow.freelancer if action is SettlementAction.RELEASE else escrow.client
        amount = fee_breakdown.payout(action)
        platform_fee = fee_breakdown.platform_retained(action)

        if record is None:
            record = await self._settlement_repo.create(
                SettlementRecord(
                    escrow_id=escrow_id,
                    action=action.value,
                    status=SettlementStatus.PENDING.value,
                    payee=payee,
                    amount_units=to_minor_units(amount),
                    fee_units=to_minor_units(platform_fee),
                    currency=self._settings.ledger_currency,
                    attempts=0,
                )
            )
        record.attempts += 1
        await self._settlement_repo.mark(record, SettlementStatus.PENDING)

        instruction = TransferInstruction(
            idempotency_key=idempotency_key(escrow_id, action),
            escrow_id=escrow_id,
            action=action,
            payee=record.payee,
            amount=record.amount,
            platform_fee=record.platform_fee,
            currency=record.currency,
        )

        timeout = self._settings.settlement_timeout_seconds
        try:
            async with asyncio.timeout(timeout):
                reference = await self._ledger.transfer(instruction)
        except TimeoutError:
            reason = f"ledger did not respond within {timeout:g}s"
        except LedgerError as exc:
            reason = exc.message
        else:
            await self._settlement_repo.mark(record, SettlementStatus.CONFIRMED, reference=reference)
            await self._event_repo.record(
                escrow_id=escrow_id,
                event_type=EventType.SETTLEMENT_CONFIRMED,
                old_status=EscrowStatus(terminal),
                new_status=EscrowStatus(terminal),
                actor="LEDGER",
                metadata={
                    "action": action.value,
                    "reference": reference,
                    "amount": str(record.amount),
                    "attempts": record.attempts,
                },
            )
            logger.info(
                "settlement.confirmed",
                escrow_id=escrow_id,
                action=action.value,
                reference=reference,
                attempts=record.attempts,
            )
            return self._receipt(record)

        await self._settlement_repo.mark(record, SettlementStatus.FAILED, error=reason)
        await self._event_repo.record(
            escrow_id=escrow_id,
            event_type=EventType.SETTLEMENT_FAILED,
            old_status=EscrowStatus(terminal),
            new_status=EscrowStatus(terminal),
            actor="LEDGER",
            metadata={"action": action.value, "error": reason, "attempts": record.attempts},
        )
        logger.warning(
            "settlement.failed",
            escrow_id=escrow_id,
            action=action.value,
            reason=reason,
            attempts=record.attempts,
        )
        raise SettlementFailedError(escrow_id, action.value, reason)

    async def get_records(self, escrow_id: str) -> list[SettlementRecord]:
        return await self._settlement_repo.get_by_escrow(escrow_id)

    @staticmethod
    def _receipt(record: SettlementRecord, replayed: bool = False) -> SettlementReceipt:
        return SettlementReceipt(
            escrow_id=record.escrow_id,
            action=SettlementAction(record.action),
            reference=record.reference or "",
            payee=record.payee,
            amount=record.amount,
            platform_fee=record.platform_fee,
            currency=record.currency,
            settled_at=record.settled_at or datetime.now(UTC),
            replayed=replayed,
        )
