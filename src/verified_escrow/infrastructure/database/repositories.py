"""Repository classes for database access.

Repositories encapsulate all SQL queries and provide a clean interface
to the service layer. They accept an AsyncSession and never manage
their own transactions (that's the caller's responsibility).
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import select, update

from verified_escrow.infrastructure.database.orm_models import (
    Escrow,
    EscrowEvent,
    SettlementRecord,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from verified_escrow.domain.enums import (
        EscrowStatus,
        EventType,
        SettlementAction,
        SettlementStatus,
    )


class EscrowRepository:
    """Data access for escrows."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, escrow: Escrow) -> Escrow:
        self._session.add(escrow)
        await self._session.flush()
        return escrow

    async def get_by_id(self, escrow_id: str) -> Escrow | None:
        """Fetch an escrow by id, bypassing any stale identity-map copy."""
        result = await self._session.execute(
            select(Escrow).where(Escrow.id == escrow_id).execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def exists(self, escrow_id: str) -> bool:
        result = await self._session.execute(select(Escrow.id).where(Escrow.id == escrow_id))
        return result.scalar_one_or_none() is not None

    async def transition_status(
        self,
        escrow: Escrow,
        expected: EscrowStatus,
        new_status: EscrowStatus,
        **values: Any,
    ) -> bool:
        """Move ``escrow`` to ``new_status`` only if the row is still ``expected``.

        Runs as a single conditional UPDATE, so of two racing transitions
        exactly one changes the row. Returns False when the stored status
        has already moved on; the escrow is left untouched in that case.
        """
        result = await self._session.execute(
            update(Escrow)
            .where(Escrow.id == escrow.id, Escrow.status == expected.value)
            .values(status=new_status.value, updated_at=datetime.now(UTC), **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return False
        await self._session.refresh(escrow)
        return True

    async def record_verification(self, escrow: Escrow, verification: dict) -> Escrow:
        escrow.last_verification = verification
        escrow.updated_at = datetime.now(UTC)
        await self._session.flush()
        return escrow


class EventRepository:
    """Data access for the append-only audit event log."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def record(
        self,
        escrow_id: str,
        event_type: EventType,
        old_status: EscrowStatus | None,
        new_status: EscrowStatus,
        actor: str = "SYSTEM",
        metadata: dict | None = None,
    ) -> EscrowEvent:
        """Append a new audit event. This is the ONLY write operation allowed."""
        evt = EscrowEvent(
            escrow_id=escrow_id,
            event_type=event_type.value,
            old_status=old_status.value if old_status else None,
            new_status=new_status.value,
            actor=actor,
            metadata_json=metadata,
        )
        self._session.add(evt)
        await self._session.flush()
        return evt

    async def get_by_escrow(self, escrow_id: str) -> list[EscrowEvent]:
        """Fetch all events for an escrow in insertion order."""
        result = await self._session.execute(
            select(EscrowEvent).where(EscrowEvent.escrow_id == escrow_id).order_by(EscrowEvent.id)
        )
        return list(result.scalars().all())


class SettlementRepository:
    """Data access for settlement records."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, escrow_id: str, action: SettlementAction) -> SettlementRecord | None:
        result = await self._session.execute(
            select(SettlementRecord)
            .where(
                SettlementRecord.escrow_id == escrow_id,
                SettlementRecord.action == action.value,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_by_escrow(self, escrow_id: str) -> list[SettlementRecord]:
        result = await self._session.execute(
            select(SettlementRecord)
            .where(SettlementRecord.escrow_id == escrow_id)
            .order_by(SettlementRecord.id)
        )
        return list(result.scalars().all())

    async def create(self, record: SettlementRecord) -> SettlementRecord:
        self._session.add(record)
        await self._session.flush()
        return record

    async def mark(
        self,
        record: SettlementRecord,
        status: SettlementStatus,
        reference: str | None = None,
        error: str | None = None,
    ) -> SettlementRecord:
        record.status = status.value
        if reference is not None:
            record.reference = reference
            record.settled_at = datetime.now(UTC)
        record.last_error = error
        await self._session.flush()
        return record
