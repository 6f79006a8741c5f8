"""Tests for the escrow repository's conditional status update."""

from __future__ import annotations

from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from verified_escrow.domain.enums import EscrowStatus
from verified_escrow.infrastructure.database.orm_models import Escrow
from verified_escrow.infrastructure.database.repositories import EscrowRepository


async def _new_escrow(session: AsyncSession) -> Escrow:
    return await EscrowRepository(session).create(
        Escrow(id="esc-1", client="client-a", freelancer="freelancer-b", status="NONE")
    )


class TestTransitionStatus:
    @pytest.mark.asyncio
    async def test_moves_row_and_refreshes(self, session: AsyncSession) -> None:
        escrow = await _new_escrow(session)
        repo = EscrowRepository(session)

        moved = await repo.transition_status(
            escrow, EscrowStatus.NONE, EscrowStatus.DEPOSITED, amount_units=100_000_000
        )

        assert moved is True
        assert escrow.status == EscrowStatus.DEPOSITED
        assert escrow.amount == Decimal("100")

    @pytest.mark.asyncio
    async def test_second_writer_changes_nothing(self, session: AsyncSession) -> None:
        escrow = await _new_escrow(session)
        repo = EscrowRepository(session)
        await repo.transition_status(
            escrow, EscrowStatus.NONE, EscrowStatus.DEPOSITED, amount_units=100_000_000
        )

        moved = await repo.transition_status(
            escrow, EscrowStatus.NONE, EscrowStatus.DEPOSITED, amount_units=5_000_000
        )

        assert moved is False
        stored = await repo.get_by_id("esc-1")
        assert stored.amount == Decimal("100")

    @pytest.mark.asyncio
    async def test_terminal_row_is_not_reopened(self, session: AsyncSession) -> None:
        escrow = await _new_escrow(session)
        repo = EscrowRepository(session)
        await repo.transition_status(
            escrow, EscrowStatus.NONE, EscrowStatus.DEPOSITED, amount_units=1_000_000
        )
        await repo.transition_status(escrow, EscrowStatus.DEPOSITED, EscrowStatus.REFUNDED)

        assert not await repo.transition_status(
            escrow, EscrowStatus.DEPOSITED, EscrowStatus.RELEASED
        )
        assert (await repo.get_by_id("esc-1")).status == EscrowStatus.REFUNDED
