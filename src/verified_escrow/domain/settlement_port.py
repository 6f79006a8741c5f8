"""Settlement ports.

The escrow core decides *what* money movement happens; an external ledger
performs it. Two protocols describe that boundary:

    - LedgerPort: the raw transfer backend (simulated, HTTP payment API, chain)
    - SettlementDispatcher: the idempotent settle() contract the workflow calls

Both are Protocols (structural subtyping), so an in-memory fake satisfies
them in tests without inheriting anything.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from datetime import datetime
    from decimal import Decimal

    from verified_escrow.domain.enums import SettlementAction
    from verified_escrow.domain.fees import FeeBreakdown


def idempotency_key(escrow_id: str, action: SettlementAction) -> str:
    """Key the ledger uses to collapse duplicate transfers for one decision."""
    return f"{escrow_id}:{action.value}"


@dataclass(frozen=True)
class TransferInstruction:
    """A single fund movement the ledger must perform at most once."""

    idempotency_key: str
    escrow_id: str
    action: SettlementAction
    payee: str
    amount: Decimal
    platform_fee: Decimal
    currency: str = "USD"


@dataclass(frozen=True)
class SettlementReceipt:
    """Proof that the ledger confirmed a settlement.

    Attributes:
        reference: Ledger transaction reference (tx hash, transfer id).
        replayed: True when this receipt was returned from a prior success
            instead of a fresh ledger call.
    """

    escrow_id: str
    action: SettlementAction
    reference: str
    payee: str
    amount: Decimal
    platform_fee: Decimal
    currency: str
    settled_at: datetime
    replayed: bool = False

    def to_dict(self) -> dict:
        return {
            "escrowId": self.escrow_id,
            "action": self.action.value,
            "reference": self.reference,
            "payee": self.payee,
            "amount": str(self.amount),
            "platformFee": str(self.platform_fee),
            "currency": self.currency,
            "settledAt": self.settled_at.isoformat(),
            "replayed": self.replayed,
        }


@runtime_checkable
class LedgerPort(Protocol):
    """External backend that moves funds.

    Implementations must treat ``instruction.idempotency_key`` as unique:
    a repeated key returns the original reference without moving funds again.
    """

    async def transfer(self, instruction: TransferInstruction) -> str:
        """Execute the transfer and return the ledger reference.

        Raises:
            LedgerError: if the backend refuses or fails the transfer.
        """
        ...


@runtime_checkable
class SettlementDispatcher(Protocol):
    """Idempotent settle() contract consumed by the decision workflow."""

    async def settle(
        self,
        escrow_id: str,
        action: SettlementAction,
        fee_breakdown: FeeBreakdown,
    ) -> SettlementReceipt:
        """Settle a decided terminal action exactly once.

        Raises:
            SettlementFailedError: the ledger did not confirm; safe to replay.
            InvalidStateError: the escrow is not in the action's terminal status.
        """
        ...
