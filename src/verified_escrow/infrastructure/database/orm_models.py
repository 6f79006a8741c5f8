"""SQLAlchemy 2.0 ORM models for the verified escrow.

Three tables:
    1. escrows        — One row per escrow; status owned by EscrowStateMachine.
    2. escrow_events  — Append-only audit log of every transition and verdict.
    3. settlements    — One row per (escrow, action) ledger settlement.

Design decisions:
    - Opaque string ids: escrow ids come from the caller (or a uuid4 hex).
    - Amounts stored as BIGINT micro-units (6 decimals), never floats.
    - Portable JSON columns so the same models run on PostgreSQL and SQLite.
    - CHECK constraints on status and amount mirror the domain invariants.
    - UNIQUE(escrow_id, action) on settlements: one settlement per decision.
"""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import (
    JSON,
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from verified_escrow.domain.fees import from_minor_units


def _now() -> datetime:
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# ---------------------------------------------------------------------------
# 1. escrows
# ---------------------------------------------------------------------------
class Escrow(Base):
    """A two-party escrow between a client and a freelancer."""

    __tablename__ = "escrows"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)

    # --- Parties ---
    client: Mapped[str] = mapped_column(String(128), nullable=False)
    freelancer: Mapped[str] = mapped_column(String(128), nullable=False)

    # --- Financials ---
    amount_units: Mapped[int | None] = mapped_column(
        BigInteger,
        nullable=True,
        default=None,
        comment="Deposited amount in micro-units; null until deposit",
    )

    # --- Status (guarded by EscrowStateMachine) ---
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="NONE")

    # --- Latest verdict (view-only; drives the derived workflow step) ---
    last_verification: Mapped[dict | None] = mapped_column(JSON, nullable=True, default=None)

    # --- Timestamps ---
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now, onupdate=_now
    )
    deposited_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, default=None
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('NONE', 'DEPOSITED', 'RELEASED', 'REFUNDED')",
            name="ck_escrow_valid_status",
        ),
        CheckConstraint(
            "amount_units IS NULL OR amount_units > 0",
            name="ck_escrow_positive_amount",
        ),
        CheckConstraint("client <> freelancer", name="ck_escrow_distinct_parties"),
        Index("idx_escrow_status", "status"),
        Index("idx_escrow_client", "client"),
    )

    @property
    def amount(self) -> Decimal | None:
        if self.amount_units is None:
            return None
        return from_minor_units(self.amount_units)

    def __repr__(self) -> str:
        return f"<Escrow id={self.id} status={self.status} amount={self.amount}>"


# ---------------------------------------------------------------------------
# 2. escrow_events (Append-Only Audit Log)
# ---------------------------------------------------------------------------
class EscrowEvent(Base):
    """Immutable audit record. Rows are only ever inserted."""

    __tablename__ = "escrow_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    escrow_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("escrows.id", ondelete="CASCADE"),
        nullable=False,
    )
    event_type: Mapped[str] = mapped_column(String(40), nullable=False)
    old_status: Mapped[str | None] = mapped_column(String(16), nullable=True)
    new_status: Mapped[str] = mapped_column(String(16), nullable=False)
    actor: Mapped[str] = mapped_column(String(128), nullable=False, default="SYSTEM")
    metadata_json: Mapped[dict | None] = mapped_column(
        "metadata", JSON, nullable=True, default=None
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now
    )

    __table_args__ = (
        Index("idx_event_escrow", "escrow_id"),
        Index("idx_event_type", "event_type"),
    )

    def __repr__(self) -> str:
        return (
            f"<EscrowEvent id={self.id} type={self.event_type} "
            f"{self.old_status}->{self.new_status}>"
        )


# ---------------------------------------------------------------------------
# 3. settlements
# ---------------------------------------------------------------------------
class SettlementRecord(Base):
    """Ledger settlement of one terminal decision.

    PENDING while an attempt is in flight, CONFIRMED once the ledger returned
    a reference, FAILED when the last attempt did not confirm.
    """

    __tablename__ = "settlements"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    escrow_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("escrows.id", ondelete="CASCADE"),
        nullable=False,
    )
    action: Mapped[str] = mapped_column(String(10), nullable=False)
    status: Mapped[str] = mapped_column(String(12), nullable=False, default="PENDING")
    payee: Mapped[str] = mapped_column(String(128), nullable=False)
    amount_units: Mapped[int] = mapped_column(BigInteger, nullable=False)
    fee_units: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    currency: Mapped[str] = mapped_column(String(8), nullable=False, default="USD")
    reference: Mapped[str | None] = mapped_column(String(128), nullable=True, default=None)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True, default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now
    )
    settled_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, default=None
    )

    __table_args__ = (
        UniqueConstraint("escrow_id", "action", name="uq_settlement_escrow_action"),
        CheckConstraint("action IN ('RELEASE', 'REFUND')", name="ck_settlement_action"),
        CheckConstraint(
            "status IN ('PENDING', 'CONFIRMED', 'FAILED')",
            name="ck_settlement_status",
        ),
        CheckConstraint("attempts >= 0", name="ck_settlement_attempts"),
    )

    @property
    def amount(self) -> Decimal:
        return from_minor_units(self.amount_units)

    @property
    def platform_fee(self) -> Decimal:
        return from_minor_units(self.fee_units)

    def __repr__(self) -> str:
        return (
            f"<SettlementRecord escrow={self.escrow_id} action={self.action} "
            f"status={self.status} attempts={self.attempts}>"
        )
