"""Database infrastructure — engine, ORM models, and repositories."""

from verified_escrow.infrastructure.database.engine import (
    build_engine,
    build_session_factory,
    close_db,
    create_tables,
    init_db,
)
from verified_escrow.infrastructure.database.orm_models import (
    Base,
    Escrow,
    EscrowEvent,
    SettlementRecord,
)
from verified_escrow.infrastructure.database.repositories import (
    EscrowRepository,
    EventRepository,
    SettlementRepository,
)

__all__ = [
    "Base",
    "Escrow",
    "EscrowEvent",
    "SettlementRecord",
    "EscrowRepository",
    "EventRepository",
    "SettlementRepository",
    "build_engine",
    "build_session_factory",
    "create_tables",
    "init_db",
    "close_db",
]
