"""Shared test fixtures for the verified escrow test suite.

Provides:
    - Settings isolated from any local .env file
    - An in-memory SQLite engine + session factory per test
    - A simulated ledger
    - Helpers for spooling submissions and creating funded escrows
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from decimal import Decimal
from pathlib import Path

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from verified_escrow.config import Settings
from verified_escrow.domain.models import SubmittedFile
from verified_escrow.infrastructure.database.engine import (
    build_engine,
    build_session_factory,
    create_tables,
)
from verified_escrow.infrastructure.ledger import SimulatedLedger
from verified_escrow.services.escrow_service import EscrowService

CLIENT = "0x742d35Cc6634C0532925a3b844Bc9e7595f2bD18"
FREELANCER = "0x8ba1f109551bD432803012645Ac136ddd64DBA72"

LANDING_PAGE_TASK = "Build a responsive landing page with a contact form"
LANDING_PAGE = (
    "<!DOCTYPE html>\n"
    '<html lang="en">\n'
    "<head>\n"
    '  <meta name="viewport" content="width=device-width, initial-scale=1">\n'
    "  <title>Acme</title>\n"
    "</head>\n"
    "<body>\n"
    "  <div><p>Everything you need to ship faster.</p></div>\n"
    '  <form action="/contact"><input type="email" name="email"><button>Send</button></form>\n'
    + "  <p>More about our product and the people behind it.</p>\n" * 20
    + "</body>\n"
    "</html>\n"
)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings that ignore the environment's .env and use SQLite."""
    return Settings(
        _env_file=None,
        app_env="development",
        database_url="sqlite+aiosqlite:///:memory:",
        upload_dir=str(tmp_path / "uploads"),
        verification_timeout_seconds=5,
        settlement_timeout_seconds=5,
        file_read_timeout_seconds=5,
    )


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def session_factory(settings: Settings) -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    engine = build_engine(settings)
    await create_tables(engine)
    try:
        yield build_session_factory(engine)
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    async with session_factory() as s:
        yield s


@pytest.fixture
def ledger() -> SimulatedLedger:
    return SimulatedLedger()


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


@pytest.fixture
def make_upload(tmp_path: Path) -> Callable[..., SubmittedFile]:
    """Write bytes to disk and describe them as an upload."""

    def _make(file_name: str, data: bytes | str, mime_hint: str | None = None) -> SubmittedFile:
        raw = data.encode() if isinstance(data, str) else data
        path = tmp_path / f"spooled-{file_name}"
        path.write_bytes(raw)
        return SubmittedFile(file_name=file_name, size_bytes=len(raw), path=path, mime_hint=mime_hint)

    return _make


@pytest.fixture
def funded_escrow(
    session_factory: async_sessionmaker[AsyncSession],
    settings: Settings,
) -> Callable[..., object]:
    """Create and fund an escrow in its own committed transaction."""

    async def _create(escrow_id: str = "esc-1", amount: str = "100.00") -> str:
        async with session_factory() as s:
            svc = EscrowService(s, settings)
            await svc.create_escrow(CLIENT, FREELANCER, escrow_id=escrow_id)
            await svc.deposit_funds(escrow_id, caller=CLIENT, amount=Decimal(amount))
            await s.commit()
        return escrow_id

    return _create
