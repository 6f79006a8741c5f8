#!/usr/bin/env python3
"""Verified Escrow: End-to-End Simulation.

Runs the example scenarios with a ClientBot and a FreelancerBot against an
in-memory SQLite database and the simulated ledger:

    Scenario A: Happy Path
        - Client creates and funds an escrow for a landing page
        - Freelancer uploads a complete HTML page -> VERIFIED + settled

    Scenario B: Wrong Deliverable, then Refund
        - Client asks for a demo video
        - Freelancer uploads a tiny web page -> REJECTED
        - Client returns the funds -> REFUNDED + settled

    Scenario C: Double Deposit
        - Client deposits twice -> second deposit fails with ALREADY_FUNDED
        - Amount and status are unchanged

Usage:
    python simulation.py
    python simulation.py --scenario A
"""

from __future__ import annotations

import argparse
import asyncio
import tempfile
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Any

from verified_escrow.config import Settings
from verified_escrow.domain.exceptions import EscrowError
from verified_escrow.domain.models import SubmittedFile
from verified_escrow.infrastructure.database.engine import (
    build_engine,
    build_session_factory,
    close_db,
    create_tables,
)
from verified_escrow.infrastructure.ledger import SimulatedLedger
from verified_escrow.logging_config import get_logger, setup_logging
from verified_escrow.orchestration import EscrowWorkflow
from verified_escrow.services.escrow_service import EscrowService
from verified_escrow.services.verification_service import VerificationService

setup_logging(log_level="INFO", json_logs=False)
logger = get_logger("simulation")

LANDING_PAGE = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <title>Acme Landing</title>
  <style>body { font-family: sans-serif; } @media (max-width: 600px) { main { padding: 0; } }</style>
</head>
<body>
  <main>
    <h1>Acme Widgets</h1>
    <p>Everything you need to ship faster, in one small box.</p>
    <form action="/contact" method="post">
      <label>Email <input type="email" name="email"></label>
      <label>Message <textarea name="message"></textarea></label>
      <button type="submit">Send</button>
    </form>
  </main>
</body>
</html>
""" + "<!-- padding -->\n" * 20


# ---------------------------------------------------------------------------
# Runtime
# ---------------------------------------------------------------------------
@dataclass
class Runtime:
    """Everything one simulation run shares."""

    settings: Settings
    session_factory: Any
    ledger: SimulatedLedger
    workflow: EscrowWorkflow
    upload_dir: Path


async def build_runtime(upload_dir: Path) -> tuple[Runtime, Any]:
    settings = Settings(
        _env_file=None,
        database_url="sqlite+aiosqlite:///:memory:",
        app_log_level="INFO",
        upload_dir=str(upload_dir),
    )
    engine = build_engine(settings)
    await create_tables(engine)
    session_factory = build_session_factory(engine)
    ledger = SimulatedLedger()
    workflow = EscrowWorkflow(
        session_factory=session_factory,
        verification_service=VerificationService(settings=settings),
        ledger=ledger,
        settings=settings,
    )
    return Runtime(settings, session_factory, ledger, workflow, upload_dir), engine


# ---------------------------------------------------------------------------
# Bot Agents
# ---------------------------------------------------------------------------
@dataclass
class ClientBot:
    """Simulated client that opens, funds and refunds escrows."""

    rt: Runtime
    name: str = "client-" + "c" * 8

    async def create_escrow(self, freelancer: str) -> str:
        async with self.rt.session_factory() as session:
            escrow = await EscrowService(session, self.rt.settings).create_escrow(
                client=self.name, freelancer=freelancer
            )
            await session.commit()
        logger.info("CLIENT: escrow created", escrow_id=escrow.id)
        return escrow.id

    async def deposit(self, escrow_id: str, amount: Decimal) -> None:
        async with self.rt.session_factory() as session:
            svc = EscrowService(session, self.rt.settings)
            escrow = await svc.deposit_funds(escrow_id, caller=self.name, amount=amount)
            await session.commit()
            fees = svc.quote(amount)
        logger.info(
            "CLIENT: funds deposited",
            escrow_id=escrow_id,
            amount=str(escrow.amount),
            client_pays=str(fees.client_pays),
        )

    async def return_funds(self, escrow_id: str) -> dict:
        envelope = await self.rt.workflow.return_funds(escrow_id, caller=self.name)
        logger.info("CLIENT: return requested", escrow_id=escrow_id, status=envelope["status"])
        return envelope

    async def status(self, escrow_id: str) -> dict:
        async with self.rt.session_factory() as session:
            return await EscrowService(session, self.rt.settings).get_status(escrow_id)


@dataclass
class FreelancerBot:
    """Simulated freelancer that uploads deliverables."""

    rt: Runtime
    name: str = "freelancer-" + "f" * 8

    def spool(self, file_name: str, data: bytes) -> SubmittedFile:
        path = self.rt.upload_dir / f"sim-{file_name}"
        path.write_bytes(data)
        return SubmittedFile(file_name=file_name, size_bytes=len(data), path=path)

    async def submit(self, escrow_id: str, task: str, file_name: str, data: bytes) -> dict:
        logger.info("FREELANCER: submitting", escrow_id=escrow_id, file_name=file_name)
        return await self.rt.workflow.run(escrow_id, task, self.spool(file_name, data))


# ---------------------------------------------------------------------------
# Print helpers
# ---------------------------------------------------------------------------
def banner(text: str) -> None:
    width = 70
    print("\n" + "=" * width)
    print(f"  {text}")
    print("=" * width + "\n")


def section(text: str) -> None:
    print(f"\n--- {text} ---\n")


def print_envelope(envelope: dict) -> None:
    print(f"  Status: {envelope.get('status')}")
    if "confidenceScore" in envelope:
        print(f"  Score: {envelope['confidenceScore']}")
    if envelope.get("feedback"):
        print(f"  Feedback: {envelope['feedback']}")
    for issue in envelope.get("issues", []):
        print(f"    - {issue}")
    receipt = envelope.get("settlementReceipt")
    if receipt:
        print(f"  Settled {receipt['amount']} to {receipt['payee']} ({receipt['reference'][:18]}...)")
    if envelope.get("error"):
        print(f"  Error: {envelope['error']}: {envelope.get('message')}")


async def print_audit_trail(rt: Runtime, escrow_id: str) -> None:
    async with rt.session_factory() as session:
        events = await EscrowService(session, rt.settings).get_events(escrow_id)
    print("\n  Audit Trail:")
    for i, evt in enumerate(events, 1):
        old = evt.old_status or "-"
        print(f"    {i}. [{evt.event_type}] {old} -> {evt.new_status} (by {evt.actor})")
    print()


# ===========================================================================
# Scenarios
# ===========================================================================
async def scenario_a_happy_path(rt: Runtime) -> None:
    banner("SCENARIO A: Happy Path, Landing Page")
    client, freelancer = ClientBot(rt), FreelancerBot(rt)

    section("Step 1: Client creates and funds escrow")
    escrow_id = await client.create_escrow(freelancer.name)
    await client.deposit(escrow_id, Decimal("100.00"))

    section("Step 2: Freelancer uploads the page")
    envelope = await freelancer.submit(
        escrow_id,
        "Build a responsive landing page with a contact form",
        "index.html",
        LANDING_PAGE.encode(),
    )
    print_envelope(envelope)
    await print_audit_trail(rt, escrow_id)


async def scenario_b_reject_and_refund(rt: Runtime) -> None:
    banner("SCENARIO B: Wrong Deliverable, then Refund")
    client, freelancer = ClientBot(rt), FreelancerBot(rt)

    section("Step 1: Client creates and funds escrow")
    escrow_id = await client.create_escrow(freelancer.name)
    await client.deposit(escrow_id, Decimal("40.00"))

    section("Step 2: Freelancer uploads a tiny web page")
    envelope = await freelancer.submit(
        escrow_id, "Create a 2-minute demo video", "demo.html", b"<p>soon</p>" * 72 + b"<!---->"
    )
    print_envelope(envelope)

    section("Step 3: Client returns the funds")
    print_envelope(await client.return_funds(escrow_id))
    await print_audit_trail(rt, escrow_id)


async def scenario_c_double_deposit(rt: Runtime) -> None:
    banner("SCENARIO C: Double Deposit")
    client, freelancer = ClientBot(rt), FreelancerBot(rt)

    escrow_id = await client.create_escrow(freelancer.name)
    await client.deposit(escrow_id, Decimal("25.00"))
    try:
        await client.deposit(escrow_id, Decimal("999.00"))
    except EscrowError as exc:
        print(f"  Second deposit refused: {exc.code}")
    status = await client.status(escrow_id)
    print(f"  Status: {status['status']}  Amount: {status['amount']}")


SCENARIOS = {
    "A": scenario_a_happy_path,
    "B": scenario_b_reject_and_refund,
    "C": scenario_c_double_deposit,
}


async def main(selected: str | None) -> None:
    with tempfile.TemporaryDirectory(prefix="escrow-sim-") as tmp:
        rt, engine = await build_runtime(Path(tmp))
        try:
            for key, scenario in SCENARIOS.items():
                if selected is None or selected.upper() == key:
                    await scenario(rt)
        finally:
            await close_db(engine)
    banner(f"Ledger transfers: {len(rt.ledger.transfers)}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Verified Escrow simulation")
    parser.add_argument("--scenario", choices=sorted(SCENARIOS), help="Run one scenario")
    args = parser.parse_args()
    asyncio.run(main(args.scenario))
