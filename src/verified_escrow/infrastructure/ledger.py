"""Ledger adapters implementing LedgerPort.

Two implementations:
    - SimulatedLedger: in-memory, fake 0x references. Used in development,
      the simulation script and tests.
    - HttpLedgerClient: POSTs transfers to an external payment API.

Both honour the instruction's idempotency key: replaying a key returns the
original reference and moves no funds.
"""

from __future__ import annotations

import asyncio
import uuid
from typing import TYPE_CHECKING, Any

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from verified_escrow.domain.exceptions import LedgerError
from verified_escrow.logging_config import get_logger

if TYPE_CHECKING:
    from verified_escrow.config import Settings
    from verified_escrow.domain.settlement_port import LedgerPort, TransferInstruction

logger = get_logger(__name__)


class SimulatedLedger:
    """In-memory ledger that generates fake transaction hashes.

    Args:
        fail_times: Number of upcoming transfers that raise LedgerError.
        delay_seconds: Artificial latency per transfer.
    """

    def __init__(self, fail_times: int = 0, delay_seconds: float = 0.0) -> None:
        self.fail_times = fail_times
        self.delay_seconds = delay_seconds
        self.transfers: list[TransferInstruction] = []
        self._references: dict[str, str] = {}

    async def transfer(self, instruction: TransferInstruction) -> str:
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)

        existing = self._references.get(instruction.idempotency_key)
        if existing is not None:
            logger.info(
                "ledger.simulated.replayed",
                key=instruction.idempotency_key,
                reference=existing,
            )
            return existing

        if self.fail_times > 0:
            self.fail_times -= 1
            raise LedgerError("Simulated ledger failure")

        reference = "0x" + uuid.uuid4().hex + uuid.uuid4().hex
        self._references[instruction.idempotency_key] = reference
        self.transfers.append(instruction)
        logger.info(
            "ledger.simulated.transfer",
            key=instruction.idempotency_key,
            payee=instruction.payee,
            amount=str(instruction.amount),
            reference=reference,
        )
        return reference


class HttpLedgerClient:
    """Client for an external payment API.

    POST {base_url}/transfers with an idempotency key. A 409 means the key
    was already applied and is treated as success. Transport errors are
    retried with exponential backoff; HTTP error statuses are not.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout_seconds: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        self._base_url = base_url
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=httpx.Timeout(timeout_seconds),
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def transfer(self, instruction: TransferInstruction) -> str:
        body = {
            "idempotencyKey": instruction.idempotency_key,
            "escrowId": instruction.escrow_id,
            "action": instruction.action.value,
            "destination": instruction.payee,
            "amount": {"amount": str(instruction.amount), "currency": instruction.currency},
            "platformFee": str(instruction.platform_fee),
        }
        try:
            response = await self._post_transfer(body, instruction.idempotency_key)
        except httpx.HTTPError as exc:
            logger.warning(
                "ledger.http.unavailable",
                base_url=self._base_url,
                key=instruction.idempotency_key,
                error=str(exc),
            )
            raise LedgerError(f"Ledger unavailable: {exc}") from exc

        if response.status_code in (200, 201, 409):
            reference = self._reference_from(response) or instruction.idempotency_key
            if response.status_code == 409:
                logger.info(
                    "ledger.http.already_applied",
                    key=instruction.idempotency_key,
                    reference=reference,
                )
            return reference

        logger.warning(
            "ledger.http.rejected",
            status_code=response.status_code,
            key=instruction.idempotency_key,
        )
        raise LedgerError(
            f"Ledger returned unexpected status {response.status_code}",
            status_code=response.status_code,
        )

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        reraise=True,
    )
    async def _post_transfer(self, body: dict[str, Any], key: str) -> httpx.Response:
        return await self._client.post(
            "/transfers",
            json=body,
            headers={"Idempotency-Key": key},
        )

    @staticmethod
    def _reference_from(response: httpx.Response) -> str | None:
        try:
            payload = response.json()
        except ValueError:
            return None
        if not isinstance(payload, dict):
            return None
        reference = payload.get("transferId") or payload.get("id")
        return str(reference) if reference else None


def create_ledger(settings: Settings) -> LedgerPort:
    """Pick the ledger adapter named by ``settings.ledger_mode``."""
    if settings.ledger_mode == "http":
        if not settings.ledger_url:
            raise ValueError("LEDGER_URL must be set when LEDGER_MODE=http")
        return HttpLedgerClient(
            base_url=settings.ledger_url,
            api_key=settings.ledger_api_key,
            timeout_seconds=settings.settlement_timeout_seconds,
        )
    return SimulatedLedger()
