"""Tests for the ledger adapters."""

from __future__ import annotations

import json
from decimal import Decimal

import httpx
import pytest
from tenacity import wait_none

from verified_escrow.config import Settings
from verified_escrow.domain.enums import SettlementAction
from verified_escrow.domain.exceptions import LedgerError
from verified_escrow.domain.settlement_port import TransferInstruction
from verified_escrow.infrastructure.ledger import HttpLedgerClient, SimulatedLedger, create_ledger


def _instruction(action: SettlementAction = SettlementAction.RELEASE) -> TransferInstruction:
    return TransferInstruction(
        idempotency_key=f"esc-1:{action.value}",
        escrow_id="esc-1",
        action=action,
        payee="bob",
        amount=Decimal("99.000000"),
        platform_fee=Decimal("2.000000"),
        currency="USD",
    )


@pytest.fixture(autouse=True)
def _no_backoff(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(HttpLedgerClient._post_transfer.retry, "wait", wait_none())


class TestSimulatedLedger:
    @pytest.mark.asyncio
    async def test_transfer_is_idempotent(self) -> None:
        ledger = SimulatedLedger()
        first = await ledger.transfer(_instruction())
        second = await ledger.transfer(_instruction())
        assert first == second
        assert len(first) == 66
        assert len(ledger.transfers) == 1

    @pytest.mark.asyncio
    async def test_configured_failures(self) -> None:
        ledger = SimulatedLedger(fail_times=2)
        for _ in range(2):
            with pytest.raises(LedgerError):
                await ledger.transfer(_instruction())
        assert (await ledger.transfer(_instruction())).startswith("0x")


class TestHttpLedgerClient:
    @pytest.mark.asyncio
    async def test_posts_transfer(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(201, json={"transferId": "tr_123"})

        client = HttpLedgerClient(
            "https://ledger.test", api_key="k", transport=httpx.MockTransport(handler)
        )
        try:
            reference = await client.transfer(_instruction())
        finally:
            await client.aclose()

        assert reference == "tr_123"
        [request] = seen
        assert request.url.path == "/transfers"
        assert request.headers["Idempotency-Key"] == "esc-1:RELEASE"
        assert request.headers["Authorization"] == "Bearer k"
        body = json.loads(request.content)
        assert body["destination"] == "bob"
        assert body["amount"] == {"amount": "99.000000", "currency": "USD"}
        assert body["platformFee"] == "2.000000"

    @pytest.mark.asyncio
    async def test_conflict_means_already_applied(self) -> None:
        transport = httpx.MockTransport(lambda r: httpx.Response(409, json={"id": "tr_9"}))
        client = HttpLedgerClient("https://ledger.test", transport=transport)
        assert await client.transfer(_instruction()) == "tr_9"
        await client.aclose()

    @pytest.mark.asyncio
    async def test_conflict_without_body_falls_back_to_key(self) -> None:
        transport = httpx.MockTransport(lambda r: httpx.Response(409, text="duplicate"))
        client = HttpLedgerClient("https://ledger.test", transport=transport)
        assert await client.transfer(_instruction()) == "esc-1:RELEASE"
        await client.aclose()

    @pytest.mark.asyncio
    async def test_server_error_not_retried(self) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(500)

        client = HttpLedgerClient("https://ledger.test", transport=httpx.MockTransport(handler))
        with pytest.raises(LedgerError) as exc_info:
            await client.transfer(_instruction())
        await client.aclose()
        assert exc_info.value.status_code == 500
        assert calls == 1

    @pytest.mark.asyncio
    async def test_transport_errors_retried(self) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            if calls < 3:
                raise httpx.ConnectError("refused", request=request)
            return httpx.Response(200, json={"transferId": "tr_ok"})

        client = HttpLedgerClient("https://ledger.test", transport=httpx.MockTransport(handler))
        assert await client.transfer(_instruction()) == "tr_ok"
        await client.aclose()
        assert calls == 3

    @pytest.mark.asyncio
    async def test_transport_errors_exhausted(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        client = HttpLedgerClient("https://ledger.test", transport=httpx.MockTransport(handler))
        with pytest.raises(LedgerError, match="Ledger unavailable"):
            await client.transfer(_instruction())
        await client.aclose()


class TestCreateLedger:
    def test_simulated_by_default(self, settings: Settings) -> None:
        assert isinstance(create_ledger(settings), SimulatedLedger)

    def test_http_requires_url(self, settings: Settings) -> None:
        with pytest.raises(ValueError, match="LEDGER_URL"):
            create_ledger(settings.model_copy(update={"ledger_mode": "http"}))

    @pytest.mark.asyncio
    async def test_http_mode(self, settings: Settings) -> None:
        ledger = create_ledger(
            settings.model_copy(update={"ledger_mode": "http", "ledger_url": "https://l.test"})
        )
        assert isinstance(ledger, HttpLedgerClient)
        await ledger.aclose()
