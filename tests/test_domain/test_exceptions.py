"""Tests for domain exceptions and value objects."""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal
from pathlib import Path

from verified_escrow.domain.enums import SettlementAction, SubmissionCategory
from verified_escrow.domain.exceptions import (
    AlreadyFundedError,
    InvalidAmountError,
    InvalidStateError,
    SettlementFailedError,
    ValidationError,
)
from verified_escrow.domain.models import SubmittedFile, VerificationResult
from verified_escrow.domain.settlement_port import SettlementReceipt, idempotency_key


class TestErrors:
    def test_validation_error_carries_field(self) -> None:
        err = ValidationError("No file uploaded", field="submission")
        assert err.to_dict() == {
            "error": "VALIDATION_ERROR",
            "message": "No file uploaded",
            "details": {"field": "submission"},
        }

    def test_invalid_amount_is_a_validation_error(self) -> None:
        err = InvalidAmountError("-1")
        assert isinstance(err, ValidationError)
        assert err.code == "INVALID_AMOUNT"

    def test_invalid_state_details(self) -> None:
        err = InvalidStateError("RELEASED", "return_funds")
        assert err.details == {"current_state": "RELEASED", "attempted": "return_funds"}

    def test_settlement_failure_is_retryable(self) -> None:
        body = SettlementFailedError("esc-1", "RELEASE", "boom").to_dict()
        assert body["retryable"] is True
        assert body["error"] == "SETTLEMENT_FAILED"

    def test_already_funded_not_retryable(self) -> None:
        assert "retryable" not in AlreadyFundedError("esc-1").to_dict()


class TestValueObjects:
    def test_result_to_dict(self) -> None:
        result = VerificationResult(
            confidence_score=0.85,
            verified=True,
            feedback="ok",
            strengths=("Form elements detected in webpage",),
            category=SubmissionCategory.WEBPAGE,
        )
        body = result.to_dict()
        assert body["confidenceScore"] == 0.85
        assert body["fileType"] == "webpage"
        assert body["issues"] == []

    def test_discard_removes_spooled_file(self, tmp_path: Path) -> None:
        path = tmp_path / "a.txt"
        path.write_text("x")
        upload = SubmittedFile(file_name="a.txt", size_bytes=1, path=path)
        assert upload.discard() is True
        assert not path.exists()
        assert upload.discard() is False

    def test_discard_without_path(self) -> None:
        assert SubmittedFile(file_name="a.txt", size_bytes=1).discard() is False

    def test_idempotency_key(self) -> None:
        assert idempotency_key("esc-1", SettlementAction.REFUND) == "esc-1:REFUND"

    def test_receipt_to_dict(self) -> None:
        receipt = SettlementReceipt(
            escrow_id="esc-1",
            action=SettlementAction.RELEASE,
            reference="0xabc",
            payee="bob",
            amount=Decimal("99"),
            platform_fee=Decimal("2"),
            currency="USD",
            settled_at=datetime(2026, 1, 1, tzinfo=UTC),
        )
        body = receipt.to_dict()
        assert body["action"] == "RELEASE"
        assert body["amount"] == "99"
        assert body["replayed"] is False
