"""Tests for VerificationService input checks, classification and reading."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from pathlib import Path

import pytest

from verified_escrow.config import Settings
from verified_escrow.domain.enums import SubmissionCategory
from verified_escrow.domain.exceptions import ValidationError, VerificationTimedOutError
from verified_escrow.domain.models import SubmittedFile
from verified_escrow.services.verification_service import UNAVAILABLE_ISSUE, VerificationService
from verified_escrow.verifiers import MockVerifier

LANDING_PAGE = (
    "<!DOCTYPE html><html><head><meta name='viewport'><title>x</title></head><body>"
    "<form action='/contact'><input name='email'></form>"
    + "<p>About the product.</p>" * 60
    + "</body></html>"
)


class HangingReader:
    async def read_text(self, upload: SubmittedFile) -> str:
        await asyncio.sleep(10)
        return ""


class TestInputChecks:
    @pytest.mark.asyncio
    async def test_description_required(self, settings: Settings) -> None:
        upload = SubmittedFile(file_name="a.mp4", size_bytes=1)
        with pytest.raises(ValidationError, match="Task description is required"):
            await VerificationService(settings=settings).verify("esc-1", "  ", upload)

    @pytest.mark.asyncio
    async def test_file_required(self, settings: Settings) -> None:
        with pytest.raises(ValidationError, match="No file uploaded"):
            await VerificationService(settings=settings).verify("esc-1", "video", None)

    @pytest.mark.asyncio
    async def test_size_ceiling(self, settings: Settings) -> None:
        upload = SubmittedFile(file_name="a.mp4", size_bytes=50 * 1024 * 1024 + 1)
        with pytest.raises(ValidationError, match="Maximum size is 50MB"):
            await VerificationService(settings=settings).verify("esc-1", "video", upload)

    @pytest.mark.asyncio
    async def test_category_not_accepted(self, settings: Settings) -> None:
        upload = SubmittedFile(file_name="tool.exe", size_bytes=10)
        with pytest.raises(ValidationError, match="'unknown' is not accepted"):
            await VerificationService(settings=settings).verify("esc-1", "a tool", upload)


class TestVerify:
    @pytest.mark.asyncio
    async def test_reads_and_scores_webpage(
        self, settings: Settings, make_upload: Callable[..., SubmittedFile]
    ) -> None:
        upload = make_upload("index.html", LANDING_PAGE)
        result = await VerificationService(settings=settings).verify(
            "esc-1", "Build a responsive landing page with a contact form", upload
        )
        assert result.verified is True
        assert result.confidence_score >= 0.95
        assert result.category is SubmissionCategory.WEBPAGE

    @pytest.mark.asyncio
    async def test_binary_scored_on_metadata(self, settings: Settings) -> None:
        upload = SubmittedFile(file_name="demo.mp4", size_bytes=3_000_000)
        result = await VerificationService(settings=settings).verify(
            "esc-1", "Create a 2-minute demo video", upload
        )
        assert result.verified is True

    @pytest.mark.asyncio
    async def test_missing_file_is_rejection(self, settings: Settings, tmp_path: Path) -> None:
        upload = SubmittedFile(file_name="index.html", size_bytes=10, path=tmp_path / "gone.html")
        result = await VerificationService(settings=settings).verify("esc-1", "webpage", upload)
        assert result.verified is False
        assert result.confidence_score == 0.0
        assert result.issues == (UNAVAILABLE_ISSUE,)

    @pytest.mark.asyncio
    async def test_missing_binary_is_rejection(self, settings: Settings, tmp_path: Path) -> None:
        upload = SubmittedFile(file_name="demo.mp4", size_bytes=10, path=tmp_path / "gone.mp4")
        result = await VerificationService(settings=settings).verify("esc-1", "video", upload)
        assert result.issues == (UNAVAILABLE_ISSUE,)

    @pytest.mark.asyncio
    async def test_read_timeout(self, settings: Settings, tmp_path: Path) -> None:
        fast = settings.model_copy(update={"file_read_timeout_seconds": 0.05})
        upload = SubmittedFile(file_name="a.txt", size_bytes=1, path=tmp_path / "a.txt")
        svc = VerificationService(reader=HangingReader(), settings=fast)
        with pytest.raises(VerificationTimedOutError):
            await svc.verify("esc-1", "notes", upload)

    @pytest.mark.asyncio
    async def test_injected_verifier(self, settings: Settings) -> None:
        svc = VerificationService(verifier=MockVerifier(should_pass=False), settings=settings)
        result = await svc.verify("esc-1", "video", SubmittedFile(file_name="a.mp4", size_bytes=1))
        assert result.verified is False

    def test_policy_from_settings(self, settings: Settings) -> None:
        strict = settings.model_copy(update={"verification_min_score": 0.9})
        assert VerificationService(settings=strict).policy.min_score == 0.9
