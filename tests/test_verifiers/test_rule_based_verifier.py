"""Tests for RuleBasedVerifier."""

from __future__ import annotations

import pytest

from verified_escrow.domain.enums import SubmissionCategory
from verified_escrow.domain.models import Submission
from verified_escrow.domain.verifier_protocol import VerificationRequest
from verified_escrow.verifiers.rule_based import RuleBasedVerifier
from verified_escrow.verifiers.verdict import VerdictPolicy


def _request(description: str, name: str, category: SubmissionCategory, size: int,
             content: str | None = None) -> VerificationRequest:
    return VerificationRequest(
        escrow_id="esc-1",
        task_description=description,
        submission=Submission(
            file_name=name,
            size_bytes=size,
            declared_description=description,
            category=category,
            text_content=content,
        ),
    )


class TestRuleBasedVerifier:
    @pytest.mark.asyncio
    async def test_verified_video(self) -> None:
        request = _request("Create a demo video", "demo.mp4", SubmissionCategory.VIDEO, 2_000_000)
        result = await RuleBasedVerifier().verify(request)
        assert result.verified is True
        assert result.confidence_score == 1.0
        assert result.category is SubmissionCategory.VIDEO
        assert result.analysis == 'Analyzed video file (demo.mp4) against: "Create a demo video"'

    @pytest.mark.asyncio
    async def test_rejected_mismatch(self) -> None:
        request = _request("Create a demo video", "demo.html", SubmissionCategory.WEBPAGE, 800)
        result = await RuleBasedVerifier().verify(request)
        assert result.verified is False
        assert result.confidence_score == 0.0
        assert "Key issues:" in result.feedback

    @pytest.mark.asyncio
    async def test_policy_applies(self) -> None:
        request = _request("Edit a video", "clip.mp4", SubmissionCategory.VIDEO, 10)
        # 0.7 + 0.2 - 0.2 = 0.7 with one issue
        lenient = await RuleBasedVerifier().verify(request)
        strict = await RuleBasedVerifier(VerdictPolicy(min_score=0.6, max_issues=0)).verify(request)
        assert lenient.verified is True
        assert strict.verified is False
        assert lenient.confidence_score == strict.confidence_score == 0.7

    @pytest.mark.asyncio
    async def test_deterministic(self) -> None:
        request = _request("Write a document", "spec.pdf", SubmissionCategory.DOCUMENT, 60_000)
        first = await RuleBasedVerifier().verify(request)
        second = await RuleBasedVerifier().verify(request)
        assert first == second
