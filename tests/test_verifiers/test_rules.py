"""Tests for the scoring rule table."""

from __future__ import annotations

from decimal import Decimal

from verified_escrow.domain.enums import SubmissionCategory
from verified_escrow.verifiers.rules import (
    RULES,
    Finding,
    ScoreCard,
    ScoringInput,
    ScoringRule,
    evaluate,
    score_submission,
)

LANDING_PAGE = (
    "<!DOCTYPE html>\n<html>\n<head>\n"
    '<meta name="viewport" content="width=device-width">\n<title>Acme</title>\n'
    "</head>\n<body>\n"
    '<form action="/contact"><input type="email" name="email"></form>\n'
    + "<p>Details about the product and the team.</p>\n" * 30
    + "</body>\n</html>\n"
)


class TestScenarios:
    def test_landing_page_scores_high(self) -> None:
        card = score_submission(
            "Build a responsive landing page with a contact form",
            SubmissionCategory.WEBPAGE,
            LANDING_PAGE,
            len(LANDING_PAGE),
        )
        assert card.final_score >= 0.95
        assert card.issues == ()
        assert "Form elements detected in webpage" in card.strengths
        assert "Responsive design elements detected" in card.strengths
        assert "Proper HTML structure detected" in card.strengths

    def test_video_task_with_small_webpage(self) -> None:
        card = score_submission(
            "Create a 2-minute demo video", SubmissionCategory.WEBPAGE, None, 800
        )
        # 0.7 - 0.5 (not a video) - 5 * 0.05 (structure) + 0.05 (size) -> 0.0
        assert card.final_score == 0.0
        assert card.issues[0] == "Description mentions video but submitted file is not a video file"
        assert "Missing HTML doctype" in card.issues
        assert len(card.issues) == 6

    def test_video_submitted_for_video_task(self) -> None:
        card = score_submission("Edit a product video", SubmissionCategory.VIDEO, None, 5_000_000)
        assert card.final_score == 1.0
        assert card.strengths == (
            "Correctly submitted video file as requested",
            "Video file size appears appropriate",
        )

    def test_video_at_exactly_one_megabyte_is_neutral(self) -> None:
        card = score_submission("Create a demo video", SubmissionCategory.VIDEO, None, 1_000_000)
        assert card.final_score == 0.9
        assert card.strengths == ("Correctly submitted video file as requested",)
        assert card.issues == ()

    def test_small_video_penalized(self) -> None:
        card = score_submission("Edit a product video", SubmissionCategory.VIDEO, None, 999_999)
        assert card.final_score == 0.7
        assert "Video file seems too small for a complete video (less than 1MB)" in card.issues

    def test_content_markers_case_insensitive(self) -> None:
        upper = score_submission(
            "landing", SubmissionCategory.WEBPAGE, "<!DOCTYPE HTML><HTML><HEAD><TITLE>", 50
        )
        lower = score_submission(
            "landing", SubmissionCategory.WEBPAGE, "<!doctype html><html><head><title>", 50
        )
        assert upper == lower

    def test_website_keyword_rewards_webpage(self) -> None:
        card = score_submission("Build a website", SubmissionCategory.WEBPAGE, "", 10)
        assert card.strengths[0] == "Correctly submitted webpage file as requested"

    def test_html_keyword_only_penalizes(self) -> None:
        card = score_submission("Write some html", SubmissionCategory.TEXT, "hello", 10)
        assert card.issues == ("Description mentions website but submitted file is not a webpage",)
        assert card.strengths == ()

    def test_javascript_file(self) -> None:
        code = "function greet(name) { return `hi ${name}`; }\n" * 3
        card = score_submission("Write javascript code", SubmissionCategory.JAVASCRIPT, code, 150)
        assert card.strengths == (
            "JavaScript file submitted as expected",
            "Substantial JavaScript code provided",
            "Functions/methods implemented",
        )
        assert card.final_score == 0.95


class TestScoreCard:
    def test_decimal_accumulation_is_exact(self) -> None:
        penalty = ScoringRule(
            name="p",
            applies=lambda i: True,
            predicate=lambda i: False,
            on_fail=Finding("penalty", Decimal("-0.05")),
        )
        card = evaluate(ScoringInput.build("x", SubmissionCategory.TEXT, "", 1), [penalty, penalty])
        assert card.score == Decimal("0.6")
        assert card.final_score == 0.6

    def test_clamped(self) -> None:
        assert ScoreCard(score=Decimal("1.4")).final_score == 1.0
        assert ScoreCard(score=Decimal("-0.3")).final_score == 0.0

    def test_apply_returns_new_card(self) -> None:
        card = ScoreCard()
        after = card.apply(Finding("good", Decimal("0.1")))
        assert card.strengths == ()
        assert after.strengths == ("good",)

    def test_rule_that_does_not_apply(self) -> None:
        inp = ScoringInput.build("plain text", SubmissionCategory.TEXT, "", 1)
        assert evaluate(inp) == ScoreCard()

    def test_rule_names_unique(self) -> None:
        names = [r.name for r in RULES]
        assert len(names) == len(set(names))
