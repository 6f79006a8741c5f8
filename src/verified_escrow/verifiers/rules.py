"""Rule table for scoring a submission against its task description.

Every rule is a record evaluated over one immutable ScoringInput:

    applies(input)    -> does the rule look at this submission at all?
    predicate(input)  -> is the expectation satisfied?
    on_pass / on_fail -> the Finding recorded for each outcome (either may be None)

A Finding with a positive delta is a strength, a negative delta an issue.
Rules never see each other's output; they only read the shared input, and
each application returns a new ScoreCard. The order of RULES fixes the order
of ``issues`` and ``strengths`` and nothing else.

Scores are accumulated in Decimal so that, e.g., 0.7 - 0.05 - 0.05 is
exactly 0.6 when it reaches the verdict threshold.

Description keywords are matched as lower-cased substrings. Content markers
are matched case-insensitively as well (``<!doctype`` == ``<!DOCTYPE``).
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, replace
from decimal import ROUND_HALF_UP, Decimal

from verified_escrow.domain.enums import SubmissionCategory

NEUTRAL_PRIOR = Decimal("0.7")
_SCORE_QUANTUM = Decimal("0.01")

MIN_VIDEO_BYTES = 1_000_000
MIN_WEBPAGE_BYTES = 100
SUBSTANTIAL_WEBPAGE_BYTES = 500
SUBSTANTIAL_WEBPAGE_CHARS = 1000
SUBSTANTIAL_SCRIPT_CHARS = 100
SUBSTANTIAL_DOCUMENT_BYTES = 50_000

HTML_STRUCTURE_MARKERS = ("<!doctype", "<html", "<head", "<body", "<title")


@dataclass(frozen=True)
class ScoringInput:
    """Everything a rule may read. Built once per submission."""

    description: str
    category: SubmissionCategory
    content: str = ""
    size_bytes: int = 0

    @classmethod
    def build(
        cls,
        task_description: str,
        category: SubmissionCategory,
        text_content: str | None,
        size_bytes: int,
    ) -> ScoringInput:
        return cls(
            description=task_description.lower(),
            category=category,
            content=(text_content or "").lower(),
            size_bytes=size_bytes,
        )

    @property
    def is_webpage(self) -> bool:
        return self.category is SubmissionCategory.WEBPAGE

    def mentions(self, *keywords: str) -> bool:
        """True if the task description mentions any of the keywords."""
        return any(k in self.description for k in keywords)

    def contains(self, *markers: str) -> bool:
        """True if the submitted content contains any of the markers."""
        return any(m in self.content for m in markers)


@dataclass(frozen=True)
class Finding:
    message: str
    delta: Decimal

    @property
    def is_strength(self) -> bool:
        return self.delta > 0


@dataclass(frozen=True)
class ScoringRule:
    name: str
    applies: Callable[[ScoringInput], bool]
    predicate: Callable[[ScoringInput], bool]
    on_pass: Finding | None = None
    on_fail: Finding | None = None

    def evaluate(self, inp: ScoringInput) -> Finding | None:
        if not self.applies(inp):
            return None
        return self.on_pass if self.predicate(inp) else self.on_fail


@dataclass(frozen=True)
class ScoreCard:
    """Accumulator threaded through the rule table."""

    score: Decimal = NEUTRAL_PRIOR
    issues: tuple[str, ...] = ()
    strengths: tuple[str, ...] = ()

    def apply(self, finding: Finding) -> ScoreCard:
        if finding.is_strength:
            return replace(
                self,
                score=self.score + finding.delta,
                strengths=(*self.strengths, finding.message),
            )
        return replace(
            self,
            score=self.score + finding.delta,
            issues=(*self.issues, finding.message),
        )

    @property
    def final_score(self) -> float:
        """Score clamped to [0, 1] and rounded to two decimals."""
        clamped = min(Decimal(1), max(Decimal(0), self.score))
        return float(clamped.quantize(_SCORE_QUANTUM, rounding=ROUND_HALF_UP))


def _is(category: SubmissionCategory) -> Callable[[ScoringInput], bool]:
    return lambda i: i.category is category


def _has_all_structure(i: ScoringInput) -> bool:
    return all(marker in i.content for marker in HTML_STRUCTURE_MARKERS)


def _structure_rule(marker: str, message: str) -> ScoringRule:
    return ScoringRule(
        name=f"structure{marker.replace('<', '_').replace('!', '')}",
        applies=lambda i: i.is_webpage,
        predicate=lambda i: marker in i.content,
        on_fail=Finding(message, Decimal("-0.05")),
    )


RULES: tuple[ScoringRule, ...] = (
    # --- Category demanded by the description (high impact) ---
    ScoringRule(
        name="video_category",
        applies=lambda i: i.mentions("video"),
        predicate=_is(SubmissionCategory.VIDEO),
        on_pass=Finding("Correctly submitted video file as requested", Decimal("0.2")),
        on_fail=Finding(
            "Description mentions video but submitted file is not a video file", Decimal("-0.5")
        ),
    ),
    ScoringRule(
        name="website_category",
        applies=lambda i: i.mentions("website", "webpage", "html"),
        predicate=lambda i: i.is_webpage,
        on_fail=Finding(
            "Description mentions website but submitted file is not a webpage", Decimal("-0.4")
        ),
    ),
    ScoringRule(
        name="website_category_match",
        applies=lambda i: i.mentions("website", "webpage"),
        predicate=lambda i: i.is_webpage,
        on_pass=Finding("Correctly submitted webpage file as requested", Decimal("0.2")),
    ),
    ScoringRule(
        name="image_category",
        applies=lambda i: i.mentions("image"),
        predicate=_is(SubmissionCategory.IMAGE),
        on_pass=Finding("Correctly submitted image file as requested", Decimal("0.2")),
        on_fail=Finding(
            "Description mentions image but submitted file is not an image", Decimal("-0.4")
        ),
    ),
    ScoringRule(
        name="document_category",
        applies=lambda i: i.mentions("document"),
        predicate=_is(SubmissionCategory.DOCUMENT),
        on_pass=Finding("Correctly submitted document file as requested", Decimal("0.2")),
        on_fail=Finding(
            "Description mentions document but submitted file is not a document", Decimal("-0.3")
        ),
    ),
    ScoringRule(
        name="code_category",
        applies=lambda i: i.mentions("code"),
        predicate=lambda i: i.category
        in (SubmissionCategory.JAVASCRIPT, SubmissionCategory.WEBPAGE),
        on_fail=Finding(
            "Description mentions code but submitted file is not a code file", Decimal("-0.3")
        ),
    ),
    # --- Content requirements (medium impact) ---
    ScoringRule(
        name="responsive",
        applies=lambda i: i.mentions("responsive") and i.is_webpage,
        predicate=lambda i: i.contains("viewport", "responsive", "@media", "mobile"),
        on_pass=Finding("Responsive design elements detected", Decimal("0.1")),
        on_fail=Finding(
            "Website should be responsive but no responsive design elements found",
            Decimal("-0.2"),
        ),
    ),
    ScoringRule(
        name="script_in_page",
        applies=lambda i: i.mentions("javascript") and i.is_webpage,
        predicate=lambda i: i.contains("script"),
        on_fail=Finding("JavaScript mentioned but no scripts found in webpage", Decimal("-0.2")),
    ),
    ScoringRule(
        name="javascript_file",
        applies=lambda i: i.mentions("javascript"),
        predicate=_is(SubmissionCategory.JAVASCRIPT),
        on_pass=Finding("JavaScript file submitted as expected", Decimal("0.1")),
    ),
    ScoringRule(
        name="form",
        applies=lambda i: i.mentions("form") and i.is_webpage,
        predicate=lambda i: i.contains("<form"),
        on_pass=Finding("Form elements detected in webpage", Decimal("0.1")),
        on_fail=Finding("Form required but no form elements found", Decimal("-0.15")),
    ),
    # --- Webpage structure (low impact, one issue per missing element) ---
    _structure_rule("<!doctype", "Missing HTML doctype"),
    _structure_rule("<html", "Missing HTML tag"),
    _structure_rule("<head", "Missing head section"),
    _structure_rule("<body", "Missing body section"),
    _structure_rule("<title", "Missing title tag"),
    ScoringRule(
        name="structure_complete",
        applies=lambda i: i.is_webpage,
        predicate=_has_all_structure,
        on_pass=Finding("Proper HTML structure detected", Decimal("0.1")),
    ),
    ScoringRule(
        name="standard_elements",
        applies=lambda i: i.is_webpage,
        predicate=lambda i: i.contains("<div", "<span", "<p"),
        on_pass=Finding("Standard HTML elements present", Decimal("0.05")),
    ),
    # --- Script quality ---
    ScoringRule(
        name="script_substantial",
        applies=_is(SubmissionCategory.JAVASCRIPT),
        predicate=lambda i: len(i.content) > SUBSTANTIAL_SCRIPT_CHARS,
        on_pass=Finding("Substantial JavaScript code provided", Decimal("0.1")),
    ),
    ScoringRule(
        name="script_functions",
        applies=_is(SubmissionCategory.JAVASCRIPT),
        predicate=lambda i: i.contains("function", "=>"),
        on_pass=Finding("Functions/methods implemented", Decimal("0.05")),
    ),
    # --- Size plausibility ---
    # Exactly MIN_VIDEO_BYTES earns neither the penalty nor the bonus.
    ScoringRule(
        name="video_too_small",
        applies=_is(SubmissionCategory.VIDEO),
        predicate=lambda i: i.size_bytes >= MIN_VIDEO_BYTES,
        on_fail=Finding(
            "Video file seems too small for a complete video (less than 1MB)", Decimal("-0.2")
        ),
    ),
    ScoringRule(
        name="video_size_appropriate",
        applies=_is(SubmissionCategory.VIDEO),
        predicate=lambda i: i.size_bytes > MIN_VIDEO_BYTES,
        on_pass=Finding("Video file size appears appropriate", Decimal("0.1")),
    ),
    ScoringRule(
        name="webpage_min_size",
        applies=lambda i: i.is_webpage,
        predicate=lambda i: i.size_bytes >= MIN_WEBPAGE_BYTES,
        on_fail=Finding(
            "Webpage file seems too small to contain meaningful content", Decimal("-0.1")
        ),
    ),
    ScoringRule(
        name="webpage_substantial_size",
        applies=lambda i: i.is_webpage,
        predicate=lambda i: i.size_bytes > SUBSTANTIAL_WEBPAGE_BYTES,
        on_pass=Finding("Substantial webpage content provided", Decimal("0.05")),
    ),
    # --- Specific content requirements ---
    ScoringRule(
        name="contact",
        applies=lambda i: i.mentions("contact") and i.is_webpage,
        predicate=lambda i: i.contains("contact", "email", "phone"),
        on_fail=Finding(
            "Contact information mentioned but no contact details found", Decimal("-0.1")
        ),
    ),
    ScoringRule(
        name="navigation",
        applies=lambda i: i.mentions("navigation") and i.is_webpage,
        predicate=lambda i: i.contains("nav", "menu", "href"),
        on_fail=Finding("Navigation required but no navigation elements found", Decimal("-0.1")),
    ),
    # --- Completeness indicators ---
    ScoringRule(
        name="document_closed",
        applies=lambda i: i.is_webpage,
        predicate=lambda i: "</html>" in i.content and "</body>" in i.content,
        on_pass=Finding(
            "Webpage appears to be complete and properly closed", Decimal("0.05")
        ),
    ),
    ScoringRule(
        name="comments",
        applies=lambda i: i.is_webpage,
        predicate=lambda i: "<!--" in i.content and "-->" in i.content,
        on_pass=Finding("Code includes comments for better maintainability", Decimal("0.05")),
    ),
    ScoringRule(
        name="webpage_comprehensive",
        applies=lambda i: i.is_webpage,
        predicate=lambda i: len(i.content) > SUBSTANTIAL_WEBPAGE_CHARS,
        on_pass=Finding("Comprehensive webpage with substantial content", Decimal("0.1")),
    ),
    ScoringRule(
        name="document_substantial",
        applies=_is(SubmissionCategory.DOCUMENT),
        predicate=lambda i: i.size_bytes > SUBSTANTIAL_DOCUMENT_BYTES,
        on_pass=Finding("Substantial document provided", Decimal("0.1")),
    ),
)


def evaluate(inp: ScoringInput, rules: Sequence[ScoringRule] = RULES) -> ScoreCard:
    """Run the rule table in order and return the resulting card."""
    card = ScoreCard()
    for rule in rules:
        finding = rule.evaluate(inp)
        if finding is not None:
            card = card.apply(finding)
    return card


def score_submission(
    task_description: str,
    category: SubmissionCategory,
    text_content: str | None,
    size_bytes: int,
    rules: Sequence[ScoringRule] = RULES,
) -> ScoreCard:
    """Score one submission. Pure: identical input gives an identical card."""
    return evaluate(
        ScoringInput.build(task_description, category, text_content, size_bytes), rules
    )
