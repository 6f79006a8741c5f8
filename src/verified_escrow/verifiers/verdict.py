"""Verdict policy: the single place a numeric score becomes a business decision.

    verified = score >= min_score AND len(issues) <= max_issues

Feedback is tiered by score band and always lists the issues on rejection.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from verified_escrow.config import Settings

EXCELLENT_SCORE = 0.8
GOOD_SCORE = 0.7
SIGNIFICANT_ISSUES_BELOW = 0.3
MULTIPLE_ISSUES_BELOW = 0.5


@dataclass(frozen=True)
class Verdict:
    verified: bool
    feedback: str


@dataclass(frozen=True)
class VerdictPolicy:
    """Threshold pair applied to every scored submission."""

    min_score: float = 0.6
    max_issues: int = 3

    @classmethod
    def from_settings(cls, settings: Settings) -> VerdictPolicy:
        return cls(
            min_score=settings.verification_min_score,
            max_issues=settings.verification_max_issues,
        )

    def is_verified(self, score: float, issue_count: int) -> bool:
        return score >= self.min_score and issue_count <= self.max_issues

    def decide(
        self,
        score: float,
        issues: Sequence[str],
        strengths: Sequence[str] = (),
    ) -> Verdict:
        """Return the verdict and its feedback text. Pure."""
        if self.is_verified(score, len(issues)):
            return Verdict(verified=True, feedback=_accepted_feedback(score, issues, strengths))
        return Verdict(verified=False, feedback=_rejected_feedback(score, issues))


def _accepted_feedback(score: float, issues: Sequence[str], strengths: Sequence[str]) -> str:
    if score >= EXCELLENT_SCORE:
        parts = ["Excellent work! The submission perfectly matches the requirements."]
    elif score >= GOOD_SCORE:
        parts = ["Good work! The submission meets the requirements with minor notes."]
    else:
        parts = ["Acceptable work. The submission meets the basic requirements."]

    if strengths:
        parts.append(". ".join(strengths) + ".")
    if issues:
        parts.append("Minor issues noted but overall acceptable.")
    else:
        parts.append("All requirements satisfied.")
    return " ".join(parts)


def _rejected_feedback(score: float, issues: Sequence[str]) -> str:
    if score < SIGNIFICANT_ISSUES_BELOW:
        parts = ["Significant issues detected. The submission does not match the requirements."]
    elif score < MULTIPLE_ISSUES_BELOW:
        parts = ["Multiple issues found. The submission needs substantial improvements."]
    else:
        parts = ["Some requirements not met. The submission needs improvements."]

    if issues:
        parts.append("Key issues: " + ", ".join(issues) + ".")
    parts.append("Please review the task specifications and resubmit.")
    return " ".join(parts)
