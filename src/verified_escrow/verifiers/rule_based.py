"""Rule-Based Verifier — scores a submission with the rule table.

Deterministic and I/O free: the submission's text content has already been
read by the verification service. The verifier only runs the rule table and
hands the resulting card to the verdict policy.
"""

from __future__ import annotations

from collections.abc import Sequence

from verified_escrow.domain.models import VerificationResult
from verified_escrow.domain.verifier_protocol import VerificationRequest
from verified_escrow.logging_config import get_logger
from verified_escrow.verifiers.rules import RULES, ScoringRule, score_submission
from verified_escrow.verifiers.verdict import VerdictPolicy

logger = get_logger(__name__)


class RuleBasedVerifier:
    """Verifier backed by the ordered scoring rule table.

    Args:
        policy: Thresholds for turning a score into a verdict.
        rules: Rule table to evaluate (defaults to the production table).
    """

    def __init__(
        self,
        policy: VerdictPolicy | None = None,
        rules: Sequence[ScoringRule] = RULES,
    ) -> None:
        self._policy = policy or VerdictPolicy()
        self._rules = tuple(rules)

    async def verify(self, request: VerificationRequest) -> VerificationResult:
        submission = request.submission
        card = score_submission(
            request.task_description,
            submission.category,
            submission.text_content,
            submission.size_bytes,
            self._rules,
        )
        score = card.final_score
        verdict = self._policy.decide(score, card.issues, card.strengths)

        logger.info(
            "verifier.rule_based.scored",
            escrow_id=request.escrow_id,
            category=submission.category.value,
            score=score,
            issues=len(card.issues),
            strengths=len(card.strengths),
            verified=verdict.verified,
        )

        return VerificationResult(
            confidence_score=score,
            verified=verdict.verified,
            feedback=verdict.feedback,
            issues=card.issues,
            strengths=card.strengths,
            category=submission.category,
            analysis=(
                f"Analyzed {submission.category.value} file ({submission.file_name}) "
                f'against: "{request.task_description}"'
            ),
            logs={"verifier": "rule_based", "raw_score": str(card.score)},
        )
