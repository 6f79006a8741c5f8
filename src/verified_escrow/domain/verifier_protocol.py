"""Verifier Strategy Protocol.

Defines the interface that all verification strategies must implement.
This is a Protocol (structural subtyping) so concrete verifiers don't need
to inherit from a base class — they just need to match the shape.

The domain layer has ZERO imports from HTTP, storage or ledger code.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from verified_escrow.domain.models import Submission, VerificationResult


@dataclass(frozen=True)
class VerificationRequest:
    """Input to a verifier.

    Attributes:
        escrow_id: Opaque id of the escrow the work was submitted against.
        task_description: The client's free-text statement of the task.
        submission: The classified submission (content present for text files).
    """

    escrow_id: str
    task_description: str
    submission: Submission


@runtime_checkable
class VerifierStrategy(Protocol):
    """Protocol that all verifier implementations must satisfy.

    Concrete implementations:
        - verifiers/rule_based.py  (rule table + verdict policy)
        - verifiers/__init__.py    (MockVerifier for dry runs)
    """

    async def verify(self, request: VerificationRequest) -> VerificationResult:
        """Score the submission and return a verdict.

        Args:
            request: The verification request containing description and submission.

        Returns:
            A VerificationResult with score, issues, strengths and verdict.
        """
        ...
