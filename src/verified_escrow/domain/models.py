"""Value objects passed between the verification and settlement layers.

All of these are immutable. A Submission lives only for the duration of one
verification call; a VerificationResult is produced once and handed to the
escrow service; a TransitionOutcome is what the escrow service hands to the
settlement dispatcher after a committed terminal transition.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path

    from verified_escrow.domain.enums import EscrowStatus, SettlementAction, SubmissionCategory
    from verified_escrow.domain.fees import FeeBreakdown


@dataclass(frozen=True)
class SubmittedFile:
    """An upload that the transport layer has already spooled to disk.

    Attributes:
        file_name: Original client-side file name (used for classification).
        size_bytes: Exact number of bytes received.
        path: Location of the spooled bytes, or None when only metadata exists.
        mime_hint: Content type declared by the client, if any.
    """

    file_name: str
    size_bytes: int
    path: Path | None = None
    mime_hint: str | None = None

    def discard(self) -> bool:
        """Delete the spooled bytes. Returns True if a file was removed."""
        if self.path is None:
            return False
        try:
            self.path.unlink()
        except FileNotFoundError:
            return False
        return True


@dataclass(frozen=True)
class Submission:
    """Classified submission handed to a verifier."""

    file_name: str
    size_bytes: int
    declared_description: str
    category: SubmissionCategory
    text_content: str | None = None


@dataclass(frozen=True)
class VerificationResult:
    """Verdict for one submission.

    ``verified`` is decided by the VerdictPolicy from the score and the number
    of issues; nothing else sets it.
    """

    confidence_score: float
    verified: bool
    feedback: str
    issues: tuple[str, ...] = ()
    strengths: tuple[str, ...] = ()
    category: SubmissionCategory | None = None
    analysis: str = ""
    logs: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Serialize for the escrow's last_verification column and API bodies."""
        return {
            "verified": self.verified,
            "confidenceScore": self.confidence_score,
            "feedback": self.feedback,
            "issues": list(self.issues),
            "strengths": list(self.strengths),
            "fileType": self.category.value if self.category else None,
            "analysis": self.analysis,
        }


@dataclass(frozen=True)
class TransitionOutcome:
    """Result of a committed terminal transition, ready for settlement."""

    escrow_id: str
    previous_status: EscrowStatus
    new_status: EscrowStatus
    action: SettlementAction
    payee: str
    fee_breakdown: FeeBreakdown
