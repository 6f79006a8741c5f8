"""Verification strategy implementations and factory.

Two strategies:
    - RuleBasedVerifier:  Ordered rule table + verdict policy (production)
    - MockVerifier:       Instant configurable pass/fail for dry-run testing

The VerifierFactory creates the correct verifier from a config dict whose
"type" key matches Settings.verifier_type.
"""

from verified_escrow.domain.enums import VerifierType
from verified_escrow.domain.models import VerificationResult
from verified_escrow.domain.verifier_protocol import (
    VerificationRequest,
    VerifierStrategy,
)
from verified_escrow.verifiers.rule_based import RuleBasedVerifier
from verified_escrow.verifiers.verdict import VerdictPolicy


class MockVerifier:
    """Instant mock verifier for dry-run simulations.

    Returns a configurable pass/fail result without running any rules.
    Config keys:
        - should_pass (bool): Whether verification passes. Default True.
        - score (float): Score to return. Default 1.0 if pass, 0.0 if fail.
        - feedback (str): Custom feedback message. Optional.

    A score that contradicts should_pass under the verdict policy is rejected,
    so mock results obey the same verified rule as real ones.
    """

    def __init__(
        self,
        should_pass: bool = True,
        score: float | None = None,
        feedback: str | None = None,
        policy: VerdictPolicy | None = None,
    ) -> None:
        self.should_pass = should_pass
        self.score = score if score is not None else (1.0 if should_pass else 0.0)
        self.issues: tuple[str, ...] = () if should_pass else ("Mock rejection",)
        policy = policy or VerdictPolicy()
        if policy.is_verified(self.score, len(self.issues)) != should_pass:
            raise ValueError(
                f"Mock score {self.score} contradicts should_pass={should_pass} "
                f"(threshold {policy.min_score})"
            )
        self.feedback = feedback or (
            "Mock verification passed (dry-run mode)"
            if should_pass
            else "Mock verification failed (dry-run mode)"
        )

    async def verify(self, request: VerificationRequest) -> VerificationResult:
        return VerificationResult(
            confidence_score=self.score,
            verified=self.should_pass,
            feedback=self.feedback,
            issues=self.issues,
            category=request.submission.category,
            analysis=f"Mock verification of {request.submission.file_name}",
            logs={"mode": "dry-run", "verifier": "mock"},
        )


class VerifierFactory:
    """Factory that creates the correct verifier from a config dict.

    Usage:
        verifier = VerifierFactory.create({"type": "rule_based"}, policy=policy)
        result = await verifier.verify(request)

        # Dry-run mode:
        verifier = VerifierFactory.create({"type": "mock", "should_pass": False})
    """

    _registry: dict[str, type] = {
        VerifierType.RULE_BASED.value: RuleBasedVerifier,
        VerifierType.MOCK.value: MockVerifier,
    }

    @classmethod
    def create(cls, config: dict, policy: VerdictPolicy | None = None) -> VerifierStrategy:
        """Create a verifier instance from a config dict.

        Args:
            config: Dict with at least a "type" key. Remaining keys are passed
                to MockVerifier; RuleBasedVerifier takes only the policy.
            policy: Verdict thresholds for the rule-based verifier.

        Raises:
            ValueError: If the type is unknown or missing.
        """
        v_type = config.get("type")
        if not v_type:
            raise ValueError(
                "verifier config must contain a 'type' key. "
                f"Valid types: {cls.get_supported_types()}"
            )

        verifier_class = cls._registry.get(v_type)
        if verifier_class is None:
            raise ValueError(
                f"Unknown verifier type: '{v_type}'. Valid types: {cls.get_supported_types()}"
            )

        options = {k: v for k, v in config.items() if k != "type"}
        if verifier_class is RuleBasedVerifier:
            return RuleBasedVerifier(policy=policy)
        return verifier_class(**options, policy=policy)

    @classmethod
    def get_supported_types(cls) -> list[str]:
        """Return the list of supported verifier type strings."""
        return list(cls._registry.keys())


__all__ = [
    "MockVerifier",
    "RuleBasedVerifier",
    "VerifierFactory",
    "VerificationRequest",
    "VerificationResult",
    "VerifierStrategy",
]
