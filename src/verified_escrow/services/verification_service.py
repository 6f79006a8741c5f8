"""Verification Service — turns an uploaded file into a VerificationResult.

Steps:
    1. Validate the description, the file's presence and the size ceiling
    2. Classify the file and check it against the accepted categories
    3. Read text content for text-bearing categories (bounded by a timeout)
    4. Dispatch the ephemeral Submission to the configured verifier

A file that cannot be read is a rejection, not a crash. The service does not
touch the database; recording the verdict is the escrow service's job.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from verified_escrow.config import get_settings
from verified_escrow.domain.exceptions import (
    FileUnavailableError,
    ValidationError,
    VerificationTimedOutError,
)
from verified_escrow.domain.models import Submission, VerificationResult
from verified_escrow.domain.verifier_protocol import VerificationRequest
from verified_escrow.logging_config import get_logger
from verified_escrow.verifiers import VerifierFactory
from verified_escrow.verifiers.classifier import classify, is_text_bearing
from verified_escrow.verifiers.content import LocalFileReader
from verified_escrow.verifiers.verdict import VerdictPolicy

if TYPE_CHECKING:
    from verified_escrow.config import Settings
    from verified_escrow.domain.enums import SubmissionCategory
    from verified_escrow.domain.models import SubmittedFile
    from verified_escrow.domain.verifier_protocol import VerifierStrategy
    from verified_escrow.verifiers.content import FileReader

logger = get_logger(__name__)

UNAVAILABLE_ISSUE = "File was uploaded but cannot be accessed"


class VerificationService:
    """Validates, classifies and verifies one submission."""

    def __init__(
        self,
        verifier: VerifierStrategy | None = None,
        reader: FileReader | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._policy = VerdictPolicy.from_settings(self._settings)
        self._verifier = verifier or VerifierFactory.create(
            {"type": self._settings.verifier_type}, policy=self._policy
        )
        self._reader = reader or LocalFileReader()

    @property
    def policy(self) -> VerdictPolicy:
        return self._policy

    async def verify(
        self,
        escrow_id: str,
        task_description: str,
        upload: SubmittedFile | None,
    ) -> VerificationResult:
        """Run steps 1-4 and return the verdict.

        Raises:
            ValidationError: missing description/file, too large, category not accepted.
            VerificationTimedOutError: the content read exceeded its timeout.
        """
        if not task_description or not task_description.strip():
            raise ValidationError("Task description is required", field="taskDescription")
        if upload is None or not upload.file_name:
            raise ValidationError("No file uploaded", field="submission")

        max_bytes = self._settings.max_file_size_bytes
        if upload.size_bytes > max_bytes:
            raise ValidationError(
                f"File too large. Maximum size is {max_bytes / (1024 * 1024):g}MB.",
                field="submission",
            )

        category = classify(upload.file_name, upload.size_bytes, upload.mime_hint)
        accepted = self._settings.accepted_category_list
        if accepted and category.value not in accepted:
            raise ValidationError(
                f"File type '{category.value}' is not accepted", field="submission"
            )

        text_content = None
        try:
            if is_text_bearing(category):
                text_content = await self._read_text(escrow_id, upload)
            elif upload.path is not None and not upload.path.exists():
                raise FileUnavailableError(upload.file_name, "stored file is missing")
        except FileUnavailableError as exc:
            logger.warning("verification.file_unavailable", escrow_id=escrow_id, error=exc.message)
            return self._unavailable(category)

        submission = Submission(
            file_name=upload.file_name,
            size_bytes=upload.size_bytes,
            declared_description=task_description,
            category=category,
            text_content=text_content,
        )
        logger.info(
            "verification.dispatching",
            escrow_id=escrow_id,
            category=category.value,
            size_bytes=upload.size_bytes,
        )
        return await self._verifier.verify(
            VerificationRequest(
                escrow_id=escrow_id,
                task_description=task_description,
                submission=submission,
            )
        )

    async def _read_text(self, escrow_id: str, upload: SubmittedFile) -> str:
        timeout = self._settings.file_read_timeout_seconds
        try:
            async with asyncio.timeout(timeout):
                return await self._reader.read_text(upload)
        except TimeoutError as exc:
            logger.warning("verification.read_timed_out", escrow_id=escrow_id, timeout=timeout)
            raise VerificationTimedOutError(escrow_id, timeout) from exc

    @staticmethod
    def _unavailable(category: SubmissionCategory) -> VerificationResult:
        return VerificationResult(
            confidence_score=0.0,
            verified=False,
            feedback="Uploaded file not found or inaccessible. Please upload the file again.",
            issues=(UNAVAILABLE_ISSUE,),
            category=category,
            analysis=f"Could not read {category.value} submission",
        )
