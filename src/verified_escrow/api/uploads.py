"""Spool multipart uploads to disk.

The bytes are streamed in chunks into ``settings.upload_dir`` and the size
ceiling is enforced while streaming, so an oversized upload never lands in
full. The returned SubmittedFile owns the spooled copy; the workflow
discards it once the decision is made.
"""

from __future__ import annotations

import asyncio
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

from verified_escrow.domain.exceptions import ValidationError
from verified_escrow.domain.models import SubmittedFile
from verified_escrow.logging_config import get_logger

if TYPE_CHECKING:
    from fastapi import UploadFile

    from verified_escrow.config import Settings

logger = get_logger(__name__)

CHUNK_SIZE = 1024 * 1024


async def spool_upload(upload: UploadFile | None, settings: Settings) -> SubmittedFile | None:
    """Write ``upload`` to a temp file and describe it.

    Returns None when no file was sent.

    Raises:
        ValidationError: the upload exceeds ``settings.max_file_size_bytes``.
    """
    if upload is None or not upload.filename:
        return None

    max_bytes = settings.max_file_size_bytes
    suffix = Path(upload.filename).suffix
    upload_dir = Path(settings.upload_dir)
    upload_dir.mkdir(parents=True, exist_ok=True)

    out = tempfile.NamedTemporaryFile(  # noqa: SIM115
        dir=upload_dir, prefix="submission-", suffix=suffix, delete=False
    )
    path = Path(out.name)
    size = 0
    try:
        with out:
            while chunk := await upload.read(CHUNK_SIZE):
                size += len(chunk)
                if size > max_bytes:
                    raise ValidationError(
                        f"File too large. Maximum size is {max_bytes / (1024 * 1024):g}MB.",
                        field="submission",
                    )
                await asyncio.to_thread(out.write, chunk)
    except BaseException:
        path.unlink(missing_ok=True)
        raise
    finally:
        await upload.close()

    logger.debug("upload.spooled", file_name=upload.filename, size_bytes=size)
    return SubmittedFile(
        file_name=upload.filename,
        size_bytes=size,
        path=path,
        mime_hint=upload.content_type,
    )
