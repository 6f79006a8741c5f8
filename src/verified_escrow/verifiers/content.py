"""File reading collaborator for text-bearing submissions."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from verified_escrow.domain.exceptions import FileUnavailableError
from verified_escrow.logging_config import get_logger

if TYPE_CHECKING:
    from verified_escrow.domain.models import SubmittedFile

logger = get_logger(__name__)


@runtime_checkable
class FileReader(Protocol):
    """Reads a spooled upload as text."""

    async def read_text(self, upload: SubmittedFile) -> str:
        """Return the decoded content.

        Raises:
            FileUnavailableError: the bytes cannot be read.
        """
        ...


class LocalFileReader:
    """Reads from the local filesystem without blocking the event loop.

    Undecodable bytes are replaced rather than rejected, so a stray binary
    byte in an HTML file still yields scoreable text.
    """

    def __init__(self, encoding: str = "utf-8") -> None:
        self._encoding = encoding

    async def read_text(self, upload: SubmittedFile) -> str:
        if upload.path is None:
            raise FileUnavailableError(upload.file_name, "no stored content")
        try:
            raw = await asyncio.to_thread(upload.path.read_bytes)
        except OSError as e:
            logger.warning("content.read_failed", file_name=upload.file_name, error=str(e))
            raise FileUnavailableError(upload.file_name, e.strerror or str(e)) from e
        return raw.decode(self._encoding, errors="replace")
