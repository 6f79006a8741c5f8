"""Submission classifier.

Maps file metadata to a SubmissionCategory by extension lookup. Only
text-bearing categories are ever decoded; everything else is judged on
name and size alone.
"""

from __future__ import annotations

from pathlib import PurePosixPath

from verified_escrow.domain.enums import SubmissionCategory
from verified_escrow.domain.exceptions import ValidationError

EXTENSION_CATEGORIES: dict[str, SubmissionCategory] = {
    # Video
    "mp4": SubmissionCategory.VIDEO,
    "mov": SubmissionCategory.VIDEO,
    "avi": SubmissionCategory.VIDEO,
    "mkv": SubmissionCategory.VIDEO,
    "wmv": SubmissionCategory.VIDEO,
    "webm": SubmissionCategory.VIDEO,
    # Web
    "html": SubmissionCategory.WEBPAGE,
    "htm": SubmissionCategory.WEBPAGE,
    "js": SubmissionCategory.JAVASCRIPT,
    "css": SubmissionCategory.STYLESHEET,
    # Data / text
    "json": SubmissionCategory.DATA,
    "csv": SubmissionCategory.DATA,
    "xml": SubmissionCategory.DATA,
    "txt": SubmissionCategory.TEXT,
    "md": SubmissionCategory.TEXT,
    # Documents
    "pdf": SubmissionCategory.DOCUMENT,
    "doc": SubmissionCategory.DOCUMENT,
    "docx": SubmissionCategory.DOCUMENT,
    # Archives
    "zip": SubmissionCategory.ARCHIVE,
    "rar": SubmissionCategory.ARCHIVE,
    "7z": SubmissionCategory.ARCHIVE,
    "tar": SubmissionCategory.ARCHIVE,
    "gz": SubmissionCategory.ARCHIVE,
    # Images
    "png": SubmissionCategory.IMAGE,
    "jpg": SubmissionCategory.IMAGE,
    "jpeg": SubmissionCategory.IMAGE,
    "gif": SubmissionCategory.IMAGE,
    "svg": SubmissionCategory.IMAGE,
    "bmp": SubmissionCategory.IMAGE,
}

# Consulted only for extension-less names.
MIME_CATEGORIES: dict[str, SubmissionCategory] = {
    "text/html": SubmissionCategory.WEBPAGE,
    "text/javascript": SubmissionCategory.JAVASCRIPT,
    "application/javascript": SubmissionCategory.JAVASCRIPT,
    "text/css": SubmissionCategory.STYLESHEET,
    "application/json": SubmissionCategory.DATA,
    "text/csv": SubmissionCategory.DATA,
    "text/plain": SubmissionCategory.TEXT,
    "application/pdf": SubmissionCategory.DOCUMENT,
    "application/zip": SubmissionCategory.ARCHIVE,
}

_MIME_PREFIXES = {
    "video/": SubmissionCategory.VIDEO,
    "image/": SubmissionCategory.IMAGE,
}

TEXT_BEARING = frozenset(
    {
        SubmissionCategory.WEBPAGE,
        SubmissionCategory.JAVASCRIPT,
        SubmissionCategory.STYLESHEET,
        SubmissionCategory.DATA,
        SubmissionCategory.TEXT,
    }
)


def _extension(file_name: str) -> str:
    suffix = PurePosixPath(file_name.replace("\\", "/")).suffix
    return suffix[1:].lower()


def _from_mime(mime_hint: str) -> SubmissionCategory:
    mime = mime_hint.split(";", 1)[0].strip().lower()
    if mime in MIME_CATEGORIES:
        return MIME_CATEGORIES[mime]
    for prefix, category in _MIME_PREFIXES.items():
        if mime.startswith(prefix):
            return category
    return SubmissionCategory.UNKNOWN


def classify(
    file_name: str,
    size_bytes: int,
    mime_hint: str | None = None,
) -> SubmissionCategory:
    """Return the category for a file.

    The extension decides. ``mime_hint`` is only used when the name has no
    extension at all; an unrecognised extension is ``unknown`` regardless.

    Raises:
        ValidationError: empty file name or negative size.
    """
    if not file_name or not file_name.strip():
        raise ValidationError("File name is required", field="submission")
    if size_bytes < 0:
        raise ValidationError(f"Invalid file size: {size_bytes}", field="submission")

    ext = _extension(file_name.strip())
    if ext:
        return EXTENSION_CATEGORIES.get(ext, SubmissionCategory.UNKNOWN)
    if mime_hint:
        return _from_mime(mime_hint)
    return SubmissionCategory.UNKNOWN


def is_text_bearing(category: SubmissionCategory) -> bool:
    """True when the category's content should be decoded and inspected."""
    return category in TEXT_BEARING
