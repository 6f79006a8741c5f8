"""Tests for extension-based submission classification."""

from __future__ import annotations

import pytest

from verified_escrow.domain.enums import SubmissionCategory
from verified_escrow.domain.exceptions import ValidationError
from verified_escrow.verifiers.classifier import classify, is_text_bearing


class TestClassify:
    @pytest.mark.parametrize(
        ("name", "category"),
        [
            ("demo.mp4", SubmissionCategory.VIDEO),
            ("clip.WEBM", SubmissionCategory.VIDEO),
            ("index.html", SubmissionCategory.WEBPAGE),
            ("page.htm", SubmissionCategory.WEBPAGE),
            ("app.js", SubmissionCategory.JAVASCRIPT),
            ("site.css", SubmissionCategory.STYLESHEET),
            ("rows.csv", SubmissionCategory.DATA),
            ("README.md", SubmissionCategory.TEXT),
            ("report.docx", SubmissionCategory.DOCUMENT),
            ("bundle.tar.gz", SubmissionCategory.ARCHIVE),
            ("logo.svg", SubmissionCategory.IMAGE),
            ("main.py", SubmissionCategory.UNKNOWN),
        ],
    )
    def test_extension_decides(self, name: str, category: SubmissionCategory) -> None:
        assert classify(name, 10) is category

    def test_mime_hint_ignored_when_extension_present(self) -> None:
        assert classify("main.py", 10, mime_hint="text/html") is SubmissionCategory.UNKNOWN

    def test_mime_hint_used_without_extension(self) -> None:
        assert classify("Makefile", 10, mime_hint="text/plain") is SubmissionCategory.TEXT
        assert classify("recording", 10, mime_hint="video/quicktime") is SubmissionCategory.VIDEO

    def test_no_extension_no_hint(self) -> None:
        assert classify("LICENSE", 10) is SubmissionCategory.UNKNOWN

    def test_windows_path(self) -> None:
        assert classify("C:\\work\\index.HTML", 10) is SubmissionCategory.WEBPAGE

    def test_empty_name_rejected(self) -> None:
        with pytest.raises(ValidationError):
            classify("  ", 10)

    def test_negative_size_rejected(self) -> None:
        with pytest.raises(ValidationError):
            classify("a.txt", -1)

    def test_zero_size_is_allowed(self) -> None:
        assert classify("empty.txt", 0) is SubmissionCategory.TEXT


class TestTextBearing:
    def test_text_categories(self) -> None:
        assert is_text_bearing(SubmissionCategory.WEBPAGE)
        assert is_text_bearing(SubmissionCategory.DATA)
        assert not is_text_bearing(SubmissionCategory.VIDEO)
        assert not is_text_bearing(SubmissionCategory.DOCUMENT)
