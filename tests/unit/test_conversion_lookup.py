"""
Unit tests for strategy resolution.
"""

import pytest

from assemble.config import ConversionStrategy
from assemble.pipeline_queue import QueueItem, RawFile
from assemble.utils.conversion_lookup import (
    get_supported_formats,
    needs_remote_service,
    resolve_format,
)


def _item(name: str) -> QueueItem:
    return QueueItem(payload=RawFile(name=name, content=b""))


class TestResolveFormat:
    """Test cases for extension classification."""

    @pytest.mark.parametrize("name,strategy", [
        ("scan.pdf", ConversionStrategy.LOCAL_PDF),
        ("photo.jpg", ConversionStrategy.LOCAL_IMAGE),
        ("photo.jpeg", ConversionStrategy.LOCAL_IMAGE),
        ("diagram.png", ConversionStrategy.LOCAL_IMAGE),
        ("letter.docx", ConversionStrategy.REMOTE_DOCUMENT),
        ("budget.xlsx", ConversionStrategy.REMOTE_DOCUMENT),
        ("slides.pptx", ConversionStrategy.REMOTE_DOCUMENT),
        ("notes.txt", ConversionStrategy.REMOTE_DOCUMENT),
        ("archive.xyz", ConversionStrategy.UNSUPPORTED),
        ("Makefile", ConversionStrategy.UNSUPPORTED),
    ])
    def test_strategy_by_extension(self, name, strategy):
        assert resolve_format(RawFile(name=name, content=b"")).strategy == strategy

    def test_extension_is_case_insensitive(self):
        resolved = resolve_format(RawFile(name="SCAN.PDF", content=b""))
        assert resolved.strategy == ConversionStrategy.LOCAL_PDF
        assert resolved.extension == "pdf"

    @pytest.mark.parametrize("name,extension", [(".pdf", "pdf"), ("scan.", ""), ("README", "")])
    def test_extension_after_last_dot(self, name, extension):
        assert resolve_format(RawFile(name=name, content=b"")).extension == extension

    def test_only_last_extension_counts(self):
        resolved = resolve_format(RawFile(name="report.pdf.docx", content=b""))
        assert resolved.strategy == ConversionStrategy.REMOTE_DOCUMENT

    def test_unsupported_message_names_extension(self):
        resolved = resolve_format(RawFile(name="archive.xyz", content=b""))
        assert resolved.unsupported_message == "Unsupported file type: .xyz"

    def test_unsupported_message_without_extension(self):
        resolved = resolve_format(RawFile(name="README", content=b""))
        assert resolved.extension == ""
        assert resolved.unsupported_message == "Unsupported file type: file has no extension"

    def test_is_remote(self):
        assert resolve_format(RawFile("a.docx", b"")).is_remote is True
        assert resolve_format(RawFile("a.pdf", b"")).is_remote is False


class TestNeedsRemoteService:
    """Test cases for the once-per-run remote precondition."""

    def test_local_only_run(self):
        assert needs_remote_service([_item("a.pdf"), _item("b.png")], compress_output=False) is False

    def test_office_document_requires_remote(self):
        assert needs_remote_service([_item("a.pdf"), _item("b.docx")], compress_output=False) is True

    def test_compression_requires_remote(self):
        assert needs_remote_service([_item("a.pdf")], compress_output=True) is True

    def test_unsupported_items_do_not_require_remote(self):
        assert needs_remote_service([_item("a.xyz")], compress_output=False) is False


class TestSupportedFormats:
    """Test cases for the supported format listing."""

    def test_grouped_by_strategy(self):
        supported = get_supported_formats()

        assert supported["local-pdf"] == ["pdf"]
        assert supported["local-image"] == ["jpeg", "jpg", "png"]
        assert supported["remote-document"] == ["docx", "pptx", "txt", "xlsx"]
        assert "unsupported" not in supported
