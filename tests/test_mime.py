"""Tests for MIME type and class detection."""

import pytest

from archive_restore.storage.mime import (
    DEFAULT_CLASS,
    DEFAULT_MIME,
    extract_mime_and_class,
)


class TestExtractMimeAndClass:
    """Tests for extract_mime_and_class."""

    @pytest.mark.parametrize(
        "filename,expected",
        [
            ("photo.jpg", ("image/jpeg", "image")),
            ("photo.JPG", ("image/jpeg", "image")),
            ("notes.md", ("text/markdown", "text")),
            ("notes.txt", ("text/plain", "text")),
            ("paper.pdf", ("application/pdf", "pdf")),
            ("data.json", ("application/json", "code")),
            ("movie.mkv", ("video/x-matroska", "video")),
            ("bundle.7z", ("application/x-7z-compressed", "zip")),
            ("report.odt", ("application/vnd.oasis.opendocument.text", "document")),
        ],
    )
    def test_known_extensions(self, filename, expected):
        assert extract_mime_and_class(filename) == expected

    def test_no_extension(self):
        assert extract_mime_and_class("README") == (DEFAULT_MIME, DEFAULT_CLASS)

    def test_unknown_extension(self):
        assert extract_mime_and_class("blob.zzzq") == (DEFAULT_MIME, DEFAULT_CLASS)

    def test_path_accepted(self):
        assert extract_mime_and_class("Photos/2020/a.png") == ("image/png", "image")
