"""
MIME type and coarse content class detection from file names.

The class is a short category used by front-ends to pick an icon or a
viewer: image, audio, video, text, pdf, document, spreadsheet, slide, code,
zip or the catch-all files.
"""

from __future__ import annotations

import mimetypes
import posixpath

DEFAULT_MIME = "application/octet-stream"
DEFAULT_CLASS = "files"

# Extensions the platform mimetypes table may not know, or knows differently
_EXTRA_TYPES = {
    ".md": "text/markdown",
    ".heic": "image/heic",
    ".heif": "image/heif",
    ".webp": "image/webp",
    ".mkv": "video/x-matroska",
    ".flac": "audio/flac",
    ".m4a": "audio/mp4",
    ".go": "text/x-go",
    ".rs": "text/x-rust",
    ".ts": "text/x-typescript",
    ".yaml": "text/yaml",
    ".yml": "text/yaml",
    ".7z": "application/x-7z-compressed",
    ".odt": "application/vnd.oasis.opendocument.text",
    ".ods": "application/vnd.oasis.opendocument.spreadsheet",
    ".odp": "application/vnd.oasis.opendocument.presentation",
}

_CLASS_BY_MIME = {
    "application/pdf": "pdf",
    "application/zip": "zip",
    "application/gzip": "zip",
    "application/x-gzip": "zip",
    "application/x-tar": "zip",
    "application/x-bzip2": "zip",
    "application/x-7z-compressed": "zip",
    "application/vnd.rar": "zip",
    "application/x-rar-compressed": "zip",
    "application/msword": "document",
    "application/rtf": "document",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": "document",
    "application/vnd.oasis.opendocument.text": "document",
    "application/vnd.ms-excel": "spreadsheet",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": "spreadsheet",
    "application/vnd.oasis.opendocument.spreadsheet": "spreadsheet",
    "text/csv": "spreadsheet",
    "application/vnd.ms-powerpoint": "slide",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation": "slide",
    "application/vnd.oasis.opendocument.presentation": "slide",
    "application/javascript": "code",
    "application/json": "code",
    "application/xml": "code",
    "application/x-sh": "code",
    "text/javascript": "code",
    "text/x-python": "code",
    "text/x-go": "code",
    "text/x-rust": "code",
    "text/x-typescript": "code",
    "text/x-c": "code",
    "text/css": "code",
    "text/html": "code",
    "text/xml": "code",
    "text/yaml": "code",
}

_CLASS_BY_MAJOR = {
    "image": "image",
    "audio": "audio",
    "video": "video",
    "text": "text",
}


def extract_mime_and_class(filename: str) -> tuple[str, str]:
    """
    Derive the MIME type and content class of a file from its name.

    Args:
        filename: Leaf name of the file (a path is accepted, only the
                  extension matters)

    Returns:
        (mime, class) tuple; unknown extensions give
        ("application/octet-stream", "files")

    Example:
        extract_mime_and_class("photo.JPG")   # ("image/jpeg", "image")
        extract_mime_and_class("notes.md")    # ("text/markdown", "text")
        extract_mime_and_class("README")      # ("application/octet-stream", "files")
    """
    ext = posixpath.splitext(filename)[1].lower()
    if not ext:
        return DEFAULT_MIME, DEFAULT_CLASS

    mime = _EXTRA_TYPES.get(ext)
    if mime is None:
        mime, _ = mimetypes.guess_type("f" + ext, strict=False)
    if not mime:
        return DEFAULT_MIME, DEFAULT_CLASS

    klass = _CLASS_BY_MIME.get(mime)
    if klass is None:
        klass = _CLASS_BY_MAJOR.get(mime.split("/", 1)[0], DEFAULT_CLASS)
    return mime, klass
