"""
Errors raised by an archive import.

Every failure that aborts an import is an ArchiveImportError. The dispatcher
attaches the instance domain and the archive entry being processed before
the error reaches the caller.
"""

from __future__ import annotations


class ArchiveImportError(Exception):
    """
    Base class for import failures.

    Attributes:
        domain: Domain of the instance the archive was imported into
        entry: Name of the archive entry being processed, if any
    """

    def __init__(self, message: str, domain: str = "", entry: str = ""):
        super().__init__(message)
        self.message = message
        self.domain = domain
        self.entry = entry

    def attach(self, domain: str, entry: str) -> None:
        """Record where the error happened, keeping context set earlier."""
        self.domain = self.domain or domain
        self.entry = self.entry or entry

    def __str__(self) -> str:
        where = " ".join(
            part
            for part in (
                f"domain={self.domain}" if self.domain else "",
                f"entry={self.entry}" if self.entry else "",
            )
            if part
        )
        return f"{self.message} ({where})" if where else self.message


class ArchiveFormatError(ArchiveImportError):
    """
    The archive can't be read: bad compression, corrupt framing, unsupported
    entry kind, invalid JSON or vCard, or a redefined album id.
    """

    pass


class StorageError(ArchiveImportError):
    """A directory, file or document could not be written."""

    pass
