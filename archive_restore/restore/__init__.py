"""
Archive restoration pipeline.

Reads an exported tarball and recreates its files, photo albums and contacts
in an instance.
"""

from archive_restore.restore.dispatcher import (
    ArchiveImporter,
    ImportSummary,
    import_archive,
    resolve_destination,
    split_entry_name,
    untar,
)
from archive_restore.restore.errors import (
    ArchiveFormatError,
    ArchiveImportError,
    StorageError,
)

__all__ = [
    "ArchiveFormatError",
    "ArchiveImportError",
    "ArchiveImporter",
    "ImportSummary",
    "StorageError",
    "import_archive",
    "resolve_destination",
    "split_entry_name",
    "untar",
]
