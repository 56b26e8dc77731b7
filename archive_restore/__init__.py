"""
archive_restore - Restore a user's files, contacts and photo albums from an
exported tarball.
"""

__version__ = "0.1.0"

from archive_restore.restore import ImportSummary, import_archive, untar

__all__ = ["ImportSummary", "import_archive", "untar", "__version__"]
