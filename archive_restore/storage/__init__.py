"""
archive_restore.storage - Document store and file system collaborators.
"""

from archive_restore.storage.db import (
    DocumentNotFoundError,
    DocumentStore,
    DocumentStoreError,
    RevisionConflictError,
)
from archive_restore.storage.mime import extract_mime_and_class
from archive_restore.storage.vfs import (
    ROOT_DIR_ID,
    DirDoc,
    FileConflictError,
    FileDoc,
    FileHandle,
    InvalidNameError,
    NotFoundError,
    VFSError,
    VirtualFileSystem,
)

__all__ = [
    "DirDoc",
    "DocumentNotFoundError",
    "DocumentStore",
    "DocumentStoreError",
    "FileConflictError",
    "FileDoc",
    "FileHandle",
    "InvalidNameError",
    "NotFoundError",
    "ROOT_DIR_ID",
    "RevisionConflictError",
    "VFSError",
    "VirtualFileSystem",
    "extract_mime_and_class",
]
