"""
Directory materialization under the import destination.
"""

from __future__ import annotations

from archive_restore.restore.errors import StorageError
from archive_restore.storage.db import DocumentStoreError
from archive_restore.storage.vfs import DirDoc, VFSError, VirtualFileSystem
from archive_restore.utils.logging import get_logger
from archive_restore.utils.paths import join_under

logger = get_logger(__name__)


def materialize_directory(
    fs: VirtualFileSystem, destination: DirDoc, relative: str
) -> DirDoc:
    """
    Make sure ``relative`` exists as a directory under ``destination``.

    Missing ancestors are created; an existing directory is returned as is.

    Args:
        fs: Target file system
        destination: Import destination directory
        relative: Directory path relative to the destination

    Returns:
        The directory at the requested path

    Raises:
        StorageError: If the directory chain can't be created
    """
    path = join_under(destination.fullpath, relative)
    try:
        directory = fs.mkdir_all(path)
    except (VFSError, DocumentStoreError) as e:
        raise StorageError(f"Can't create directory {path}: {e}") from e
    logger.debug(f"Directory ready: {path}")
    return directory
