"""
File import: one ``files/`` archive entry becomes one stored file.

The entry path (already stripped of its ``files/`` section) is replayed under
the import destination. A name already taken in the target directory is
resolved by renaming the new file to ``<base>-conflict-<digits><ext>``.
"""

from __future__ import annotations

import posixpath
import random
import tarfile
import zlib
from datetime import datetime, timezone
from typing import BinaryIO, Optional

from archive_restore.restore.errors import (
    ArchiveFormatError,
    ArchiveImportError,
    StorageError,
)
from archive_restore.storage.db import DocumentStoreError
from archive_restore.storage.mime import extract_mime_and_class
from archive_restore.storage.vfs import (
    DirDoc,
    FileConflictError,
    FileDoc,
    FileHandle,
    NotFoundError,
    VFSError,
    VirtualFileSystem,
)
from archive_restore.utils.logging import get_logger
from archive_restore.utils.paths import join_under

logger = get_logger(__name__)

CONFLICT_MARKER = "-conflict-"

# Read size when copying entry content
CHUNK_SIZE = 64 * 1024

# Owner execute permission bit
EXECUTABLE_BIT = 0o100

# Errors that can interrupt reading an entry's content from the archive
_READ_ERRORS = (OSError, EOFError, zlib.error, tarfile.TarError)


def conflict_name(name: str, rng: Optional[random.Random] = None) -> str:
    """
    Rename ``name`` to avoid a collision, keeping its extension.

    Example:
        conflict_name("photo.jpg")  # "photo-conflict-5577006791947779410.jpg"
    """
    base, ext = posixpath.splitext(name)
    suffix = (rng or random).getrandbits(63)
    return f"{base}{CONFLICT_MARKER}{suffix}{ext}"


def _parent_directory(fs: VirtualFileSystem, dirname: str) -> DirDoc:
    try:
        return fs.dir_by_path(dirname)
    except NotFoundError:
        # Older exports can list files whose directory entry was never written
        logger.debug(f"Creating missing directory {dirname}")
        return fs.mkdir_all(dirname)


def _create_with_rename(
    fs: VirtualFileSystem,
    doc: FileDoc,
    retries: int,
    rng: Optional[random.Random],
) -> FileHandle:
    try:
        return fs.create_file(doc)
    except FileConflictError as e:
        conflict = e

    original = doc.name
    for _ in range(retries):
        doc.name = conflict_name(original, rng)
        logger.info(f"{original} already exists, importing it as {doc.name}")
        try:
            return fs.create_file(doc)
        except FileConflictError as e:
            conflict = e

    raise StorageError(
        f"Can't find a free name for {original} after {retries} rename(s)"
    ) from conflict


def _copy(handle: FileHandle, content: BinaryIO) -> None:
    while True:
        try:
            chunk = content.read(CHUNK_SIZE)
        except _READ_ERRORS as e:
            raise ArchiveFormatError(
                f"Can't read content of {handle.doc.name}: {e}"
            ) from e
        if not chunk:
            return
        try:
            handle.write(chunk)
        except (OSError, VFSError) as e:
            raise StorageError(
                f"Can't write content of {handle.doc.name}: {e}"
            ) from e


def _copy_and_close(handle: FileHandle, content: BinaryIO) -> None:
    copy_error: Optional[ArchiveImportError] = None
    try:
        _copy(handle, content)
    except ArchiveImportError as e:
        copy_error = e

    try:
        handle.close()
    except (OSError, VFSError, DocumentStoreError) as close_error:
        if copy_error is None:
            raise StorageError(
                f"Can't store {handle.doc.name}: {close_error}"
            ) from close_error
        logger.debug(f"Close of {handle.doc.name} also failed: {close_error}")

    if copy_error is not None:
        raise copy_error


def import_file(
    fs: VirtualFileSystem,
    destination: DirDoc,
    name: str,
    size: int,
    mode: int,
    content: BinaryIO,
    conflict_retries: int = 1,
    rng: Optional[random.Random] = None,
) -> FileDoc:
    """
    Store one archive file under the import destination.

    Args:
        fs: Target file system
        destination: Import destination directory
        name: Entry path relative to the ``files/`` section
        size: Declared content length
        mode: POSIX permission bits of the entry
        content: Entry content stream
        conflict_retries: Renamed attempts after a name collision
        rng: Random source for conflict suffixes

    Returns:
        The stored file (its name differs from the entry's leaf name when a
        collision forced a rename)

    Raises:
        ArchiveFormatError: If the entry content can't be read from the archive
        StorageError: If the file can't be created or written, or names still
                      collide after the renames
    """
    filename = posixpath.basename(name)
    dirname = join_under(destination.fullpath, posixpath.dirname(name))
    mime, klass = extract_mime_and_class(filename)
    executable = bool(mode & EXECUTABLE_BIT)

    try:
        parent = _parent_directory(fs, dirname)
        doc = FileDoc.new(
            filename,
            parent.id(),
            size,
            mime=mime,
            klass=klass,
            created_at=datetime.now(timezone.utc),
            executable=executable,
        )
        handle = _create_with_rename(fs, doc, conflict_retries, rng)
    except (VFSError, DocumentStoreError, OSError) as e:
        raise StorageError(f"Can't create file {name}: {e}") from e

    _copy_and_close(handle, content)
    logger.debug(f"Imported {posixpath.join(parent.fullpath, handle.doc.name)}")
    return handle.doc
