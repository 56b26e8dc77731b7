"""
Photo album import.

Albums arrive in two entries of the ``albums/`` section:

1. The manifest, one JSON album per line. Each album is created anew and its
   archive-local id is recorded in an AlbumReferences table.
2. The references, one ``{"filepath": ..., "albumId": ...}`` per line. Each
   record adds a back-reference from the imported file to the new album.

The manifest always precedes the references in an export, so the table is
complete by the time references are read. References to files or albums
that are not in the archive are skipped: older exports list photos that were
never exported.
"""

from __future__ import annotations

import json
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any, BinaryIO

from archive_restore.models.document import (
    ID_FIELD,
    PHOTOS_ALBUMS,
    TYPE_FIELD,
    strip_identity,
)
from archive_restore.models.references import AlbumReferences, Reference
from archive_restore.restore.errors import ArchiveFormatError, StorageError
from archive_restore.storage.db import DocumentStore, DocumentStoreError
from archive_restore.storage.vfs import (
    DirDoc,
    NotFoundError,
    VFSError,
    VirtualFileSystem,
)
from archive_restore.utils.logging import get_logger
from archive_restore.utils.paths import is_within, join_under

logger = get_logger(__name__)


@dataclass
class ReferenceResult:
    """Outcome of the reference phase."""

    attached: int = 0
    missing_files: int = 0
    unknown_albums: int = 0
    outside_destination: int = 0

    @property
    def skipped(self) -> int:
        return self.missing_files + self.unknown_albums + self.outside_destination


def iter_json_lines(stream: BinaryIO) -> Iterator[tuple[int, Any]]:
    """
    Decode a newline-delimited JSON stream.

    Lines are read as bytes and decoded one at a time, so the stream only
    needs ``readline()`` (tar members read in stream mode can't seek).
    Blank lines are skipped.

    Yields:
        (line number, decoded value) tuples

    Raises:
        ArchiveFormatError: On invalid UTF-8 or JSON
    """
    lineno = 0
    while True:
        raw = stream.readline()
        if not raw:
            return
        lineno += 1
        try:
            line = raw.decode("utf-8").strip()
        except UnicodeDecodeError as e:
            raise ArchiveFormatError(f"Line {lineno} is not UTF-8") from e
        if not line:
            continue
        try:
            value = json.loads(line)
        except json.JSONDecodeError as e:
            raise ArchiveFormatError(f"Line {lineno}: invalid JSON: {e.msg}") from e
        yield lineno, value


def create_albums(
    db: DocumentStore,
    stream: BinaryIO,
    albums: AlbumReferences,
    reject_duplicates: bool = True,
) -> int:
    """
    Create one album document per manifest line and register its new id.

    The type discriminator and the store-owned ``_id``/``_rev`` are removed
    before creation; the archive-local ``_id`` becomes the key in ``albums``.

    Args:
        db: Document store
        stream: Manifest entry content
        albums: Reference table to fill
        reject_duplicates: Fail when a local id is defined twice; when False
                           the first definition wins

    Returns:
        Number of albums created

    Raises:
        ArchiveFormatError: Invalid line, or duplicate local id
        StorageError: If an album can't be created
    """
    created = 0
    for lineno, record in iter_json_lines(stream):
        if not isinstance(record, dict):
            raise ArchiveFormatError(f"Line {lineno}: album must be a JSON object")

        record.pop(TYPE_FIELD, None)
        raw_id = record.get(ID_FIELD)
        local_id = "" if raw_id is None else str(raw_id)

        if local_id and local_id in albums:
            if reject_duplicates:
                raise ArchiveFormatError(
                    f"Line {lineno}: album {local_id} is defined twice"
                )
            logger.warning(f"Album {local_id} is defined twice, keeping the first")

        try:
            stored = db.create_doc(PHOTOS_ALBUMS, strip_identity(record))
        except DocumentStoreError as e:
            raise StorageError(f"Can't create album on line {lineno}: {e}") from e
        created += 1

        if not local_id:
            logger.warning(f"Album on line {lineno} has no id, nothing can refer to it")
        elif local_id not in albums:
            albums.register(local_id, stored[ID_FIELD])
            logger.debug(f"Album {local_id} imported as {stored[ID_FIELD]}")

    return created


def fill_albums(
    fs: VirtualFileSystem,
    stream: BinaryIO,
    destination: DirDoc,
    albums: AlbumReferences,
) -> ReferenceResult:
    """
    Attach imported files to their albums.

    Only reads ``albums``; no album is created or changed here.

    Args:
        fs: File system holding the imported files
        stream: References entry content
        destination: Import destination the file paths are relative to
        albums: Table filled by create_albums()

    Returns:
        Counts of attached and skipped references

    Raises:
        ArchiveFormatError: Invalid line
        StorageError: If a file can't be updated
    """
    result = ReferenceResult()
    for lineno, record in iter_json_lines(stream):
        if not isinstance(record, dict):
            raise ArchiveFormatError(f"Line {lineno}: reference must be a JSON object")
        try:
            ref = Reference.from_dict(record)
        except ValueError as e:
            raise ArchiveFormatError(f"Line {lineno}: {e}") from e

        path = join_under(destination.fullpath, ref.filepath)
        if not is_within(destination.fullpath, path):
            logger.warning(
                f"Skipping reference to {ref.filepath}: outside {destination.fullpath}"
            )
            result.outside_destination += 1
            continue

        try:
            file = fs.file_by_path(path)
        except NotFoundError:
            logger.info(f"Skipping reference to missing file {path}")
            result.missing_files += 1
            continue

        doc_ref = albums.resolve(ref.album_id)
        if doc_ref is None:
            logger.info(f"Skipping reference from {path} to unknown album {ref.album_id}")
            result.unknown_albums += 1
            continue

        file.add_referenced_by(doc_ref)
        try:
            fs.update_file(file)
        except (VFSError, DocumentStoreError) as e:
            raise StorageError(f"Can't add {path} to album {ref.album_id}: {e}") from e
        result.attached += 1

    return result
