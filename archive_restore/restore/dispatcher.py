"""
Archive dispatcher: a single pass over a gzip-compressed tarball.

Each entry is routed by its first path segment (its doctype):

    files/...                 directories and files under the destination
    albums/<manifest>         album documents (phase 1)
    albums/<references>       file-to-album back-references (phase 2)
    contacts/...              one vCard per entry

Regular files in other sections are skipped so newer exports still import.
Any other kind of entry (links, devices, ...) aborts the import, as does any
error while reading the stream or storing an entry. Entries are handled in
stream order: a directory exists before the files below it, and albums exist
before references to them.
"""

from __future__ import annotations

import posixpath
import tarfile
import zlib
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import BinaryIO, Optional, Union

from archive_restore.config.import_config import ImportConfig
from archive_restore.instance import Instance
from archive_restore.models.references import AlbumReferences
from archive_restore.restore.albums import create_albums, fill_albums
from archive_restore.restore.contacts import import_contact
from archive_restore.restore.directories import materialize_directory
from archive_restore.restore.errors import (
    ArchiveFormatError,
    ArchiveImportError,
    StorageError,
)
from archive_restore.restore.files import import_file
from archive_restore.storage.db import DocumentStoreError
from archive_restore.storage.vfs import DirDoc, VFSError

# Archive sections
FILES_SECTION = "files"
ALBUMS_SECTION = "albums"
CONTACTS_SECTION = "contacts"

# Errors raised by tarfile/gzip while reading a damaged or truncated stream
_STREAM_ERRORS = (tarfile.TarError, zlib.error, EOFError, OSError)


@dataclass
class ImportSummary:
    """What an import run created."""

    directories: int = 0
    files: int = 0
    renamed_files: int = 0
    contacts: int = 0
    albums: int = 0
    references_attached: int = 0
    references_skipped: int = 0
    skipped_entries: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


def split_entry_name(name: str) -> tuple[str, str]:
    """
    Split an entry name into (doctype, name within the section).

    Entries without a separator have no doctype.

    Example:
        split_entry_name("files/Photos/a.jpg")  # ("files", "Photos/a.jpg")
        split_entry_name("./contacts/c.vcf")    # ("contacts", "c.vcf")
        split_entry_name("files/")              # ("", "")
    """
    parts = posixpath.normpath(name).split("/", 1)
    if len(parts) > 1:
        return parts[0], parts[1]
    return "", ""


class ArchiveImporter:
    """
    Replays one archive into an instance.

    Attributes:
        instance: Target instance
        destination: Directory the ``files/`` section is restored into
        config: Import settings
        albums: Album reference table for this run
        summary: Running counts

    Usage:
        importer = ArchiveImporter(instance, instance.fs.mkdir_all("/Imported"))
        with open("export.tar.gz", "rb") as f:
            summary = importer.run(f)
    """

    def __init__(
        self,
        instance: Instance,
        destination: DirDoc,
        config: Optional[ImportConfig] = None,
    ):
        self.instance = instance
        self.destination = destination
        self.config = config or ImportConfig()
        self.albums = AlbumReferences()
        self.summary = ImportSummary()
        self.log = instance.logger(__name__)

    def run(self, stream: BinaryIO) -> ImportSummary:
        """
        Decompress ``stream`` and import every entry.

        Raises:
            ArchiveFormatError: The stream is not a valid tar.gz, or holds an
                                unsupported entry or unparsable content
            StorageError: An entry could not be stored
        """
        self.log.info(f"Importing archive into {self.destination.fullpath}")
        try:
            tar = tarfile.open(fileobj=stream, mode="r|gz")
        except _STREAM_ERRORS as e:
            self.log.error(f"Can't open gzip reader for import: {e}")
            raise ArchiveFormatError(
                f"Can't open archive: {e}", domain=self.instance.domain
            ) from e

        with tar:
            while True:
                try:
                    member = tar.next()
                except _STREAM_ERRORS as e:
                    self.log.error(f"Error on import: {e}")
                    raise ArchiveFormatError(
                        f"Corrupt archive: {e}", domain=self.instance.domain
                    ) from e
                if member is None:
                    break
                self._import_entry(tar, member)

        self.log.info(f"Import finished: {self.summary.to_dict()}")
        return self.summary

    def _import_entry(self, tar: tarfile.TarFile, member: tarfile.TarInfo) -> None:
        try:
            self._dispatch(tar, member)
        except ArchiveImportError as e:
            e.attach(self.instance.domain, member.name)
            self.log.error(f"Can't import {member.name}: {e.message}")
            raise
        except (VFSError, DocumentStoreError) as e:
            self.log.error(f"Can't import {member.name}: {e}")
            raise StorageError(
                str(e), domain=self.instance.domain, entry=member.name
            ) from e
        except _STREAM_ERRORS as e:
            self.log.error(f"Error on import of {member.name}: {e}")
            raise ArchiveFormatError(
                f"Corrupt archive: {e}", domain=self.instance.domain, entry=member.name
            ) from e

    def _dispatch(self, tar: tarfile.TarFile, member: tarfile.TarInfo) -> None:
        doctype, name = split_entry_name(member.name)

        if member.isdir():
            if doctype == FILES_SECTION:
                materialize_directory(self.instance.fs, self.destination, name)
                self.summary.directories += 1
            return

        if not member.isreg():
            raise ArchiveFormatError(
                f"Unknown typeflag for import: {member.type!r}"
            )

        content = tar.extractfile(member)
        if content is None:
            raise ArchiveFormatError("Regular file entry without content")

        if doctype == ALBUMS_SECTION and name == self.config.albums_manifest_name:
            self.summary.albums += create_albums(
                self.instance.db,
                content,
                self.albums,
                reject_duplicates=self.config.reject_duplicate_album_ids,
            )
        elif doctype == ALBUMS_SECTION and name == self.config.album_references_name:
            result = fill_albums(
                self.instance.fs, content, self.destination, self.albums
            )
            self.summary.references_attached += result.attached
            self.summary.references_skipped += result.skipped
        elif doctype == CONTACTS_SECTION:
            import_contact(self.instance.db, content.read())
            self.summary.contacts += 1
        elif doctype == FILES_SECTION:
            stored = import_file(
                self.instance.fs,
                self.destination,
                name,
                member.size,
                member.mode,
                content,
                conflict_retries=self.config.conflict_retries,
            )
            self.summary.files += 1
            if stored.name != posixpath.basename(name):
                self.summary.renamed_files += 1
        else:
            self.log.debug(f"Skipping {member.name}: unknown section")
            self.summary.skipped_entries += 1


def untar(
    stream: BinaryIO,
    destination: DirDoc,
    instance: Instance,
    config: Optional[ImportConfig] = None,
) -> ImportSummary:
    """
    Import a tar.gz stream into ``instance`` under ``destination``.

    See ArchiveImporter.run() for the errors raised.
    """
    return ArchiveImporter(instance, destination, config).run(stream)


def resolve_destination(instance: Instance, destination: str) -> DirDoc:
    """
    Look up the destination directory, creating it (and its ancestors) when
    it doesn't exist yet.

    Raises:
        StorageError: If the directory can't be found or created
    """
    log = instance.logger(__name__)
    fs = instance.fs
    try:
        if fs.dir_exists(destination):
            return fs.dir_by_path(destination)
        return fs.mkdir_all(destination)
    except (VFSError, DocumentStoreError) as e:
        log.error(f"Can't use destination directory {destination}: {e}")
        raise StorageError(
            f"Can't use destination directory {destination}: {e}",
            domain=instance.domain,
        ) from e


def import_archive(
    instance: Instance,
    filename: Union[str, Path],
    destination: str,
    config: Optional[ImportConfig] = None,
) -> ImportSummary:
    """
    Import a tarball with files, photo albums and contacts into an instance.

    Args:
        instance: Target instance
        filename: Path of the tar.gz archive
        destination: Directory path the ``files/`` section is restored into
        config: Import settings (defaults when None)

    Returns:
        Counts of what was imported

    Raises:
        ArchiveImportError: If the archive can't be opened or imported

    Example:
        inst = Instance.open("alice.example.net", "/srv/restore")
        summary = import_archive(inst, "export.tar.gz", "/Imported")
        print(summary.files, summary.contacts)
    """
    try:
        archive = open(filename, "rb")
    except OSError as e:
        instance.logger(__name__).error(f"Can't open archive {filename}: {e}")
        raise ArchiveImportError(
            f"Can't open archive {filename}: {e}", domain=instance.domain
        ) from e

    with archive:
        dst = resolve_destination(instance, destination)
        return untar(archive, dst, instance, config)
