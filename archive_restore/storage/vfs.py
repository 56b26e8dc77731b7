"""
Virtual file system on top of the document store.

Directories and files are ``io.cozy.files`` documents; file content is kept
as blobs in a local content directory, one blob per file id. Paths are
POSIX-style and absolute, the root directory being ``/``.

Provides:
- Path lookups for directories and files
- Directory creation (single level or with all missing ancestors)
- File creation through a writable handle that registers the file on close
- Metadata updates such as back-references to other documents
"""

from __future__ import annotations

import hashlib
import os
import posixpath
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, BinaryIO, Optional, Union

from archive_restore.models.document import FILES, ID_FIELD, REV_FIELD, DocReference
from archive_restore.storage.db import DocumentNotFoundError, DocumentStore
from archive_restore.storage.mime import extract_mime_and_class

ROOT_DIR_ID = "io.cozy.files.root-dir"
ROOT_PATH = "/"

DIR_TYPE = "directory"
FILE_TYPE = "file"


class VFSError(Exception):
    """Base class for file system errors."""

    pass


class NotFoundError(VFSError):
    """Raised when a path or id does not exist."""

    pass


class FileConflictError(VFSError):
    """Raised when a name is already taken in the target directory."""

    def __init__(self, dir_path: str, name: str):
        super().__init__(f"{posixpath.join(dir_path, name)} already exists")
        self.dir_path = dir_path
        self.name = name


class InvalidNameError(VFSError):
    """Raised for names that can't be stored (empty, '.', '..', '/', NUL)."""

    pass


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def check_name(name: str) -> str:
    """
    Validate a single path component.

    Raises:
        InvalidNameError: If the name can't be used for a file or directory
    """
    if not name or name in (".", "..") or "/" in name or "\x00" in name:
        raise InvalidNameError(f"Invalid file name: {name!r}")
    return name


def clean_path(path: str) -> str:
    """Normalize a path to its absolute, slash-separated form."""
    return posixpath.normpath("/" + path.lstrip("/"))


@dataclass
class DirDoc:
    """
    Directory metadata.

    Attributes:
        doc_id: Document identifier
        doc_rev: Document revision
        name: Leaf name ("" for the root)
        dir_id: Parent directory id ("" for the root)
        fullpath: Absolute path
    """

    name: str
    dir_id: str
    fullpath: str
    doc_id: Optional[str] = None
    doc_rev: Optional[str] = None
    created_at: str = field(default_factory=_now)
    updated_at: str = field(default_factory=_now)

    def id(self) -> str:
        return self.doc_id or ""

    def to_document(self) -> dict[str, Any]:
        doc: dict[str, Any] = {
            "type": DIR_TYPE,
            "name": self.name,
            "dir_id": self.dir_id,
            "path": self.fullpath,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
        if self.doc_id:
            doc[ID_FIELD] = self.doc_id
        if self.doc_rev:
            doc[REV_FIELD] = self.doc_rev
        return doc

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> DirDoc:
        return cls(
            name=doc.get("name", ""),
            dir_id=doc.get("dir_id", ""),
            fullpath=doc.get("path", ROOT_PATH),
            doc_id=doc.get(ID_FIELD),
            doc_rev=doc.get(REV_FIELD),
            created_at=doc.get("created_at", ""),
            updated_at=doc.get("updated_at", ""),
        )


@dataclass
class FileDoc:
    """
    File metadata.

    Attributes:
        name: Leaf name
        dir_id: Parent directory id
        size: Declared content length in bytes (-1 when unknown)
        mime: MIME type
        klass: Coarse content class (stored as "class")
        executable: Executable bit
        referenced_by: Back-references from other documents (e.g. albums)
    """

    name: str
    dir_id: str
    size: int = -1
    mime: str = ""
    klass: str = ""
    executable: bool = False
    trashed: bool = False
    md5sum: str = ""
    doc_id: Optional[str] = None
    doc_rev: Optional[str] = None
    created_at: str = field(default_factory=_now)
    updated_at: str = field(default_factory=_now)
    referenced_by: list[DocReference] = field(default_factory=list)

    @classmethod
    def new(
        cls,
        name: str,
        dir_id: str,
        size: int,
        mime: str = "",
        klass: str = "",
        created_at: Optional[datetime] = None,
        executable: bool = False,
    ) -> FileDoc:
        """
        Build metadata for a file that is about to be created.

        MIME type and class default to what the name suggests.

        Raises:
            InvalidNameError: If the name can't be used
        """
        check_name(name)
        if not mime:
            mime, guessed_class = extract_mime_and_class(name)
            klass = klass or guessed_class
        stamp = (created_at or datetime.now(timezone.utc)).isoformat()
        return cls(
            name=name,
            dir_id=dir_id,
            size=size,
            mime=mime,
            klass=klass,
            executable=executable,
            created_at=stamp,
            updated_at=stamp,
        )

    def id(self) -> str:
        return self.doc_id or ""

    def add_referenced_by(self, *refs: DocReference) -> None:
        """Add back-references, skipping ones already present."""
        for ref in refs:
            if ref not in self.referenced_by:
                self.referenced_by.append(ref)

    def to_document(self) -> dict[str, Any]:
        doc: dict[str, Any] = {
            "type": FILE_TYPE,
            "name": self.name,
            "dir_id": self.dir_id,
            "size": self.size,
            "mime": self.mime,
            "class": self.klass,
            "executable": self.executable,
            "trashed": self.trashed,
            "md5sum": self.md5sum,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
        if self.referenced_by:
            doc["referenced_by"] = [r.to_dict() for r in self.referenced_by]
        if self.doc_id:
            doc[ID_FIELD] = self.doc_id
        if self.doc_rev:
            doc[REV_FIELD] = self.doc_rev
        return doc

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> FileDoc:
        return cls(
            name=doc.get("name", ""),
            dir_id=doc.get("dir_id", ""),
            size=doc.get("size", -1),
            mime=doc.get("mime", ""),
            klass=doc.get("class", ""),
            executable=doc.get("executable", False),
            trashed=doc.get("trashed", False),
            md5sum=doc.get("md5sum", ""),
            doc_id=doc.get(ID_FIELD),
            doc_rev=doc.get(REV_FIELD),
            created_at=doc.get("created_at", ""),
            updated_at=doc.get("updated_at", ""),
            referenced_by=[
                DocReference.from_dict(r) for r in doc.get("referenced_by") or []
            ],
        )


class FileHandle:
    """
    Writable handle returned by VirtualFileSystem.create_file().

    Content goes to a temporary blob. close() checks the byte count against
    the declared size, then registers the file document and moves the blob
    in place. Nothing is visible in the file system until close() succeeds.

    Usage:
        with fs.create_file(FileDoc.new("a.txt", parent.id(), 5)) as f:
            f.write(b"hello")
    """

    def __init__(self, fs: VirtualFileSystem, doc: FileDoc, parent: DirDoc):
        self._fs = fs
        self.doc = doc
        self._parent = parent
        self._tmp_path = fs.content_dir / f".upload-{uuid.uuid4().hex}"
        self._blob = open(self._tmp_path, "wb")
        self._md5 = hashlib.md5()
        self.written = 0
        self.closed = False

    def write(self, data: bytes) -> int:
        if self.closed:
            raise VFSError(f"write to closed file {self.doc.name}")
        self._blob.write(data)
        self._md5.update(data)
        self.written += len(data)
        return len(data)

    def close(self) -> None:
        """
        Finish the upload and register the file.

        Raises:
            VFSError: If the written size differs from the declared size, or
                      the name was taken while the content was being written
        """
        if self.closed:
            return
        self.closed = True
        self._blob.close()
        try:
            if self.doc.size >= 0 and self.written != self.doc.size:
                raise VFSError(
                    f"{self.doc.name}: wrote {self.written} bytes, "
                    f"expected {self.doc.size}"
                )
            self.doc.size = self.written
            self.doc.md5sum = self._md5.hexdigest()
            self._fs._check_available(self._parent, self.doc.name)
            stored = self._fs.db.create_doc(FILES, self.doc.to_document())
            self.doc.doc_id = stored[ID_FIELD]
            self.doc.doc_rev = stored[REV_FIELD]
            os.replace(self._tmp_path, self._fs._blob_path(self.doc.doc_id))
        except BaseException:
            self._tmp_path.unlink(missing_ok=True)
            raise

    def __enter__(self) -> FileHandle:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            self.close()
        else:
            self.closed = True
            self._blob.close()
            self._tmp_path.unlink(missing_ok=True)


class VirtualFileSystem:
    """
    File system whose metadata lives in a DocumentStore.

    Attributes:
        db: Document store holding io.cozy.files documents
        content_dir: Local directory holding file content blobs

    Usage:
        fs = VirtualFileSystem(DocumentStore(":memory:"), tmp_path / "content")
        fs.initialize()
        photos = fs.mkdir_all("/Backup/Photos")
        with fs.create_file(FileDoc.new("a.jpg", photos.id(), 3)) as f:
            f.write(b"abc")
        fs.file_by_path("/Backup/Photos/a.jpg")
    """

    def __init__(self, db: DocumentStore, content_dir: Union[Path, str]):
        self.db = db
        self.content_dir = Path(content_dir)

    def initialize(self) -> None:
        """Create the schema, the content directory and the root directory."""
        self.db.initialize()
        self.content_dir.mkdir(parents=True, exist_ok=True)
        try:
            self.db.get_doc(FILES, ROOT_DIR_ID)
        except DocumentNotFoundError:
            root = DirDoc(name="", dir_id="", fullpath=ROOT_PATH, doc_id=ROOT_DIR_ID)
            self.db.create_named_doc(FILES, root.to_document())

    def _blob_path(self, file_id: str) -> Path:
        return self.content_dir / file_id

    # =========================================================================
    # Lookups
    # =========================================================================

    def root(self) -> DirDoc:
        return self.dir_by_id(ROOT_DIR_ID)

    def dir_by_id(self, dir_id: str) -> DirDoc:
        try:
            doc = self.db.get_doc(FILES, dir_id)
        except DocumentNotFoundError as e:
            raise NotFoundError(f"Directory {dir_id} not found") from e
        if doc.get("type") != DIR_TYPE:
            raise NotFoundError(f"{dir_id} is not a directory")
        return DirDoc.from_document(doc)

    def dir_by_path(self, path: str) -> DirDoc:
        """
        Raises:
            NotFoundError: If no directory exists at that path
        """
        path = clean_path(path)
        docs = self.db.find(FILES, type=DIR_TYPE, path=path)
        if not docs:
            raise NotFoundError(f"Directory {path} not found")
        return DirDoc.from_document(docs[0])

    def dir_exists(self, path: str) -> bool:
        return bool(self.db.find(FILES, type=DIR_TYPE, path=clean_path(path)))

    def file_by_path(self, path: str) -> FileDoc:
        """
        Raises:
            NotFoundError: If no file exists at that path
        """
        path = clean_path(path)
        dirname, name = posixpath.split(path)
        if not name:
            raise NotFoundError(f"File {path} not found")
        try:
            parent = self.dir_by_path(dirname)
        except NotFoundError as e:
            raise NotFoundError(f"File {path} not found") from e
        docs = self.db.find(FILES, type=FILE_TYPE, dir_id=parent.id(), name=name)
        if not docs:
            raise NotFoundError(f"File {path} not found")
        return FileDoc.from_document(docs[0])

    def file_path(self, doc: FileDoc) -> str:
        """Absolute path of a file."""
        return posixpath.join(self.dir_by_id(doc.dir_id).fullpath, doc.name)

    def children(self, directory: DirDoc) -> list[Union[DirDoc, FileDoc]]:
        """Entries directly under a directory, in creation order."""
        entries: list[Union[DirDoc, FileDoc]] = []
        for doc in self.db.find(FILES, dir_id=directory.id()):
            if doc.get("type") == DIR_TYPE:
                entries.append(DirDoc.from_document(doc))
            else:
                entries.append(FileDoc.from_document(doc))
        return entries

    def _check_available(self, parent: DirDoc, name: str) -> None:
        if self.db.find(FILES, dir_id=parent.id(), name=name):
            raise FileConflictError(parent.fullpath, name)

    # =========================================================================
    # Directories
    # =========================================================================

    def mkdir(self, path: str) -> DirDoc:
        """
        Create a single directory; its parent must exist.

        Raises:
            NotFoundError: If the parent directory is missing
            FileConflictError: If the name is already taken
            InvalidNameError: If the path has no usable leaf name
        """
        path = clean_path(path)
        dirname, name = posixpath.split(path)
        check_name(name)
        parent = self.dir_by_path(dirname)
        return self._create_dir(parent, name)

    def _create_dir(self, parent: DirDoc, name: str) -> DirDoc:
        self._check_available(parent, name)
        directory = DirDoc(
            name=name,
            dir_id=parent.id(),
            fullpath=posixpath.join(parent.fullpath, name),
        )
        stored = self.db.create_doc(FILES, directory.to_document())
        return DirDoc.from_document(stored)

    def mkdir_all(self, path: str) -> DirDoc:
        """
        Create a directory and every missing ancestor.

        Existing directories along the path are reused, so calling it twice
        with the same path returns the same directory.

        Raises:
            FileConflictError: If a file sits where a directory is needed
        """
        path = clean_path(path)
        current = self.root()
        for name in [part for part in path.split("/") if part]:
            check_name(name)
            child = posixpath.join(current.fullpath, name)
            docs = self.db.find(FILES, type=DIR_TYPE, path=child)
            if docs:
                current = DirDoc.from_document(docs[0])
            else:
                current = self._create_dir(current, name)
        return current

    # =========================================================================
    # Files
    # =========================================================================

    def create_file(self, doc: FileDoc) -> FileHandle:
        """
        Start creating a file.

        Raises:
            NotFoundError: If the parent directory is missing
            FileConflictError: If the name is already taken in the parent
            InvalidNameError: If the name can't be used
        """
        check_name(doc.name)
        parent = self.dir_by_id(doc.dir_id)
        self._check_available(parent, doc.name)
        return FileHandle(self, doc, parent)

    def update_file(self, doc: FileDoc) -> FileDoc:
        """
        Persist metadata changes (e.g. back-references) of an existing file.

        The document's revision is refreshed in place.
        """
        doc.updated_at = _now()
        stored = self.db.update_doc(FILES, doc.to_document())
        doc.doc_rev = stored[REV_FIELD]
        return doc

    def open_file(self, doc: FileDoc) -> BinaryIO:
        """Open a stored file's content for reading."""
        try:
            return open(self._blob_path(doc.id()), "rb")
        except FileNotFoundError as e:
            raise NotFoundError(f"Content of {doc.name} not found") from e
