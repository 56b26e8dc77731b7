"""
Per-owner storage instance.

An instance bundles the domain that identifies an owner with that owner's
document store and file system. Every import runs against one instance.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from archive_restore.config.import_config import ImportConfig
from archive_restore.config.loader import ConfigError
from archive_restore.storage.db import DocumentStore
from archive_restore.storage.vfs import VirtualFileSystem
from archive_restore.utils.logging import DomainLoggerAdapter, get_domain_logger

DATABASE_FILE = "documents.db"
CONTENT_DIR = "content"


@dataclass
class Instance:
    """
    An owner's storage space.

    Attributes:
        domain: Domain identifying the owner (e.g. "alice.example.net")
        db: Document store for contacts, albums and file metadata
        fs: File system backed by ``db``

    Usage:
        inst = Instance.open("alice.example.net", Path("/srv/restore"))
        import_archive(inst, "export.tar.gz", "/Imported")
    """

    domain: str
    db: DocumentStore
    fs: VirtualFileSystem

    @classmethod
    def open(cls, domain: str, storage_root: Path | str) -> Instance:
        """
        Open (creating on first use) the instance stored under
        ``<storage_root>/<domain>/``.
        """
        base = Path(storage_root).expanduser() / domain
        base.mkdir(parents=True, exist_ok=True)
        db = DocumentStore(str(base / DATABASE_FILE))
        fs = VirtualFileSystem(db, base / CONTENT_DIR)
        fs.initialize()
        return cls(domain=domain, db=db, fs=fs)

    @classmethod
    def from_config(cls, domain: str, config: ImportConfig) -> Instance:
        """
        Open the instance under the configured storage root.

        Raises:
            ConfigError: If no storage_root is configured
        """
        if config.storage_root is None:
            raise ConfigError("storage_root is not configured")
        return cls.open(domain, config.storage_root)

    @classmethod
    def in_memory(cls, domain: str, content_dir: Path | str) -> Instance:
        """Instance with an in-memory document store (content still on disk)."""
        db = DocumentStore(":memory:")
        fs = VirtualFileSystem(db, content_dir)
        fs.initialize()
        return cls(domain=domain, db=db, fs=fs)

    def logger(self, name: str) -> DomainLoggerAdapter:
        """Module logger tagged with this instance's domain."""
        return get_domain_logger(name, self.domain)
