"""
Typed configuration for one archive import run.

Archive section names, the file-name collision policy and the album id
validation switch are read from the YAML configuration (see
:mod:`archive_restore.config.loader`); everything has a default so an import
can run with no configuration file at all.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from archive_restore.config.loader import ConfigError, ConfigLoader, validate_config
from archive_restore.utils.logging import setup_logging

# Reserved entry names inside the "albums/" section of an export
DEFAULT_ALBUMS_MANIFEST_NAME = "albums.json"
DEFAULT_ALBUM_REFERENCES_NAME = "references.json"

# Renamed attempts after the first collision on a file name
DEFAULT_CONFLICT_RETRIES = 1


@dataclass
class ImportConfig:
    """
    Settings that shape how an archive is restored.

    Attributes:
        albums_manifest_name: Entry name of the album manifest under albums/
        album_references_name: Entry name of the file-to-album references
        conflict_retries: Renamed attempts after a file name collision
        reject_duplicate_album_ids: Fail when the manifest redefines an id
        storage_root: Where instance databases and content live
        log_dir: Directory for log files (None disables file logging)
        verbose: Verbose logging
    """

    albums_manifest_name: str = DEFAULT_ALBUMS_MANIFEST_NAME
    album_references_name: str = DEFAULT_ALBUM_REFERENCES_NAME
    conflict_retries: int = DEFAULT_CONFLICT_RETRIES
    reject_duplicate_album_ids: bool = True
    storage_root: Path | None = None
    log_dir: Path | None = None
    verbose: bool = False
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ImportConfig:
        """
        Create an ImportConfig from a configuration dictionary.

        Unknown keys are kept in ``extra``.

        Raises:
            ConfigError: If a known value has the wrong type or range
        """
        if data is None:
            return cls()

        validate_config(data)

        known = {
            "albums_manifest_name",
            "album_references_name",
            "conflict_retries",
            "reject_duplicate_album_ids",
            "storage_root",
            "log_dir",
            "verbose",
        }

        storage_root = data.get("storage_root")
        log_dir = data.get("log_dir")

        return cls(
            albums_manifest_name=data.get(
                "albums_manifest_name", DEFAULT_ALBUMS_MANIFEST_NAME
            ),
            album_references_name=data.get(
                "album_references_name", DEFAULT_ALBUM_REFERENCES_NAME
            ),
            conflict_retries=data.get("conflict_retries", DEFAULT_CONFLICT_RETRIES),
            reject_duplicate_album_ids=data.get("reject_duplicate_album_ids", True),
            storage_root=Path(storage_root).expanduser() if storage_root else None,
            log_dir=Path(log_dir).expanduser() if log_dir else None,
            verbose=data.get("verbose", False),
            extra={k: v for k, v in data.items() if k not in known},
        )

    @classmethod
    def load(cls, config_dir: Path | str | None = None) -> ImportConfig:
        """
        Load the configuration file from the configuration directory.

        Raises:
            ConfigError: If the file exists but is unreadable or invalid
        """
        loader = ConfigLoader(config_dir=Path(config_dir) if config_dir else None)
        return cls.from_dict(loader.load_and_validate())

    def configure_logging(self, use_colors: bool = True) -> logging.Logger:
        """Set up package logging from the verbose and log_dir settings."""
        return setup_logging(
            verbose=self.verbose,
            log_dir=self.log_dir,
            enable_file_logging=self.log_dir is not None,
            use_colors=use_colors,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary format (inverse of from_dict)."""
        result: dict[str, Any] = {
            "albums_manifest_name": self.albums_manifest_name,
            "album_references_name": self.album_references_name,
            "conflict_retries": self.conflict_retries,
            "reject_duplicate_album_ids": self.reject_duplicate_album_ids,
            "verbose": self.verbose,
        }
        if self.storage_root is not None:
            result["storage_root"] = str(self.storage_root)
        if self.log_dir is not None:
            result["log_dir"] = str(self.log_dir)
        result.update(self.extra)
        return result


__all__ = [
    "ConfigError",
    "ImportConfig",
    "DEFAULT_ALBUMS_MANIFEST_NAME",
    "DEFAULT_ALBUM_REFERENCES_NAME",
    "DEFAULT_CONFLICT_RETRIES",
]
