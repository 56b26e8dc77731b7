"""
archive_restore.config - Configuration management module

Contains configuration loading, validation, and default settings.
"""

from archive_restore.config.import_config import (
    DEFAULT_ALBUM_REFERENCES_NAME,
    DEFAULT_ALBUMS_MANIFEST_NAME,
    ImportConfig,
)
from archive_restore.config.loader import ConfigError, ConfigLoader, validate_config

__all__ = [
    "ConfigError",
    "ConfigLoader",
    "ImportConfig",
    "DEFAULT_ALBUMS_MANIFEST_NAME",
    "DEFAULT_ALBUM_REFERENCES_NAME",
    "validate_config",
]
