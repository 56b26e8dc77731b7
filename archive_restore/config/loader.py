"""
Configuration loader module for archive restoration.

Provides YAML-based configuration file loading with support for:
- Loading configuration from default or custom paths
- Graceful handling of missing configuration files
- Basic validation of configuration structure
"""

import logging
from pathlib import Path
from typing import Any

import yaml

from archive_restore.utils import resolve_config_dir

# Default configuration file name
DEFAULT_CONFIG_FILE = "config.yaml"

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when configuration loading or validation fails."""

    pass


class ConfigLoader:
    """
    YAML configuration file loader.

    Attributes:
        config_dir: Directory containing the configuration file
        config_file: Name of the configuration file

    Usage:
        loader = ConfigLoader()
        config = loader.load_and_validate()

        # Load from specific file
        config = loader.load_from_file("/path/to/config.yaml")
    """

    def __init__(
        self, config_dir: Path | None = None, config_file: str = DEFAULT_CONFIG_FILE
    ):
        """
        Initialize the configuration loader.

        Args:
            config_dir: Directory containing the configuration file.
                       Defaults to ~/.archive-restore/ or $ARCHIVE_RESTORE_CONFIG_DIR
            config_file: Name of the configuration file (default: config.yaml)
        """
        self.config_dir = resolve_config_dir(config_dir)
        self.config_file = config_file

    def _get_config_path(self) -> Path:
        return self.config_dir / self.config_file

    def load(self) -> dict[str, Any]:
        """
        Load configuration from the default configuration file.

        Returns:
            Dictionary containing configuration values, or empty dict if file
            doesn't exist

        Raises:
            ConfigError: If the configuration file exists but cannot be parsed
        """
        return self.load_from_file(self._get_config_path())

    def load_from_file(self, path: Path | str) -> dict[str, Any]:
        """
        Load configuration from a specific file.

        Returns an empty dict if the file doesn't exist, so that the importer
        runs with its defaults.

        Raises:
            ConfigError: If the configuration file exists but cannot be parsed
        """
        path = Path(path)

        if not path.exists():
            logger.debug(f"Configuration file not found: {path}")
            return {}

        try:
            with open(path, encoding="utf-8") as f:
                config = yaml.safe_load(f)

            if config is None:
                logger.debug(f"Configuration file is empty: {path}")
                return {}

            if not isinstance(config, dict):
                raise ConfigError(
                    f"Configuration file must contain a YAML dictionary, "
                    f"got {type(config).__name__}"
                )

            logger.debug(f"Loaded configuration from {path}")
            return config

        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse YAML configuration file: {e}") from e
        except OSError as e:
            raise ConfigError(f"Failed to read configuration file: {e}") from e

    def validate(self, config: dict[str, Any]) -> None:
        """Validate configuration structure and values (see validate_config)."""
        validate_config(config)

    def load_and_validate(self) -> dict[str, Any]:
        """
        Load configuration and validate it.

        Raises:
            ConfigError: If configuration cannot be loaded or is invalid
        """
        config = self.load()
        if config:
            self.validate(config)
        return config


def validate_config(config: dict[str, Any]) -> None:
    """
    Validate configuration structure and values.

    Unknown keys are ignored so newer configuration files keep working
    with older releases.

    Raises:
        ConfigError: If configuration is invalid
    """
    if not isinstance(config, dict):
        raise ConfigError(
            f"Configuration must be a dictionary, got {type(config).__name__}"
        )

    valid_keys: dict[str, type[Any]] = {
        # Archive layout
        "albums_manifest_name": str,
        "album_references_name": str,
        # Import behavior
        "conflict_retries": int,
        "reject_duplicate_album_ids": bool,
        # Storage
        "storage_root": str,
        # Logging
        "log_dir": str,
        "verbose": bool,
    }

    for key, value in config.items():
        if key not in valid_keys:
            continue
        expected_type = valid_keys[key]
        # bool is an int subclass; True is not a retry count
        if isinstance(value, bool) and expected_type is int:
            raise ConfigError(f"Invalid type for '{key}': expected int, got bool")
        if not isinstance(value, expected_type):
            raise ConfigError(
                f"Invalid type for '{key}': expected {expected_type.__name__}, "
                f"got {type(value).__name__}"
            )

    for key in ("albums_manifest_name", "album_references_name"):
        if key in config:
            name = config[key]
            if not name.strip() or "/" in name:
                raise ConfigError(f"{key} must be a plain file name, got {name!r}")

    if "conflict_retries" in config and config["conflict_retries"] < 1:
        raise ConfigError(
            f"conflict_retries must be >= 1, got {config['conflict_retries']}"
        )
