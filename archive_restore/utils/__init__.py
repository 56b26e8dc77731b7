"""
archive_restore.utils - Utility module

Common utilities including logging configuration.
"""

from archive_restore.utils.paths import DEFAULT_CONFIG_DIR, resolve_config_dir

__all__ = ["resolve_config_dir", "DEFAULT_CONFIG_DIR"]
