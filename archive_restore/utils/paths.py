"""
Path utilities for configuration directory resolution and archive paths.

Provides consistent path resolution for the archive-restore configuration
directory, and the helpers used to join archive-relative paths under an
import destination.
"""

from __future__ import annotations

import os
import posixpath
from pathlib import Path

# Default configuration directory
DEFAULT_CONFIG_DIR = Path.home() / ".archive-restore"

# Environment variable for overriding config directory
CONFIG_DIR_ENV_VAR = "ARCHIVE_RESTORE_CONFIG_DIR"


def resolve_config_dir(config_dir: Path | str | None = None) -> Path:
    """
    Resolve the configuration directory path.

    Priority:
        1. Explicit config_dir parameter (if provided)
        2. ARCHIVE_RESTORE_CONFIG_DIR environment variable
        3. Default directory (~/.archive-restore)

    Args:
        config_dir: Optional explicit configuration directory path.
                   Can be a Path object or string.

    Returns:
        Resolved Path to the configuration directory (expanduser and resolve applied)
    """
    if config_dir is not None:
        return Path(config_dir).expanduser().resolve()

    env_dir = os.environ.get(CONFIG_DIR_ENV_VAR)
    if env_dir:
        return Path(env_dir).expanduser().resolve()

    return DEFAULT_CONFIG_DIR.expanduser().resolve()


def join_under(base: str, relative: str) -> str:
    """
    Join an archive-relative path under a virtual directory path.

    Leading slashes on ``relative`` are ignored, so both ``"/photo.jpg"`` and
    ``"photo.jpg"`` land directly under ``base``. The result is normalized
    and always absolute.

    Example:
        join_under("/Imported", "/photos/a.jpg")  # "/Imported/photos/a.jpg"
        join_under("/", "a/b/")                   # "/a/b"
    """
    relative = relative.lstrip("/")
    if not relative:
        return posixpath.normpath("/" + base.lstrip("/"))
    joined = posixpath.join("/" + base.lstrip("/"), relative)
    return posixpath.normpath(joined)


def is_within(base: str, path: str) -> bool:
    """
    Whether the normalized ``path`` is ``base`` itself or lies below it.

    Example:
        is_within("/Imported", "/Imported/a.jpg")   # True
        is_within("/Imported", "/Private/a.jpg")    # False
        is_within("/", "/anything")                 # True
    """
    base = posixpath.normpath("/" + base.lstrip("/"))
    path = posixpath.normpath("/" + path.lstrip("/"))
    if base == "/":
        return True
    return path == base or path.startswith(base + "/")
