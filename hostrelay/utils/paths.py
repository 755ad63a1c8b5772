"""File path resolution using platformdirs.

The relay keeps one SQLite file. By default it lives in the platform user
data dir:
  macOS: ~/Library/Application Support/hostrelay/
  Linux: ~/.local/share/hostrelay/
HOSTRELAY_DATA_DIR overrides the location (useful for containers).
"""

import os
from pathlib import Path

import platformdirs

APP_NAME = "hostrelay"


def get_data_dir() -> Path:
    """Return the directory for persistent data."""
    override = os.environ.get("HOSTRELAY_DATA_DIR", "").strip()
    if override:
        return Path(override).expanduser()
    return Path(platformdirs.user_data_dir(APP_NAME, appauthor=False))


def get_default_db_path() -> Path:
    """Return the default SQLite database file path."""
    return get_data_dir() / "hostrelay.db"


def ensure_data_dir() -> Path:
    """Create the data directory if it doesn't exist and return it."""
    data_dir = get_data_dir()
    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir
