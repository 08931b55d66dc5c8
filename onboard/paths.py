"""Filesystem locations used by onboard."""

import hashlib
import os
from pathlib import Path

STATE_FILENAME = ".onboard-state.json"


def get_cache_dir() -> Path:
    """Return the manifest cache directory.

    Priority:
    1. ONBOARD_CACHE_DIR environment variable (if set)
    2. ~/.cache/onboard/manifests (default XDG location)
    """
    if "ONBOARD_CACHE_DIR" in os.environ:
        return Path(os.environ["ONBOARD_CACHE_DIR"])
    return Path.home() / ".cache" / "onboard" / "manifests"


def get_state_path(project_root: Path | None = None) -> Path:
    """Return path to the installation state file.

    Priority:
    1. ONBOARD_STATE environment variable (if set)
    2. <project_root>/.onboard-state.json, project_root defaulting to cwd
    """
    if "ONBOARD_STATE" in os.environ:
        return Path(os.environ["ONBOARD_STATE"])
    root = project_root if project_root is not None else Path.cwd()
    return root / STATE_FILENAME


def expand_user_path(path: str) -> Path:
    """Expand a leading '~' the way manifests and state records write paths."""
    return Path(os.path.expanduser(path))


def sha256_file(path: Path) -> str | None:
    """Hex digest of a file's content, or ``None`` if it does not exist."""
    digest = hashlib.sha256()
    try:
        with open(path, "rb") as f:
            for chunk in iter(lambda: f.read(65536), b""):
                digest.update(chunk)
    except FileNotFoundError:
        return None
    return digest.hexdigest()
