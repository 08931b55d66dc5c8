"""File-backed manifest cache keyed by (owner, repo).

Entries live at ``<cache_dir>/<owner>/<repo>.yaml``.
"""

import logging
import os
import tempfile
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from onboard.paths import get_cache_dir

CACHE_TTL_SECONDS = 24 * 60 * 60

_logging = logging.getLogger(__name__)

_SUFFIX = ".yaml"


@dataclass
class CacheStats:
    files: int
    total_size: int
    oldest: datetime | None = None
    newest: datetime | None = None

    def to_dict(self) -> dict:
        return {
            "files": self.files,
            "totalSize": self.total_size,
            "oldest": self.oldest.isoformat() if self.oldest else None,
            "newest": self.newest.isoformat() if self.newest else None,
        }


def _remove_if_empty(directory: Path) -> None:
    if directory.is_dir() and not any(directory.iterdir()):
        directory.rmdir()


class ManifestCache:
    """One file per (owner, repo); entry age is the file's modification time.

    Reads never raise on a miss and return ``None``. Writes go to a
    temporary file in the same directory and are renamed into place, so
    a reader sees either the previous content or the new content.
    """

    def __init__(self, cache_dir: Path | None = None, ttl: float = CACHE_TTL_SECONDS):
        self.cache_dir = cache_dir if cache_dir is not None else get_cache_dir()
        self.ttl = ttl

    def _entry_path(self, owner: str, repo: str) -> Path:
        return self.cache_dir / owner / f"{repo}{_SUFFIX}"

    def _entries(self) -> list[Path]:
        if not self.cache_dir.is_dir():
            return []
        return sorted(self.cache_dir.glob(f"*/*{_SUFFIX}"))

    def write(self, owner: str, repo: str, content: str) -> None:
        path = self._entry_path(owner, repo)
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".entry_", suffix=".tmp")
        tmp = Path(tmp_name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
            os.replace(tmp, path)
            _logging.debug(f"Cached manifest for {owner}/{repo} at {path}")
        except OSError:
            tmp.unlink(missing_ok=True)
            raise

    def read(self, owner: str, repo: str, ignore_ttl: bool = False) -> str | None:
        """Return cached content, or ``None`` when absent or older than the TTL."""
        path = self._entry_path(owner, repo)
        try:
            age = time.time() - path.stat().st_mtime
            if age >= self.ttl and not ignore_ttl:
                _logging.debug(f"Cache entry for {owner}/{repo} expired ({age:.0f}s old)")
                return None
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            _logging.warning(f"Unreadable cache entry {path}: {e}")
            return None

    def clear(self, owner: str | None = None, repo: str | None = None) -> int:
        """Remove one entry, or every entry when no key is given.

        Returns the number of entries removed; clearing a missing entry is
        not an error.
        """
        if owner is not None and repo is not None:
            targets = [self._entry_path(owner, repo)]
        else:
            targets = self._entries()
        removed = 0
        for path in targets:
            try:
                path.unlink()
                removed += 1
            except FileNotFoundError:
                continue
            _remove_if_empty(path.parent)
        return removed

    def stats(self) -> CacheStats:
        files = 0
        total_size = 0
        mtimes = []
        for path in self._entries():
            try:
                st = path.stat()
            except OSError:
                continue
            files += 1
            total_size += st.st_size
            mtimes.append(st.st_mtime)
        if not mtimes:
            return CacheStats(files=0, total_size=0)
        return CacheStats(
            files=files,
            total_size=total_size,
            oldest=datetime.fromtimestamp(min(mtimes), tz=timezone.utc),
            newest=datetime.fromtimestamp(max(mtimes), tz=timezone.utc),
        )


__all__ = ["CACHE_TTL_SECONDS", "CacheStats", "ManifestCache"]
