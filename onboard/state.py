"""Persisted installation state: the single record of what a run did.

The state file is read and written as a whole. Writes go through a
temporary file in the same directory that is renamed into place, so a
concurrent reader never sees a partial document. Only one operation at
a time may hold the store open for writing; this is enforced with an
advisory lock file next to the state file.
"""

import json
import logging
import os
import sys
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from onboard.errors import StateCorruptError, StateLockedError
from onboard.paths import get_state_path
from onboard.verification.models import HISTORY_LIMIT

STATE_VERSION = 1

_logging = logging.getLogger(__name__)


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class StepStatus:
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class StepRecord:
    name: str
    status: str
    result: dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=utc_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status,
            "result": self.result,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StepRecord":
        return cls(
            name=data["name"],
            status=data["status"],
            result=data.get("result") or {},
            timestamp=data.get("timestamp") or "",
        )


@dataclass
class InstallationState:
    installed: bool = False
    timestamp: str = field(default_factory=utc_now)
    repository: str | None = None
    manifest: dict[str, Any] | None = None
    environment: dict[str, Any] = field(default_factory=dict)
    dependencies: list[dict[str, Any]] = field(default_factory=list)
    steps: list[StepRecord] = field(default_factory=list)
    verification_history: list[dict[str, Any]] = field(default_factory=list)
    reversed: dict[str, list[str]] = field(default_factory=dict)

    def record_step(self, record: StepRecord) -> None:
        self.steps.append(record)

    def step(self, name: str) -> StepRecord | None:
        """Most recent record for a phase, if it ran."""
        for record in reversed(self.steps):
            if record.name == name:
                return record
        return None

    def append_verification(self, entry: dict[str, Any]) -> None:
        self.verification_history.append(entry)
        overflow = len(self.verification_history) - HISTORY_LIMIT
        if overflow > 0:
            del self.verification_history[:overflow]

    def mark_reversed(self, phase: str, target: str) -> None:
        done = self.reversed.setdefault(phase, [])
        if target not in done:
            done.append(target)

    def is_reversed(self, phase: str, target: str) -> bool:
        return target in self.reversed.get(phase, [])

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": STATE_VERSION,
            "installed": self.installed,
            "timestamp": self.timestamp,
            "repository": self.repository,
            "manifest": self.manifest,
            "environment": self.environment,
            "dependencies": self.dependencies,
            "steps": [s.to_dict() for s in self.steps],
            "verificationHistory": self.verification_history,
            "reversed": self.reversed,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "InstallationState":
        return cls(
            installed=bool(data.get("installed", False)),
            timestamp=data.get("timestamp") or utc_now(),
            repository=data.get("repository"),
            manifest=data.get("manifest"),
            environment=data.get("environment") or {},
            dependencies=list(data.get("dependencies") or []),
            steps=[StepRecord.from_dict(s) for s in data.get("steps") or []],
            verification_history=list(data.get("verificationHistory") or []),
            reversed={k: list(v) for k, v in (data.get("reversed") or {}).items()},
        )


class StateLock:
    """Non-blocking advisory lock file holding the owner's PID.

    The file is left in place on release; only the lock held on it
    marks ownership.

    Uses fcntl.flock() on Unix and msvcrt.locking() on Windows.
    """

    def __init__(self, lock_path: Path):
        self.lock_path = lock_path
        self._fd: int | None = None

    @property
    def held(self) -> bool:
        return self._fd is not None

    def acquire(self) -> None:
        self.lock_path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(str(self.lock_path), os.O_CREAT | os.O_RDWR)
        try:
            if sys.platform == "win32":
                import msvcrt
                msvcrt.locking(fd, msvcrt.LK_NBLCK, 1)
            else:
                import fcntl
                fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except OSError:
            owner = self._read_owner(fd)
            os.close(fd)
            detail = f" (PID {owner})" if owner else ""
            raise StateLockedError(
                f"Another onboard operation holds {self.lock_path}{detail}",
                hint="wait for it to finish and try again",
            ) from None

        os.ftruncate(fd, 0)
        os.lseek(fd, 0, os.SEEK_SET)
        os.write(fd, str(os.getpid()).encode())
        self._fd = fd

    def release(self) -> None:
        if self._fd is None:
            return
        try:
            if sys.platform == "win32":
                import msvcrt
                os.lseek(self._fd, 0, os.SEEK_SET)
                msvcrt.locking(self._fd, msvcrt.LK_UNLCK, 1)
            else:
                import fcntl
                fcntl.flock(self._fd, fcntl.LOCK_UN)
        except OSError as e:
            _logging.debug(f"Failed to unlock {self.lock_path}: {e}")
        finally:
            os.close(self._fd)
            self._fd = None

    @staticmethod
    def _read_owner(fd: int) -> str:
        try:
            os.lseek(fd, 0, os.SEEK_SET)
            return os.read(fd, 32).decode().strip()
        except (OSError, UnicodeDecodeError):
            return ""


class InstallationStateStore:
    """Reads and atomically writes the state file.

    ``open()`` takes the write lock and ``close()`` releases it; use the
    store as a context manager. Reading does not require the lock.
    """

    def __init__(self, path: Path | None = None):
        self.path = path if path is not None else get_state_path()
        self._lock = StateLock(self.path.with_name(self.path.name + ".lock"))

    def open(self) -> "InstallationStateStore":
        self._lock.acquire()
        _logging.debug(f"Opened state store at {self.path}")
        return self

    def close(self) -> None:
        self._lock.release()

    def __enter__(self) -> "InstallationStateStore":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> InstallationState | None:
        """Return the persisted state, or ``None`` when no state file exists.

        Raises:
            StateCorruptError: If the file cannot be read or parsed
        """
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StateCorruptError(f"Cannot read state file {self.path}: {e}") from e
        try:
            data = json.loads(text)
            if not isinstance(data, dict):
                raise ValueError("top level must be an object")
            return InstallationState.from_dict(data)
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise StateCorruptError(
                f"State file {self.path} is corrupt: {e}",
                hint=f"remove {self.path} and run 'onboard init' again",
            ) from e

    def save(self, state: InstallationState) -> None:
        if not self._lock.held:
            raise StateLockedError(f"State store {self.path} is not open for writing")
        self.path.parent.mkdir(parents=True, exist_ok=True)
        content = json.dumps(state.to_dict(), indent=2, default=str)
        fd, tmp_name = tempfile.mkstemp(
            dir=self.path.parent, prefix=".onboard-state_", suffix=".tmp"
        )
        tmp = Path(tmp_name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
                f.write("\n")
            os.replace(tmp, self.path)
            _logging.debug(f"State saved to {self.path}")
        except OSError:
            tmp.unlink(missing_ok=True)
            raise

    def clear(self) -> None:
        if not self._lock.held:
            raise StateLockedError(f"State store {self.path} is not open for writing")
        self.path.unlink(missing_ok=True)


__all__ = [
    "StepStatus",
    "StepRecord",
    "InstallationState",
    "StateLock",
    "InstallationStateStore",
]
