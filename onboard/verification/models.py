"""Data models for the verification engine."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from onboard.errors import ConfigError

DEFAULT_CHECK_TIMEOUT = 30.0
HISTORY_LIMIT = 10


class Priority(Enum):
    CRITICAL = "critical"
    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]

    def __ge__(self, other: "Priority") -> bool:
        if not isinstance(other, Priority):
            return NotImplemented
        return self.rank >= other.rank

    def __lt__(self, other: "Priority") -> bool:
        if not isinstance(other, Priority):
            return NotImplemented
        return self.rank < other.rank

    @classmethod
    def parse(cls, value: "str | Priority | None") -> "Priority":
        """Parse a priority name or its P0-P3 alias, case-insensitive."""
        if value is None:
            return cls.NORMAL
        if isinstance(value, Priority):
            return value
        key = str(value).strip().lower()
        if key in _PRIORITY_ALIASES:
            return _PRIORITY_ALIASES[key]
        try:
            return cls(key)
        except ValueError:
            allowed = ", ".join(p.value for p in cls)
            raise ConfigError(
                f"Unknown priority '{value}'. Expected one of: {allowed} (or P0-P3)"
            ) from None


_PRIORITY_RANK = {Priority.CRITICAL: 3, Priority.HIGH: 2, Priority.NORMAL: 1, Priority.LOW: 0}
_PRIORITY_ALIASES = {
    "p0": Priority.CRITICAL,
    "p1": Priority.HIGH,
    "p2": Priority.NORMAL,
    "p3": Priority.LOW,
}


class CheckStatus(Enum):
    PENDING = "pending"
    RUNNING = "running"
    PASSED = "passed"
    FAILED = "failed"
    ERRORED = "errored"


class Backoff(Enum):
    FIXED = "fixed"
    LINEAR = "linear"
    EXPONENTIAL = "exponential"


@dataclass(frozen=True)
class RetryPolicy:
    attempts: int = 1
    delay: float = 1.0
    backoff: Backoff = Backoff.LINEAR

    def __post_init__(self):
        if self.attempts < 1:
            raise ConfigError("retry attempts must be at least 1")
        if self.delay < 0:
            raise ConfigError("retry delay must not be negative")

    def delay_before(self, attempt: int) -> float:
        """Seconds to wait before retry number ``attempt`` (1-based)."""
        if self.backoff == Backoff.FIXED:
            return self.delay
        if self.backoff == Backoff.EXPONENTIAL:
            return self.delay * (2 ** (attempt - 1))
        return self.delay * attempt


@dataclass
class CheckOutcome:
    passed: bool
    message: str | None = None


@dataclass
class CheckResult:
    name: str
    type: str
    priority: Priority
    status: CheckStatus = CheckStatus.PENDING
    error: str | None = None
    duration_ms: int = 0
    attempts: int = 0

    @property
    def success(self) -> bool:
        return self.status == CheckStatus.PASSED

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": self.name,
            "type": self.type,
            "priority": self.priority.value,
            "status": self.status.value,
            "success": self.success,
            "duration_ms": self.duration_ms,
        }
        if self.error:
            data["error"] = self.error
        return data


@dataclass
class VerificationReport:
    timestamp: str
    success: bool
    has_critical_failures: bool
    summary: dict[str, int]
    checks: list[CheckResult] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def failed_checks(self) -> list[CheckResult]:
        return [c for c in self.checks if not c.success]

    def history_entry(self) -> dict[str, Any]:
        """Compact form retained in the installation state history."""
        return {
            "timestamp": self.timestamp,
            "success": self.success,
            "summary": dict(self.summary),
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.history_entry(),
            "has_critical_failures": self.has_critical_failures,
            "checks": [c.to_dict() for c in self.checks],
        }


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


__all__ = [
    "DEFAULT_CHECK_TIMEOUT",
    "HISTORY_LIMIT",
    "Priority",
    "CheckStatus",
    "Backoff",
    "RetryPolicy",
    "CheckOutcome",
    "CheckResult",
    "VerificationReport",
    "utc_now",
]
