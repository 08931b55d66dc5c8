"""Verification engine: typed checks executed against the live system."""

from .checks import (
    CHECK_TYPES,
    Check,
    CommandCheck,
    FileCheck,
    HttpCheck,
    PortCheck,
    build_check,
    build_checks,
)
from .engine import VerificationEngine, aggregate, filter_checks
from .models import (
    HISTORY_LIMIT,
    CheckResult,
    CheckStatus,
    Priority,
    RetryPolicy,
    VerificationReport,
)

__all__ = [
    "CHECK_TYPES",
    "Check",
    "CommandCheck",
    "FileCheck",
    "HttpCheck",
    "PortCheck",
    "build_check",
    "build_checks",
    "VerificationEngine",
    "aggregate",
    "filter_checks",
    "HISTORY_LIMIT",
    "CheckResult",
    "CheckStatus",
    "Priority",
    "RetryPolicy",
    "VerificationReport",
]
