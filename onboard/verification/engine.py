"""Concurrent execution, filtering and aggregation of verification checks."""

import asyncio
import logging
import time
from collections.abc import Iterable

from onboard.errors import CheckTimeoutError, OperationCancelled
from onboard.execution import CancelToken

from .checks import Check
from .models import (
    CheckResult,
    CheckStatus,
    Priority,
    VerificationReport,
    utc_now,
)

DEFAULT_MAX_WORKERS = 4

_logging = logging.getLogger(__name__)


def filter_checks(
    checks: Iterable[Check],
    min_priority: Priority | None = None,
    tags: Iterable[str] | None = None,
    names: Iterable[str] | None = None,
) -> list[Check]:
    """Select the checks at or above ``min_priority`` that share a tag.

    Each filter is only applied when given; with none, every check is kept.
    """
    wanted_tags = set(tags or ())
    wanted_names = set(names or ())
    selected = []
    for check in checks:
        if min_priority is not None and not check.priority >= min_priority:
            continue
        if wanted_tags and not (check.tags & wanted_tags):
            continue
        if wanted_names and check.name not in wanted_names:
            continue
        selected.append(check)
    return selected


def aggregate(
    results: list[CheckResult], timestamp: str | None = None
) -> VerificationReport:
    passed = sum(1 for r in results if r.success)
    has_critical = any(
        not r.success and r.priority == Priority.CRITICAL for r in results
    )
    warnings = []
    if not results:
        warnings.append("No checks matched the requested filters")
    return VerificationReport(
        timestamp=timestamp or utc_now(),
        success=passed == len(results),
        has_critical_failures=has_critical,
        summary={
            "total": len(results),
            "passed": passed,
            "failed": len(results) - passed,
        },
        checks=results,
        warnings=warnings,
    )


class VerificationEngine:
    """Runs checks concurrently on a bounded pool of workers.

    Individual check failures, errors and timeouts are recorded in the
    report; ``run`` only raises when the cancel token is set.
    """

    def __init__(
        self,
        max_workers: int = DEFAULT_MAX_WORKERS,
        cancel_token: CancelToken | None = None,
    ):
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.max_workers = max_workers
        self.cancel_token = cancel_token or CancelToken()

    async def run(
        self,
        checks: Iterable[Check],
        min_priority: Priority | None = None,
        tags: Iterable[str] | None = None,
        names: Iterable[str] | None = None,
    ) -> VerificationReport:
        selected = filter_checks(checks, min_priority, tags, names)
        _logging.debug(f"Running {len(selected)} checks with {self.max_workers} workers")

        semaphore = asyncio.Semaphore(self.max_workers)
        results = [
            CheckResult(name=c.name, type=c.type_name, priority=c.priority)
            for c in selected
        ]
        await asyncio.gather(
            *(
                self._run_one(check, result, semaphore)
                for check, result in zip(selected, results)
            )
        )

        not_started = [r for r in results if r.status == CheckStatus.PENDING]
        if self.cancel_token.cancelled and not_started:
            raise OperationCancelled(
                f"Verification cancelled with {len(not_started)} of "
                f"{len(results)} checks not started"
            )
        return aggregate(results)

    async def _run_one(
        self, check: Check, result: CheckResult, semaphore: asyncio.Semaphore
    ) -> None:
        async with semaphore:
            if self.cancel_token.cancelled:
                return
            result.status = CheckStatus.RUNNING
            started = time.monotonic()
            try:
                await self._execute(check, result)
            finally:
                result.duration_ms = int((time.monotonic() - started) * 1000)
            _logging.debug(
                f"Check '{check.name}' {result.status.value} in {result.duration_ms}ms"
            )

    async def _execute(self, check: Check, result: CheckResult) -> None:
        problems = check.validate()
        if problems:
            result.status = CheckStatus.ERRORED
            result.error = "; ".join(problems)
            return

        attempts = check.retry.attempts
        for attempt in range(1, attempts + 1):
            result.attempts = attempt
            try:
                outcome = await asyncio.wait_for(check.run(), timeout=check.timeout)
            except (asyncio.TimeoutError, CheckTimeoutError):
                result.status = CheckStatus.ERRORED
                result.error = CheckTimeoutError(check.name, check.timeout).message
                return
            except Exception as e:
                _logging.debug(f"Check '{check.name}' raised: {type(e).__name__}: {e}")
                result.status = CheckStatus.ERRORED
                result.error = f"{type(e).__name__}: {e}"
                return

            if outcome.passed:
                result.status = CheckStatus.PASSED
                result.error = None
                return

            result.status = CheckStatus.FAILED
            result.error = outcome.message or "Check failed"
            if attempt < attempts and not self.cancel_token.cancelled:
                delay = check.retry.delay_before(attempt)
                _logging.debug(
                    f"Check '{check.name}' failed (attempt {attempt}/{attempts}), retrying in {delay}s"
                )
                await asyncio.sleep(delay)
            else:
                return


__all__ = [
    "DEFAULT_MAX_WORKERS",
    "filter_checks",
    "aggregate",
    "VerificationEngine",
]
