"""Dependency installation across the system, npm and python categories."""

import asyncio
import logging
from collections.abc import Mapping, Sequence

from onboard.environment import EnvironmentProfile
from onboard.errors import PackageManagerUnavailableError
from onboard.execution import (
    INSTALL_TIMEOUT,
    QUERY_TIMEOUT,
    CommandOutcome,
    run_command,
)
from onboard.manifest.models import CATEGORIES

from .managers import PackageManager, select_manager
from .models import (
    CategoryLedger,
    FailedPackage,
    InstallSummary,
    PackageSpec,
    parse_package_spec,
)

_logging = logging.getLogger(__name__)


class InstallExecutor:
    """Performs the side effect of installing one package."""

    dry_run = False

    async def install(self, manager: PackageManager, spec: PackageSpec) -> CommandOutcome:
        raise NotImplementedError


class RealInstallExecutor(InstallExecutor):
    def __init__(self, timeout: float = INSTALL_TIMEOUT):
        self.timeout = timeout

    async def install(self, manager: PackageManager, spec: PackageSpec) -> CommandOutcome:
        command = manager.install_command(spec)
        _logging.debug(f"Installing {spec.target} with {manager.name}: {command}")
        return await run_command(command, timeout=self.timeout)


class DryRunInstallExecutor(InstallExecutor):
    """Reports every install as successful without running anything."""

    dry_run = True

    async def install(self, manager: PackageManager, spec: PackageSpec) -> CommandOutcome:
        command = manager.install_command(spec)
        _logging.debug(f"[dry-run] Would run: {command}")
        return CommandOutcome(f"[dry-run] {command}", 0)


class DependencyInstaller:
    """Installs declared packages and reports a per-category ledger.

    Categories run concurrently; packages within one category run one
    after another, since most package managers hold a global lock.
    Partial failures are recorded in the ledger and never raised.
    """

    def __init__(
        self,
        profile: EnvironmentProfile,
        executor: InstallExecutor | None = None,
        query_timeout: float = QUERY_TIMEOUT,
    ):
        self.profile = profile
        self.executor = executor or RealInstallExecutor()
        self.query_timeout = query_timeout

    @classmethod
    def for_run(cls, profile: EnvironmentProfile, dry_run: bool = False) -> "DependencyInstaller":
        executor = DryRunInstallExecutor() if dry_run else RealInstallExecutor()
        return cls(profile, executor)

    @property
    def dry_run(self) -> bool:
        return self.executor.dry_run

    async def install(
        self, dependencies: Mapping[str, Sequence[str]]
    ) -> dict[str, CategoryLedger]:
        unknown = set(dependencies) - set(CATEGORIES)
        if unknown:
            raise ValueError(f"Unknown dependency categories: {', '.join(sorted(unknown))}")

        ledgers = await asyncio.gather(
            *(
                self._install_category(category, list(dependencies.get(category) or ()))
                for category in CATEGORIES
            )
        )
        return dict(zip(CATEGORIES, ledgers))

    async def lookup(self, manager: PackageManager, package: str) -> tuple[bool, str | None]:
        """Read-only presence check, run in both real and dry-run modes."""
        outcome = await run_command(manager.check_command(package), timeout=self.query_timeout)
        if not outcome.ok:
            return False, None
        return manager.parse_presence(package, outcome.output)

    async def _install_category(self, category: str, packages: list[str]) -> CategoryLedger:
        ledger = CategoryLedger()
        if not packages:
            return ledger

        manager = select_manager(self.profile, category)
        if manager is None:
            reason = PackageManagerUnavailableError(category, self.profile.os_family).message
            _logging.warning(reason)
            ledger.failed = [FailedPackage(p, reason) for p in packages]
            return ledger

        ledger.manager = manager.name
        for raw in packages:
            await self._install_package(manager, category, raw, ledger)
        _logging.debug(
            f"{category}: {len(ledger.installed)} installed, "
            f"{len(ledger.skipped)} skipped, {len(ledger.failed)} failed"
        )
        return ledger

    async def _install_package(
        self, manager: PackageManager, category: str, raw: str, ledger: CategoryLedger
    ) -> None:
        try:
            spec = parse_package_spec(category, raw)
        except ValueError as e:
            ledger.failed.append(FailedPackage(raw, str(e)))
            return

        present, version = await self.lookup(manager, spec.name)
        if present and spec.is_satisfied_by(version):
            _logging.debug(f"{spec.name} already present ({version or 'unknown version'})")
            ledger.skipped.append(spec.name)
            return

        outcome = await self.executor.install(manager, spec)
        if outcome.ok:
            ledger.installed.append(spec.name)
        else:
            reason = outcome.output.splitlines()[-1] if outcome.output else ""
            ledger.failed.append(
                FailedPackage(spec.name, reason or f"exit code {outcome.returncode}")
            )


def _count(entry, key: str) -> int:
    if isinstance(entry, CategoryLedger):
        return len(getattr(entry, key))
    return len(entry.get(key) or [])


def calculate_summary(ledger: Mapping[str, "CategoryLedger | Mapping"]) -> InstallSummary:
    """Reduce a ledger to installed/skipped/failed counts across categories.

    Examples:
        >>> calculate_summary({
        ...     "system": {"installed": ["a"], "skipped": ["b"], "failed": []},
        ...     "npm": {"installed": ["c"], "skipped": [], "failed": []},
        ...     "python": {"installed": [], "skipped": [], "failed": [{"package": "d", "reason": "r"}]},
        ... }).to_dict()
        {'installed': 2, 'skipped': 1, 'failed': 1}
    """
    summary = InstallSummary()
    for entry in ledger.values():
        summary.installed += _count(entry, "installed")
        summary.skipped += _count(entry, "skipped")
        summary.failed += _count(entry, "failed")
    return summary


def ledger_to_records(ledger: Mapping[str, CategoryLedger]) -> list[dict]:
    """Flatten a ledger into the list stored as ``dependencies`` in the state."""
    return [{"category": category, **entry.to_dict()} for category, entry in ledger.items()]


def ledger_from_records(records: list[dict]) -> dict[str, CategoryLedger]:
    return {r["category"]: CategoryLedger.from_dict(r) for r in records if "category" in r}


__all__ = [
    "InstallExecutor",
    "RealInstallExecutor",
    "DryRunInstallExecutor",
    "DependencyInstaller",
    "calculate_summary",
    "ledger_to_records",
    "ledger_from_records",
]
