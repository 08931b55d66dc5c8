"""Phase orchestration: resolve, detect, install, configure, setup, verify.

Phases run one at a time. After each phase a single ``StepRecord`` is
appended and the whole state is saved atomically. A phase failure stops
forward progress and points the user at ``onboard rollback``; the
orchestrator never rolls anything back itself.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from onboard.config import InitOptions
from onboard.configgen import ConfigGenerator
from onboard.environment import EnvironmentProfile, detect_environment
from onboard.errors import OnboardError, OperationCancelled, PhaseFailedError
from onboard.execution import CancelToken
from onboard.installer import (
    DependencyInstaller,
    InstallSummary,
    calculate_summary,
    ledger_to_records,
)
from onboard.manifest import Manifest, ManifestResolver, SetupStep
from onboard.state import (
    InstallationState,
    InstallationStateStore,
    StepRecord,
    StepStatus,
)
from onboard.steps import SetupStepRunner
from onboard.verification import VerificationEngine, VerificationReport

PHASES = ("resolve", "detect", "install", "configure", "setup", "verify", "docs")

DocsWriter = Callable[[Manifest, InstallationState], Awaitable[dict[str, Any]]]

_logging = logging.getLogger(__name__)


@dataclass
class PhaseOutcome:
    status: str
    result: dict[str, Any] = field(default_factory=dict)
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.status == StepStatus.FAILED


@dataclass
class RunResult:
    state: InstallationState
    install_summary: InstallSummary | None = None
    verification: VerificationReport | None = None

    @property
    def failures(self) -> int:
        count = self.install_summary.failed if self.install_summary else 0
        if self.verification:
            count += self.verification.summary["failed"]
        return count


class PhaseOrchestrator:
    def __init__(
        self,
        store: InstallationStateStore,
        resolver: ManifestResolver,
        options: InitOptions,
        *,
        project_root: Path | None = None,
        detect: Callable[[], EnvironmentProfile] | None = None,
        installer_factory: Callable[[EnvironmentProfile, bool], DependencyInstaller] = DependencyInstaller.for_run,
        verification_engine: VerificationEngine | None = None,
        docs_writer: DocsWriter | None = None,
        confirm: Callable[[SetupStep], Awaitable[bool]] | None = None,
        cancel_token: CancelToken | None = None,
        progress: Callable[[str], None] | None = None,
    ):
        self.store = store
        self.resolver = resolver
        self.options = options
        self.project_root = project_root if project_root is not None else Path.cwd()
        self.detect = detect
        self.installer_factory = installer_factory
        self.cancel_token = cancel_token or CancelToken()
        self.verification_engine = verification_engine or VerificationEngine(
            cancel_token=self.cancel_token
        )
        self.docs_writer = docs_writer
        self.confirm = confirm
        self.progress = progress or (lambda phase: None)

        self._manifest: Manifest | None = None
        self._profile: EnvironmentProfile | None = None
        self._generator: ConfigGenerator | None = None
        self._result: RunResult | None = None

    @property
    def persist(self) -> bool:
        return not self.options.dry_run

    async def run(self, reference: str) -> RunResult:
        state = InstallationState()
        self._result = RunResult(state=state)

        await self._run_phase(state, "resolve", lambda: self._resolve(state, reference))
        await self._run_phase(state, "detect", lambda: self._detect(state))
        await self._run_phase(state, "install", lambda: self._install(state))
        await self._run_phase(state, "configure", self._configure)
        await self._run_phase(state, "setup", self._setup)
        await self._run_phase(state, "verify", lambda: self._verify(state))
        if self.docs_writer is not None:
            await self._run_phase(state, "docs", lambda: self._docs(state))

        state.installed = True
        self._save(state)
        return self._result

    def _save(self, state: InstallationState) -> None:
        if self.persist:
            self.store.save(state)

    async def _run_phase(
        self,
        state: InstallationState,
        name: str,
        action: Callable[[], Awaitable[PhaseOutcome]],
    ) -> None:
        if self.cancel_token.cancelled:
            raise OperationCancelled(
                f"Cancelled before phase '{name}'",
                hint="run 'onboard rollback' to undo the completed phases",
            )
        self.progress(name)
        _logging.debug(f"Starting phase '{name}'")
        try:
            outcome = await action()
        except OnboardError as e:
            outcome = PhaseOutcome(
                StepStatus.FAILED, {"error": e.message, **self._partial_result(name)}, e.message
            )
            state.record_step(StepRecord(name, outcome.status, outcome.result))
            self._save(state)
            if name == "resolve" or isinstance(e, OperationCancelled):
                raise
            raise PhaseFailedError(name, e.message) from e
        except (OSError, ValueError) as e:
            message = f"{type(e).__name__}: {e}"
            _logging.debug(f"Phase '{name}' raised {message}")
            outcome = PhaseOutcome(
                StepStatus.FAILED, {"error": message, **self._partial_result(name)}, message
            )
            state.record_step(StepRecord(name, outcome.status, outcome.result))
            self._save(state)
            raise PhaseFailedError(name, message) from e

        state.record_step(StepRecord(name, outcome.status, outcome.result))
        self._save(state)
        if outcome.failed and outcome.error:
            raise PhaseFailedError(name, outcome.error)

    def _partial_result(self, name: str) -> dict[str, Any]:
        if name == "configure" and self._generator is not None:
            return dict(self._generator.result)
        return {}

    async def _resolve(self, state: InstallationState, reference: str) -> PhaseOutcome:
        resolved = await self.resolver.resolve(
            reference, no_cache=self.options.no_cache, branch=self.options.branch
        )
        self._manifest = resolved.manifest
        state.repository = str(resolved.ref)
        state.manifest = resolved.manifest.raw
        return PhaseOutcome(
            StepStatus.COMPLETED,
            {
                "repository": str(resolved.ref),
                "manifest": resolved.manifest.name,
                "source": resolved.source,
                "filename": resolved.filename,
            },
        )

    async def _detect(self, state: InstallationState) -> PhaseOutcome:
        self._profile = await asyncio.to_thread(self.detect or detect_environment)
        state.environment = self._profile.to_dict()
        return PhaseOutcome(StepStatus.COMPLETED, self._profile.to_dict())

    async def _install(self, state: InstallationState) -> PhaseOutcome:
        if self.options.skip_install or not self._manifest.has_dependencies:
            return PhaseOutcome(StepStatus.SKIPPED)
        installer = self.installer_factory(self._profile, self.options.dry_run)
        ledger = await installer.install(self._manifest.dependencies)
        summary = calculate_summary(ledger)
        self._result.install_summary = summary
        state.dependencies = ledger_to_records(ledger)
        return PhaseOutcome(
            StepStatus.COMPLETED,
            {"summary": summary.to_dict(), "dry_run": installer.dry_run},
        )

    async def _configure(self) -> PhaseOutcome:
        self._generator = ConfigGenerator(self.project_root, dry_run=self.options.dry_run)
        result = await self._generator.generate(self._manifest)
        return PhaseOutcome(StepStatus.COMPLETED, result)

    async def _setup(self) -> PhaseOutcome:
        steps = self._manifest.setup_steps
        if self.options.skip_setup or not steps:
            return PhaseOutcome(StepStatus.SKIPPED)
        runner = SetupStepRunner(
            confirm=self.confirm,
            assume_yes=self.options.assume_yes,
            dry_run=self.options.dry_run,
            cwd=str(self.project_root),
        )
        outcomes = await runner.run(steps)
        result = {"steps": [o.to_dict() for o in outcomes]}
        failed = next((o for o in outcomes if o.status == "failed"), None)
        if failed:
            return PhaseOutcome(
                StepStatus.FAILED, result, f"setup step '{failed.name}' failed"
            )
        return PhaseOutcome(StepStatus.COMPLETED, result)

    async def _verify(self, state: InstallationState) -> PhaseOutcome:
        if not self._manifest.checks:
            return PhaseOutcome(StepStatus.SKIPPED)
        if self.options.dry_run:
            return PhaseOutcome(
                StepStatus.SKIPPED, {"planned": [c.name for c in self._manifest.checks]}
            )
        report = await self.verification_engine.run(self._manifest.checks)
        self._result.verification = report
        state.append_verification(report.history_entry())
        status = StepStatus.COMPLETED if report.success else StepStatus.FAILED
        return PhaseOutcome(status, report.to_dict())

    async def _docs(self, state: InstallationState) -> PhaseOutcome:
        if not self._manifest.documentation.enabled:
            return PhaseOutcome(StepStatus.SKIPPED)
        result = await self.docs_writer(self._manifest, state)
        return PhaseOutcome(StepStatus.COMPLETED, result)


__all__ = ["PHASES", "PhaseOutcome", "RunResult", "PhaseOrchestrator"]
