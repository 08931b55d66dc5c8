"""Execution of manifest setup steps."""

import logging
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum

from onboard.execution import INSTALL_TIMEOUT, run_command
from onboard.manifest.models import SetupStep

_logging = logging.getLogger(__name__)

_REMOTE_SCRIPT_PIPE = re.compile(r"\|.*\b(sh|bash|zsh)\b", re.IGNORECASE)


class RiskLevel(Enum):
    SAFE = "safe"
    DANGEROUS = "dangerous"


def infer_risk_level(command: str) -> RiskLevel:
    """Commands piping output into a shell run unreviewed remote code."""
    if _REMOTE_SCRIPT_PIPE.search(command):
        return RiskLevel.DANGEROUS
    return RiskLevel.SAFE


@dataclass
class StepOutcome:
    id: int
    name: str
    status: str
    output: str = ""

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "status": self.status, "output": self.output}


class SetupStepRunner:
    """Runs setup steps in order and stops at the first failure.

    Dangerous steps are confirmed through ``confirm`` unless
    ``assume_yes`` is set; a declined step is recorded as skipped.
    """

    def __init__(
        self,
        confirm: Callable[[SetupStep], Awaitable[bool]] | None = None,
        assume_yes: bool = False,
        dry_run: bool = False,
        timeout: float = INSTALL_TIMEOUT,
        cwd: str | None = None,
    ):
        self.confirm = confirm
        self.assume_yes = assume_yes
        self.dry_run = dry_run
        self.timeout = timeout
        self.cwd = cwd

    async def run(self, steps: tuple[SetupStep, ...] | list[SetupStep]) -> list[StepOutcome]:
        outcomes = []
        for step in steps:
            outcome = await self._run_step(step)
            outcomes.append(outcome)
            if outcome.status == "failed":
                _logging.debug(f"Setup step {step.id} '{step.name}' failed, stopping")
                break
        return outcomes

    async def _run_step(self, step: SetupStep) -> StepOutcome:
        risk = infer_risk_level(step.command)
        if risk == RiskLevel.DANGEROUS and not self.assume_yes:
            if self.confirm is None or not await self.confirm(step):
                return StepOutcome(step.id, step.name, "skipped", "User declined")

        if self.dry_run:
            return StepOutcome(step.id, step.name, "planned", step.command)

        _logging.debug(f"Running setup step {step.id}: {step.command}")
        result = await run_command(step.command, timeout=self.timeout, cwd=self.cwd)
        status = "completed" if result.ok else "failed"
        return StepOutcome(step.id, step.name, status, result.output)


__all__ = [
    "RiskLevel",
    "infer_risk_level",
    "StepOutcome",
    "SetupStepRunner",
]
