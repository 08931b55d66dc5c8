"""External troubleshooting collaborator for failed checks.

The collaborator is optional. When it is absent, errors, or answers
with something unusable, callers receive ``MANUAL_RESOLUTION``.
"""

import json
import logging
import os
import shlex
from dataclasses import asdict, dataclass
from typing import Protocol

from onboard.execution import run_command

TROUBLESHOOTER_ENV = "ONBOARD_TROUBLESHOOTER"
TROUBLESHOOT_TIMEOUT = 60

_logging = logging.getLogger(__name__)


@dataclass(frozen=True)
class TroubleshootRequest:
    type: str
    message: str


@dataclass(frozen=True)
class TroubleshootContext:
    os: str
    tool_version: str | None = None
    failed_step: str | None = None


@dataclass(frozen=True)
class Resolution:
    cause: str
    fix: str
    command: str | None = None
    available: bool = True


MANUAL_RESOLUTION = Resolution(
    cause="Manual diagnosis required",
    fix="Check error logs and documentation",
    available=False,
)


class Troubleshooter(Protocol):
    async def diagnose(
        self, request: TroubleshootRequest, context: TroubleshootContext
    ) -> Resolution: ...


class NullTroubleshooter:
    """Used when no collaborator is configured."""

    async def diagnose(
        self, request: TroubleshootRequest, context: TroubleshootContext
    ) -> Resolution:
        return MANUAL_RESOLUTION


class CommandTroubleshooter:
    """Runs a helper program that answers with a JSON resolution.

    The helper receives ``{"request": {...}, "context": {...}}`` as its
    single argument and must print ``{"cause", "fix", "command"?}``.
    """

    def __init__(self, command: str, timeout: float = TROUBLESHOOT_TIMEOUT):
        self.command = command
        self.timeout = timeout

    async def diagnose(
        self, request: TroubleshootRequest, context: TroubleshootContext
    ) -> Resolution:
        payload = json.dumps({"request": asdict(request), "context": asdict(context)})
        outcome = await run_command(
            f"{self.command} {shlex.quote(payload)}", timeout=self.timeout
        )
        if not outcome.ok:
            _logging.debug(f"Troubleshooter failed ({outcome.returncode}): {outcome.output}")
            return MANUAL_RESOLUTION
        return parse_resolution(outcome.output)


def parse_resolution(output: str) -> Resolution:
    """Build a resolution from helper output, or fall back to manual resolution."""
    try:
        data = json.loads(output)
    except json.JSONDecodeError:
        _logging.debug(f"Troubleshooter returned non-JSON output: {output[:200]!r}")
        return MANUAL_RESOLUTION
    if not isinstance(data, dict):
        return MANUAL_RESOLUTION
    cause, fix, command = data.get("cause"), data.get("fix"), data.get("command")
    if not isinstance(cause, str) or not isinstance(fix, str) or not cause or not fix:
        return MANUAL_RESOLUTION
    return Resolution(cause=cause, fix=fix, command=command if isinstance(command, str) else None)


def get_troubleshooter() -> Troubleshooter:
    command = os.environ.get(TROUBLESHOOTER_ENV, "").strip()
    if command:
        return CommandTroubleshooter(command)
    return NullTroubleshooter()


__all__ = [
    "TroubleshootRequest",
    "TroubleshootContext",
    "Resolution",
    "MANUAL_RESOLUTION",
    "Troubleshooter",
    "NullTroubleshooter",
    "CommandTroubleshooter",
    "parse_resolution",
    "get_troubleshooter",
]
