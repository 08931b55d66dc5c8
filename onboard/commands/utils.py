"""Shared utility functions for commands."""

import asyncio
import signal
import sys
from collections.abc import Iterable

import click

from onboard.errors import OnboardError
from onboard.execution import CancelToken
from onboard.rollback import ItemStatus, RollbackReport
from onboard.verification import CheckStatus, VerificationReport

_STATUS_ICONS = {
    CheckStatus.PASSED: "✅",
    CheckStatus.FAILED: "❌",
    CheckStatus.ERRORED: "⚠️ ",
    CheckStatus.PENDING: "…",
    CheckStatus.RUNNING: "…",
}

_ITEM_ICONS = {
    ItemStatus.DONE: "✅",
    ItemStatus.SKIPPED: "⏭️ ",
    ItemStatus.FAILED: "❌",
    ItemStatus.PLANNED: "📝",
}


def split_csv(values: Iterable[str] | str | None) -> list[str]:
    """Split comma separated option values, accepting repeated options too.

    Examples:
        >>> split_csv(["a,b", "c"])
        ['a', 'b', 'c']
    """
    if values is None:
        return []
    if isinstance(values, str):
        values = [values]
    return [part.strip() for value in values for part in value.split(",") if part.strip()]


def fail(error: OnboardError) -> None:
    """Print a halting error with its hint and exit with status 1."""
    click.echo(error.render(), err=True)
    sys.exit(1)


def install_cancel_handler(token: CancelToken) -> None:
    """Make the first Ctrl-C request a graceful stop between units of work."""
    try:
        asyncio.get_running_loop().add_signal_handler(signal.SIGINT, token.cancel)
    except (NotImplementedError, RuntimeError, ValueError):
        # unavailable on Windows event loops and outside the main thread
        pass


def echo_verification(report: VerificationReport, verbose: bool = False) -> None:
    for check in report.checks:
        icon = _STATUS_ICONS[check.status]
        line = f"  {icon} {check.name}"
        if verbose:
            line += f" [{check.type}, {check.priority.value}, {check.duration_ms}ms]"
        click.echo(line)
        if check.error and (verbose or not check.success):
            click.echo(f"      {check.error}")
    for warning in report.warnings:
        click.secho(f"  ⚠️  {warning}", fg="yellow")

    summary = report.summary
    click.echo("")
    click.echo(
        f"Checks: {summary['total']} total, {summary['passed']} passed, {summary['failed']} failed"
    )
    if report.has_critical_failures:
        click.secho("Critical checks failed.", fg="red", bold=True)


def echo_rollback(report: RollbackReport) -> None:
    for phase in report.phases:
        click.echo(f"{phase.phase.value}:")
        if phase.nothing_to_do:
            click.echo("  nothing to do")
            continue
        for item in phase.items:
            icon = _ITEM_ICONS[item.status]
            click.echo(f"  {icon} {item.description}")
            if item.reason:
                click.echo(f"      {item.reason}")


def echo_completion(failures: int, noun: str = "Setup") -> None:
    if failures:
        click.secho(f"⚠️  {noun} completed with {failures} failures", fg="yellow", bold=True)
    else:
        click.secho(f"✅ {noun} completed successfully", fg="green")


__all__ = [
    "split_csv",
    "fail",
    "install_cancel_handler",
    "echo_verification",
    "echo_rollback",
    "echo_completion",
]
