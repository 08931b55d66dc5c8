"""Verify command implementation."""

import asyncio
import logging
import sys

import click

from onboard import setup_logging
from onboard.config import VerifyOptions
from onboard.errors import OnboardError, format_suggestion
from onboard.execution import CancelToken
from onboard.manifest import parse_manifest_dict
from onboard.state import InstallationStateStore
from onboard.troubleshooter import (
    TroubleshootContext,
    TroubleshootRequest,
    Troubleshooter,
    get_troubleshooter,
)
from onboard.verification import Priority, VerificationEngine, VerificationReport

from .utils import echo_completion, echo_verification, fail, install_cancel_handler, split_csv

_logging = logging.getLogger(__name__)


@click.command()
@click.option("--priority", "-p", default=None,
              help="Only run checks at or above this priority (critical, high, normal, low or P0-P3)")
@click.option("--tags", "-t", multiple=True, help="Only run checks with one of these tags (comma separated)")
@click.option("--name", "-n", "names", multiple=True, help="Only run the named checks")
@click.option("--verbose", "-v", is_flag=True, help="Show details for every check")
@click.option("--workers", "-w", default=4, show_default=True, help="Checks to run concurrently")
@click.option("--troubleshoot", is_flag=True, help="Ask the troubleshooting helper about failed checks")
@click.pass_context
def verify(ctx, priority: str | None, tags: tuple[str, ...], names: tuple[str, ...],
           verbose: bool, workers: int, troubleshoot: bool):
    """Re-run the manifest's verification checks against this machine."""
    debug = ctx.obj.get("debug", False)
    try:
        options = VerifyOptions(
            min_priority=Priority.parse(priority) if priority else None,
            tags=frozenset(split_csv(tags)),
            names=frozenset(split_csv(names)),
            verbose=verbose,
            max_workers=workers,
            troubleshoot=troubleshoot,
        )
        exit_code = asyncio.run(run_verify(options, debug))
    except OnboardError as e:
        fail(e)
    sys.exit(exit_code)


async def run_verify(options: VerifyOptions, debug: bool,
                     troubleshooter: Troubleshooter | None = None) -> int:
    setup_logging(debug)
    token = CancelToken()
    install_cancel_handler(token)

    with InstallationStateStore() as store:
        state = store.load()
        if state is None or not state.manifest:
            click.echo(
                format_suggestion("No installation state found", "run 'onboard init <repo>' first"),
                err=True,
            )
            return 1

        manifest = parse_manifest_dict(state.manifest)
        engine = VerificationEngine(max_workers=options.max_workers, cancel_token=token)
        report = await engine.run(
            manifest.checks,
            min_priority=options.min_priority,
            tags=options.tags,
            names=options.names,
        )
        state.append_verification(report.history_entry())
        store.save(state)

    click.echo(f"Verifying {manifest.name}...")
    echo_verification(report, verbose=options.verbose)

    if options.troubleshoot and report.failed_checks:
        await _troubleshoot(report, state.environment, troubleshooter or get_troubleshooter())

    click.echo("")
    echo_completion(report.summary["failed"], noun="Verification")
    if not report.success or report.has_critical_failures:
        return 1
    return 0


async def _troubleshoot(report: VerificationReport, environment: dict,
                        troubleshooter: Troubleshooter) -> None:
    click.echo("")
    click.echo("Troubleshooting:")
    tool_versions = environment.get("tool_versions") or {}
    for check in report.failed_checks:
        resolution = await troubleshooter.diagnose(
            TroubleshootRequest(type=check.type, message=check.error or "failed"),
            TroubleshootContext(
                os=environment.get("os", "unknown"),
                tool_version=tool_versions.get("node") or tool_versions.get("python"),
                failed_step=check.name,
            ),
        )
        click.echo(f"  {check.name}")
        click.echo(f"    Cause: {resolution.cause}")
        click.echo(f"    Fix:   {resolution.fix}")
        if resolution.command:
            click.echo(f"    Try:   {resolution.command}")
