"""Init command implementation."""

import asyncio
import logging
import sys

import click

from onboard import setup_logging
from onboard.config import InitOptions
from onboard.errors import OnboardError
from onboard.execution import CancelToken
from onboard.manifest import ManifestCache, ManifestResolver, SetupStep
from onboard.orchestrator import PhaseOrchestrator, RunResult
from onboard.rollback import fully_reversed
from onboard.state import InstallationStateStore
from onboard.tui import confirm, confirm_dangerous

from .utils import echo_completion, echo_verification, fail, install_cancel_handler

_logging = logging.getLogger(__name__)

_PHASE_LABELS = {
    "resolve": "Resolving manifest",
    "detect": "Detecting environment",
    "install": "Installing dependencies",
    "configure": "Generating configuration",
    "setup": "Running setup steps",
    "verify": "Verifying setup",
    "docs": "Writing documentation",
}


@click.command()
@click.argument("repo_ref")
@click.option("--no-cache", is_flag=True, help="Fetch the manifest even if a fresh cached copy exists")
@click.option("--dry-run", is_flag=True, help="Show what would be done without changing anything")
@click.option("--skip-install", is_flag=True, help="Do not install dependencies")
@click.option("--skip-setup", is_flag=True, help="Do not run manifest setup steps")
@click.option("--yes", "-y", "assume_yes", is_flag=True, help="Do not ask for confirmation")
@click.option("--branch", "-b", default=None, help="Branch to read the manifest from")
@click.pass_context
def init(ctx, repo_ref: str, no_cache: bool, dry_run: bool, skip_install: bool,
         skip_setup: bool, assume_yes: bool, branch: str | None):
    """Set up this machine for REPO_REF from its onboarding manifest."""
    debug = ctx.obj.get("debug", False)
    try:
        options = InitOptions(
            no_cache=no_cache,
            dry_run=dry_run,
            skip_install=skip_install,
            skip_setup=skip_setup,
            assume_yes=assume_yes,
            branch=branch,
        )
        exit_code = asyncio.run(run_init(repo_ref, options, debug))
    except OnboardError as e:
        fail(e)
    sys.exit(exit_code)


async def _confirm_step(step: SetupStep) -> bool:
    return await confirm_dangerous(f"setup step '{step.name}' pipes a remote script into a shell", step.command)


def _echo_phase(phase: str) -> None:
    click.echo(f"→ {_PHASE_LABELS.get(phase, phase)}...")


async def run_init(repo_ref: str, options: InitOptions, debug: bool) -> int:
    setup_logging(debug)
    token = CancelToken()
    install_cancel_handler(token)

    store = InstallationStateStore()
    if not options.dry_run:
        previous = store.load()
        if previous and previous.installed and not fully_reversed(previous) and not options.assume_yes:
            click.echo(f"An earlier installation of {previous.repository} is recorded in {store.path}.")
            if not await confirm("Replace its record? (roll it back first to undo it)", default=False):
                click.echo("Aborted.")
                return 1

    if options.dry_run:
        click.secho("[DRY-RUN] No changes will be made.", fg="cyan")

    with store:
        orchestrator = PhaseOrchestrator(
            store,
            ManifestResolver(ManifestCache()),
            options,
            confirm=_confirm_step,
            cancel_token=token,
            progress=_echo_phase,
        )
        result = await orchestrator.run(repo_ref)

    return _report(result, options)


def _report(result: RunResult, options: InitOptions) -> int:
    click.echo("")
    if result.install_summary:
        s = result.install_summary
        click.echo(f"Dependencies: {s.installed} installed, {s.skipped} skipped, {s.failed} failed")
        for record in result.state.dependencies:
            for failed in record.get("failed", []):
                click.echo(f"  ❌ {record['category']}: {failed['package']} ({failed['reason']})")

    configure = result.state.step("configure")
    if configure:
        files = configure.result.get("config", {}).get("files", [])
        for entry in files:
            click.echo(f"  📝 {entry['path']}")
        for planned in configure.result.get("planned", []):
            click.echo(f"  [DRY-RUN] would {planned}")

    if result.verification:
        click.echo("")
        echo_verification(result.verification)

    click.echo("")
    echo_completion(result.failures)
    if options.dry_run:
        return 0
    if result.failures:
        click.echo("Run 'onboard verify' after fixing the failures, or 'onboard rollback' to undo.")
        return 1
    return 0
