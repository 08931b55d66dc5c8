"""Rollback command implementation."""

import asyncio
import sys

import click

from onboard import setup_logging
from onboard.config import RollbackOptions
from onboard.errors import OnboardError
from onboard.rollback import RollbackEngine, RollbackPhase
from onboard.state import InstallationStateStore
from onboard.tui import confirm

from .utils import echo_completion, echo_rollback, fail, split_csv


@click.command()
@click.option(
    "--partial",
    default=None,
    help="Only roll back these phases (comma separated: dependencies, config, ssh, git, docs)",
)
@click.option("--unsafe", is_flag=True, help="Allow uninstalling dependencies")
@click.option("--force", is_flag=True, help="Undo items even if they changed since installation or are still depended on")
@click.option("--dry-run", is_flag=True, help="Show what would be undone without changing anything")
@click.option("--yes", "-y", "assume_yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def rollback(ctx, partial: str | None, unsafe: bool, force: bool, dry_run: bool, assume_yes: bool):
    """Undo what 'onboard init' changed, phase by phase.

    Dependencies are left alone unless --unsafe is given.
    """
    debug = ctx.obj.get("debug", False)
    try:
        phases = tuple(RollbackPhase.parse(p) for p in split_csv(partial))
        options = RollbackOptions(phases=phases, unsafe=unsafe, force=force, dry_run=dry_run)
        exit_code = asyncio.run(run_rollback(options, debug, assume_yes))
    except OnboardError as e:
        fail(e)
    sys.exit(exit_code)


async def run_rollback(options: RollbackOptions, debug: bool, assume_yes: bool = False) -> int:
    setup_logging(debug)

    with InstallationStateStore() as store:
        engine = RollbackEngine(store)
        engine.check_safety(options)
        engine.load_state()

        selected = ", ".join(p.value for p in options.selected_phases())
        if options.unsafe and not options.dry_run and not assume_yes:
            click.secho(f"⚠️  This will uninstall packages and revert: {selected}", fg="yellow")
            if not await confirm("Continue with the unsafe rollback?", default=False):
                click.echo("Aborted.")
                return 1

        if options.dry_run:
            click.secho("[DRY-RUN] Nothing will be changed.", fg="cyan")
        report = await engine.rollback(options)

    echo_rollback(report)
    click.echo("")
    echo_completion(len(report.failures), noun="Rollback")
    if report.skipped and not options.force:
        click.echo(f"{len(report.skipped)} item(s) skipped by pre-checks; rerun with --force to undo them anyway.")
    return 0 if report.success else 1
