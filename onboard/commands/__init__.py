"""CLI command definitions for onboard."""

import click

from onboard.commands.cache import cache
from onboard.commands.init import init
from onboard.commands.rollback import rollback
from onboard.commands.verify import verify


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug output for troubleshooting")
@click.pass_context
def cli(ctx, debug):
    """Set up a developer machine from a repository's onboarding manifest."""
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


cli.add_command(init)
cli.add_command(verify)
cli.add_command(rollback)
cli.add_command(cache)

__all__ = ["cli"]


if __name__ == "__main__":
    cli()
