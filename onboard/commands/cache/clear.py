"""Cache clear command implementation."""

import click

from onboard.errors import OnboardError
from onboard.manifest import ManifestCache, parse_repository_reference

from ..utils import fail


@click.command(name="clear")
@click.argument("repo_ref", required=False)
def cache_clear(repo_ref: str | None):
    """Remove the cached manifest for REPO_REF, or every cached manifest.

    Clearing an entry that is not cached is not an error.
    """
    cache = ManifestCache()
    try:
        if repo_ref:
            ref = parse_repository_reference(repo_ref)
            removed = cache.clear(ref.owner, ref.repo)
        else:
            removed = cache.clear()
    except OnboardError as e:
        fail(e)

    noun = "entry" if removed == 1 else "entries"
    click.echo(f"Removed {removed} cached {noun}")
