"""Cache stats command implementation."""

import json

import click

from onboard.manifest import ManifestCache


@click.command(name="stats")
@click.option("--json", "as_json", is_flag=True, help="Print the statistics as JSON")
def cache_stats(as_json: bool):
    """Show how many manifests are cached and how old they are."""
    cache = ManifestCache()
    stats = cache.stats()

    if as_json:
        click.echo(json.dumps(stats.to_dict(), indent=2))
        return

    click.echo(f"Cache directory: {cache.cache_dir}")
    click.echo(f"Entries: {stats.files}")
    click.echo(f"Total size: {stats.total_size} bytes")
    if stats.oldest:
        click.echo(f"Oldest: {stats.oldest.isoformat(timespec='seconds')}")
        click.echo(f"Newest: {stats.newest.isoformat(timespec='seconds')}")
