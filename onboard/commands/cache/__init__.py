"""Manifest cache commands."""

import click

from onboard.commands.cache.clear import cache_clear
from onboard.commands.cache.stats import cache_stats


@click.group()
def cache():
    """Manifest cache commands."""
    pass


cache.add_command(cache_stats, name="stats")
cache.add_command(cache_clear, name="clear")
