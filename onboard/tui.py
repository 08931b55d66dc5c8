"""Interactive confirmation prompts.

The prompts are coroutines and must be awaited from the running event
loop; questionary's blocking ``ask()`` is never used.
"""

import sys

import click
import questionary
from prompt_toolkit.styles import Style

_STYLE = Style(
    [
        ("qmark", "fg:ansiyellow bold"),
        ("question", "bold"),
    ]
)


async def confirm(message: str, default: bool = False) -> bool:
    """Ask a yes/no question.

    Uses questionary on a TTY and falls back to ``click.confirm``
    otherwise. Ctrl-C in the questionary prompt counts as "no".
    """
    if not sys.stdin.isatty():
        return click.confirm(message, default=default)

    answer = await questionary.confirm(message, default=default, style=_STYLE).ask_async()
    return bool(answer)


async def confirm_dangerous(description: str, command: str) -> bool:
    click.echo("")
    click.secho(f"  🔴 DANGEROUS: {description}", fg="red", bold=True)
    click.secho(f"     Command: {command}", fg="red")
    click.secho("     This executes a remote script. Review it carefully.", fg="yellow")
    return await confirm("Execute this command?", default=False)


__all__ = ["confirm", "confirm_dangerous"]
