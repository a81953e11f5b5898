"""Search command implementation for rollkeeper.

Searches the package database twice: once across every configured
source (stable), and once restricted to packages whose candidate comes
from unstable.

Typical usage::

    $ rollkeeper search golang
"""

from __future__ import annotations

import sys
from typing import List, Tuple

import click

from rollkeeper.constants import UNSTABLE_CHANNEL
from rollkeeper.context import RollKeeperContext, pass_context
from rollkeeper.exceptions import RollKeeperError
from rollkeeper.utils import get_logger, get_raw_console, print_error, print_info

logger = get_logger("commands.search")

#: Maximum number of results shown per channel.
MAX_RESULTS = 10


@click.command()
@click.argument("query")
@click.option(
    "--limit",
    "-n",
    type=click.IntRange(min=1),
    default=MAX_RESULTS,
    show_default=True,
    help="Maximum results per channel.",
)
@pass_context
def search(ctx: RollKeeperContext, query: str, limit: int) -> None:
    """Search stable and unstable for QUERY."""
    if not query.strip():
        raise click.BadParameter("Search query required", param_hint="QUERY")

    backend = ctx.get_backend()
    print_info(f"Searching for '{query}'...")
    try:
        stable = backend.search(query)
        unstable = backend.search(query, UNSTABLE_CHANNEL)
    except RollKeeperError as e:
        print_error(f"{e}")
        sys.exit(1)

    _display_section("Stable", stable[:limit])
    _display_section("Unstable", unstable[:limit])


def _display_section(title: str, results: List[Tuple[str, str]]) -> None:
    console = get_raw_console()
    console.print(f"\n[bold]{title}:[/bold]")
    if not results:
        console.print("  [dim]no matches[/dim]")
        return
    for name, description in results:
        line = f"  {name} - {description}" if description else f"  {name}"
        console.print(line, markup=False, highlight=False)
