"""Status command implementation for rollkeeper.

Reports whether the host has been initialised, whether the unstable
channel declaration and the global preferences are in place, how many
packages are rolling in each class, and whether any dependency edge
has outlived its parent.

Typical usage::

    $ rollkeeper status
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Optional

import click

from rollkeeper.context import RollKeeperContext, pass_context
from rollkeeper.core import PackageState
from rollkeeper.utils import get_logger, get_raw_console

logger = get_logger("commands.status")

_UPGRADE_LINE_RE = re.compile(r"^\[([^\]]+)\] INFO: .*rolling packages upgraded successfully")


@click.command()
@pass_context
def status(ctx: RollKeeperContext) -> None:
    """Show rollkeeper's configuration status."""
    console = get_raw_console()
    bootstrap = ctx.bootstrapper()

    console.print("[bold]rollkeeper Status:[/bold]")
    console.print("[bold]==================[/bold]")

    if not bootstrap.is_initialized():
        console.print("Status: [red]Not initialized[/red] (run 'rollkeeper init')")
        for path in bootstrap.missing_files():
            console.print(f"  missing: {path}", markup=False, highlight=False)
        return

    console.print("Status: [green]Initialized[/green]")
    console.print(_presence("Unstable sources", bootstrap.sources_file))
    console.print(_presence("APT preferences", bootstrap.global_preferences_file))

    mirror = bootstrap.configured_mirror()
    if mirror:
        console.print(f"Unstable mirror: {mirror}", markup=False, highlight=False)

    engine = ctx.engine()
    names = engine.registry.list()
    dependencies = sum(
        1 for name in names if engine.state_of(name) is PackageState.ROLLING_DEPENDENCY
    )
    console.print(
        f"Rolling packages: {len(names)} "
        f"({len(names) - dependencies} main, {dependencies} dependencies)"
    )

    orphaned = ctx.checker(probe=False).orphaned_edges()
    if orphaned:
        console.print(
            f"Orphaned dependency edges: [yellow]{len(orphaned)}[/yellow] "
            "(run 'rollkeeper check --repair')"
        )

    last = _last_upgrade(ctx.config.log_file)
    if last:
        console.print(f"Last upgrade: {last}", markup=False, highlight=False)


def _presence(label: str, path: Path) -> str:
    state = "[green]Configured[/green]" if path.is_file() else "[red]Missing[/red]"
    return f"{label}: {state}"


def _last_upgrade(log_file: Optional[Path]) -> Optional[str]:
    """Return the timestamp of the last successful bulk upgrade in the log."""
    if log_file is None:
        return None
    try:
        lines = log_file.read_text(encoding="utf-8", errors="replace").splitlines()
    except OSError:
        return None
    for line in reversed(lines):
        match = _UPGRADE_LINE_RE.match(line)
        if match:
            return match.group(1)
    return None
