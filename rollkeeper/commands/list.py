"""List command implementation for rollkeeper.

Shows every rolling package with its installed version, the version the
unstable channel currently offers, the kind of update that would bring
(``major``, ``minor``, ``patch``, ...), the priority of its pin and, for
dependencies, which rolling packages pulled it in.

Typical usage::

    $ rollkeeper list
    $ rollkeeper list --format json > rolling.json
"""

from __future__ import annotations

import sys
import json
from typing import Any, Dict, List

import click

from rollkeeper.context import RollKeeperContext, pass_context
from rollkeeper.exceptions import RollKeeperError
from rollkeeper.models import RollingPackage
from rollkeeper.utils import (
    colorize_update_type,
    format_priority,
    format_role,
    get_logger,
    get_raw_console,
    print_error,
    print_info,
    print_table,
)

logger = get_logger("commands.list")


@click.command("list")
@click.option(
    "--format",
    "-f",
    type=click.Choice(["table", "simple", "json"], case_sensitive=False),
    default="table",
    help="Output format.",
)
@pass_context
def list_packages(ctx: RollKeeperContext, format: str) -> None:
    """Show rolling packages and their available unstable versions."""
    try:
        packages = ctx.engine().packages()
    except RollKeeperError as e:
        print_error(f"{e}")
        sys.exit(1)

    if format == "json":
        _display_json(packages)
        return

    if not packages:
        print_info("No rolling packages configured")
        return

    if format == "table":
        _display_table(packages)
    else:
        _display_simple(packages)

    primary = sum(1 for p in packages if p.is_primary)
    print_info(
        f"Total: {len(packages)} packages "
        f"({primary} main, {len(packages) - primary} dependencies)"
    )


# ---------------------------------------------------------------------------
# Display renderers
# ---------------------------------------------------------------------------


def _display_table(packages: List[RollingPackage]) -> None:
    data = [_create_table_row(pkg) for pkg in packages]

    column_styles: Dict[str, Dict[str, Any]] = {
        "Package": {"style": "bold cyan", "no_wrap": True},
        "Installed": {"justify": "center", "style": "dim"},
        "Unstable": {"justify": "center", "style": "bold green"},
        "Update Type": {"justify": "center"},
        "Pin": {"justify": "right"},
        "Role": {"justify": "left", "no_wrap": False},
    }

    print_table(
        data,
        title="Rolling Packages",
        column_styles=column_styles,
    )


def _create_table_row(pkg: RollingPackage) -> Dict[str, str]:
    update_type = pkg.update_type
    return {
        "Package": pkg.name,
        "Installed": pkg.installed_version or "[red]not installed[/red]",
        "Unstable": pkg.candidate_version or "[dim]-[/dim]",
        "Update Type": (
            colorize_update_type(update_type) if pkg.has_update() else "[dim]-[/dim]"
        ),
        "Pin": format_priority(pkg.priority),
        "Role": format_role(pkg.is_primary, pkg.parents),
    }


def _display_simple(packages: List[RollingPackage]) -> None:
    console = get_raw_console()
    for pkg in packages:
        origin = "" if pkg.is_primary else f" ({pkg.describe_origin()})"
        version = pkg.installed_version or "Not installed"
        line = f"{pkg.name:<25} {version[:35]:<35}{origin}"
        console.print(line, markup=False, highlight=False)
        if pkg.has_update():
            console.print(
                f"{'':<25} └─ Available: {pkg.candidate_version}",
                markup=False,
                highlight=False,
            )


def _display_json(packages: List[RollingPackage]) -> None:
    payload = [pkg.to_json() for pkg in packages]
    click.echo(json.dumps(payload, indent=2))
