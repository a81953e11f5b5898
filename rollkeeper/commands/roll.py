"""Roll and unroll command implementations for rollkeeper.

``roll`` converts a package already installed from stable into a rolling
one and upgrades it from unstable; ``unroll`` stops tracking it. Unrolling
never removes or downgrades anything: the package stays installed at its
current version and simply follows stable again from then on.

Typical usage::

    $ sudo rollkeeper roll firefox-esr
    $ sudo rollkeeper unroll --dry-run firefox-esr
"""

from __future__ import annotations

import sys

import click

from rollkeeper.commands import package_name_callback, session
from rollkeeper.context import RollKeeperContext, pass_context
from rollkeeper.core import PackageState, RollingEngine
from rollkeeper.exceptions import RollKeeperError
from rollkeeper.utils import (
    confirm,
    get_logger,
    print_error,
    print_info,
    print_success,
    print_warning,
)

logger = get_logger("commands.roll")


@click.command()
@click.argument("package", callback=package_name_callback)
@click.option("--yes", "-y", is_flag=True, help="Answer yes to package manager prompts.")
@click.option("--force", is_flag=True, help="Do not ask for confirmation.")
@click.option("--dry-run", is_flag=True, help="Show what would happen without changing anything.")
@pass_context
def roll(
    ctx: RollKeeperContext,
    package: str,
    yes: bool,
    force: bool,
    dry_run: bool,
) -> None:
    """Convert the installed PACKAGE to rolling and upgrade it from unstable."""
    try:
        with session(ctx, dry_run=dry_run):
            _roll(ctx, package, yes, force, dry_run)
    except RollKeeperError as e:
        print_error(f"{e}")
        sys.exit(1)


def _roll(ctx: RollKeeperContext, package: str, yes: bool, force: bool, dry_run: bool) -> None:
    engine = ctx.engine(non_interactive=yes)
    installed, candidate = engine.plan_roll(package)

    print_info(f"Current version: {installed}")
    print_info(f"Unstable version: {candidate or 'not available'}")

    if dry_run:
        print_info(f"[DRY RUN] Would convert {package} to rolling and upgrade from unstable")
        return

    if not force and not confirm(f"Convert {package} to rolling status and upgrade to unstable?"):
        print_info("Operation cancelled")
        return

    print_info(f"Converting {package} to rolling status...")
    result = engine.roll(package)
    for dep in result.dependencies:
        print_info(f"Pinned dependency {dep} for {package}")
    print_success(f"Converted {package} to rolling status")


@click.command()
@click.argument("package", callback=package_name_callback)
@click.option("--dry-run", is_flag=True, help="Show what would be removed without changing anything.")
@pass_context
def unroll(ctx: RollKeeperContext, package: str, dry_run: bool) -> None:
    """Stop tracking PACKAGE against unstable (it stays installed)."""
    try:
        with session(ctx, dry_run=dry_run):
            engine = ctx.engine()
            result = engine.unroll(package, dry_run=dry_run)
    except RollKeeperError as e:
        print_error(f"{e}")
        sys.exit(1)

    if result.dry_run:
        print_info(f"[DRY RUN] Would remove {package} from rolling status")
        for dep in result.removed_dependencies:
            print_info(f"[DRY RUN] Would also remove dependency: {dep}")
        for dep in result.kept_dependencies:
            print_info(f"[DRY RUN] Would keep dependency {dep} ({_kept_reason(engine, dep)})")
        return

    for dep in result.removed_dependencies:
        print_info(f"Removed dependency {dep} (no longer needed)")
    for dep in result.kept_dependencies:
        print_info(f"Kept dependency {dep} ({_kept_reason(engine, dep)})")
    print_success(f"Removed {package} from rolling status")
    print_warning(
        f"{package} remains installed at its current version; "
        "it will follow stable from now on"
    )


def _kept_reason(engine: RollingEngine, dep: str) -> str:
    if engine.state_of(dep) is PackageState.ROLLING_PRIMARY:
        return "rolling in its own right"
    return "still needed by other packages"
