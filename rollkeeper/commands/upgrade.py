"""Upgrade and system-upgrade command implementations for rollkeeper.

``upgrade`` refreshes the package lists once and then installs every
rolling package from unstable. A package that fails does not stop the
sweep; the failures are listed at the end and the command exits with 1.

``system-upgrade`` wraps that sweep in a full system upgrade: refresh,
upgrade stable packages, upgrade rolling packages, autoremove. A failing
stable upgrade or autoremove is only a warning.

Typical usage::

    $ sudo rollkeeper upgrade -y
    $ sudo rollkeeper system-upgrade --dry-run
"""

from __future__ import annotations

import sys
from typing import Any, Callable, List, Optional

import click

from rollkeeper.commands import session
from rollkeeper.context import RollKeeperContext, pass_context
from rollkeeper.exceptions import BackendError, RollKeeperError
from rollkeeper.models import UpgradeReport
from rollkeeper.utils import (
    confirm,
    get_logger,
    get_raw_console,
    print_error,
    print_info,
    print_success,
    print_warning,
)

logger = get_logger("commands.upgrade")


def _upgrade_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Options shared by both upgrade commands."""
    func = click.option(
        "--dry-run", is_flag=True, help="Show what would be upgraded without changing anything."
    )(func)
    func = click.option("--force", is_flag=True, help="Do not ask for confirmation.")(func)
    func = click.option(
        "--yes", "-y", is_flag=True, help="Answer yes to package manager prompts."
    )(func)
    return func


@click.command()
@_upgrade_options
@pass_context
def upgrade(ctx: RollKeeperContext, yes: bool, force: bool, dry_run: bool) -> None:
    """Upgrade all rolling packages from unstable."""
    try:
        with session(ctx, dry_run=dry_run):
            report = _upgrade(ctx, yes, force, dry_run)
    except RollKeeperError as e:
        print_error(f"{e}")
        sys.exit(1)

    if report is not None and not report.ok:
        sys.exit(1)


def _upgrade(
    ctx: RollKeeperContext, yes: bool, force: bool, dry_run: bool
) -> Optional[UpgradeReport]:
    engine = ctx.engine(non_interactive=yes)
    names = engine.registry.list()
    if not names:
        print_info("No rolling packages to upgrade")
        return None

    if dry_run:
        print_info("[DRY RUN] Would upgrade the following rolling packages:")
        _print_names(names)
        return None

    if not (force or yes) and not confirm(f"Upgrade {len(names)} rolling package(s) from unstable?"):
        print_info("Operation cancelled")
        return None

    print_info("Updating package lists...")
    report = engine.upgrade_all(on_result=_report_progress)
    _print_report(report)
    return report


@click.command("system-upgrade")
@_upgrade_options
@pass_context
def system_upgrade(ctx: RollKeeperContext, yes: bool, force: bool, dry_run: bool) -> None:
    """Upgrade stable packages, then rolling packages, then autoremove."""
    try:
        with session(ctx, dry_run=dry_run):
            ok = _system_upgrade(ctx, yes, force, dry_run)
    except RollKeeperError as e:
        print_error(f"{e}")
        sys.exit(1)

    if not ok:
        sys.exit(1)


def _system_upgrade(ctx: RollKeeperContext, yes: bool, force: bool, dry_run: bool) -> bool:
    engine = ctx.engine(non_interactive=yes)

    if dry_run:
        print_info("[DRY RUN] Would update package lists and upgrade stable packages")
        names = engine.registry.list()
        if names:
            print_info("[DRY RUN] Would then upgrade the following rolling packages:")
            _print_names(names)
        print_info("[DRY RUN] Would remove packages that are no longer needed")
        return True

    if not (force or yes) and not confirm("Upgrade the whole system (stable and rolling packages)?"):
        print_info("Operation cancelled")
        return True

    print_info("Performing full system upgrade...")
    outcome = engine.system_upgrade()

    if not outcome.stable_ok:
        print_warning("Some stable packages failed to upgrade")
    rolling = outcome.rolling
    if rolling.total:
        _print_report(rolling)
    if not outcome.autoremove_ok:
        print_warning("Autoremove encountered issues")

    if rolling.ok:
        print_success("System upgrade completed")
    return rolling.ok


# ---------------------------------------------------------------------------
# Output helpers
# ---------------------------------------------------------------------------


def _report_progress(name: str, error: Optional[BackendError]) -> None:
    if error is None:
        print_success(f"Upgraded {name}")
    else:
        print_warning(f"Failed to upgrade {name}")


def _print_report(report: UpgradeReport) -> None:
    if report.ok:
        print_success(report.summary())
        return
    print_warning(f"{report.summary()}:")
    console = get_raw_console()
    for name, reason in report.failed:
        console.print(f"  - {name}: {reason}", markup=False, highlight=False)


def _print_names(names: List[str]) -> None:
    console = get_raw_console()
    for name in names:
        console.print(f"  {name}", markup=False, highlight=False)
