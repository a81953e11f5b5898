"""Init command implementation for rollkeeper.

Prepares the host for mixed stable/unstable package management: creates
the state files, declares the unstable channel and writes the global
preferences that keep everything else on stable. Files that already exist
are left unchanged, so running ``init`` twice is harmless.

Typical usage::

    $ sudo rollkeeper init
    $ rollkeeper init --dry-run
"""

from __future__ import annotations

import sys

import click

from rollkeeper.commands import session
from rollkeeper.context import RollKeeperContext, pass_context
from rollkeeper.exceptions import BackendLockedError, RollKeeperError
from rollkeeper.utils import get_logger, print_error, print_info, print_success

logger = get_logger("commands.init")


@click.command()
@click.option("--dry-run", is_flag=True, help="Show what would be created without changing anything.")
@pass_context
def init(ctx: RollKeeperContext, dry_run: bool) -> None:
    """Configure the unstable channel and baseline APT pinning."""
    try:
        with session(ctx, dry_run=dry_run):
            _init(ctx, dry_run)
    except RollKeeperError as e:
        print_error(f"{e}")
        sys.exit(1)


def _init(ctx: RollKeeperContext, dry_run: bool) -> None:
    bootstrap = ctx.bootstrapper()
    result = bootstrap.initialize(dry_run=dry_run)

    prefix = "[DRY RUN] Would create" if dry_run else "Created"
    for path in result.created:
        print_info(f"{prefix} {path}")
    for path in result.existing:
        print_info(f"Already present: {path}")
    print_info(f"Stable codename: {result.codename}; unstable mirror: {result.mirror}")

    if dry_run:
        print_info("[DRY RUN] Would update package lists")
        return

    backend = ctx.get_backend()
    if backend.is_locked():
        raise BackendLockedError("APT is locked by another process; cannot update package lists")
    print_info("Updating package lists...")
    backend.refresh_metadata()

    print_success("System successfully initialized for mixed package management")
    print_info("You can now use 'rollkeeper install <package>' to install from unstable")
