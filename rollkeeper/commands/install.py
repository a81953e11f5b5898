"""Install command implementation for rollkeeper.

Installs a package from unstable and tracks it as rolling, pinning its
new direct dependencies along with it. With ``--stable`` the package is
installed normally from stable and not tracked at all.

Typical usage::

    $ sudo rollkeeper install golang
    $ sudo rollkeeper install -y --stable htop
"""

from __future__ import annotations

import sys

import click

from rollkeeper.commands import package_name_callback, session
from rollkeeper.context import RollKeeperContext, pass_context
from rollkeeper.exceptions import BackendLockedError, RollKeeperError
from rollkeeper.utils import get_logger, print_error, print_info, print_success

logger = get_logger("commands.install")


@click.command()
@click.argument("package", callback=package_name_callback)
@click.option("--stable", is_flag=True, help="Install from stable without tracking the package.")
@click.option("--yes", "-y", is_flag=True, help="Answer yes to package manager prompts.")
@click.option("--dry-run", is_flag=True, help="Show what would happen without changing anything.")
@pass_context
def install(
    ctx: RollKeeperContext,
    package: str,
    stable: bool,
    yes: bool,
    dry_run: bool,
) -> None:
    """Install PACKAGE from unstable and keep it rolling."""
    try:
        with session(ctx, dry_run=dry_run):
            if stable:
                _install_stable(ctx, package, yes, dry_run)
            else:
                _install_rolling(ctx, package, yes, dry_run)
    except RollKeeperError as e:
        print_error(f"{e}")
        sys.exit(1)


def _install_stable(ctx: RollKeeperContext, package: str, yes: bool, dry_run: bool) -> None:
    if dry_run:
        print_info(f"[DRY RUN] Would install {package} from stable")
        return
    backend = ctx.get_backend()
    if backend.is_locked():
        raise BackendLockedError(f"APT is locked by another process; cannot install {package}")
    print_info(f"Installing {package} from stable...")
    backend.install(package, None, yes)
    print_success(f"Installed {package} from stable")


def _install_rolling(ctx: RollKeeperContext, package: str, yes: bool, dry_run: bool) -> None:
    engine = ctx.engine(non_interactive=yes)
    if not dry_run:
        print_info(f"Installing {package} from unstable...")
    result = engine.install(package, dry_run=dry_run)

    if result.dry_run:
        print_info(f"[DRY RUN] Would install {package} from unstable and mark it as rolling")
        return

    for dep in result.dependencies:
        print_info(f"Pinned dependency {dep} for {package}")
    print_success(f"Installed {package} from unstable")
