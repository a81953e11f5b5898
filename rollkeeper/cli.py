"""
Command-line interface for rollkeeper.

This module provides the main CLI entry point and handles global options,
configuration loading, and command registration.
"""

from __future__ import annotations

import os
import sys
import logging
from pathlib import Path
from typing import Optional

import click

from rollkeeper.config import load_config
from rollkeeper.__version__ import __version__
from rollkeeper.context import RollKeeperContext, verbosity_level
from rollkeeper.exceptions import ConfigError, RollKeeperError
from rollkeeper.utils.logger import disable_logging, get_logger, setup_logging
from rollkeeper.utils.console import print_error, print_warning, reconfigure_console

logger = get_logger("cli")


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to configuration file.",
    envvar="ROLLKEEPER_CONFIG",
)
@click.option(
    "--verbose",
    "-v",
    count=True,
    help="Increase verbosity (can be repeated: -v, -vv).",
)
@click.option(
    "--color/--no-color",
    default=True,
    help="Enable or disable colored output.",
    envvar="ROLLKEEPER_COLOR",
)
@click.version_option(
    version=__version__,
    prog_name="rollkeeper",
    message="%(prog)s %(version)s",
)
@click.pass_context
def cli(
    ctx: click.Context,
    config: Optional[Path],
    verbose: int,
    color: bool,
) -> None:
    """rollkeeper - track selected packages against Debian unstable.

    \b
    Available commands:
      rollkeeper init              Configure unstable sources and pinning
      rollkeeper install PKG       Install a package from unstable
      rollkeeper roll PKG          Convert an installed package to rolling
      rollkeeper unroll PKG        Stop tracking a package against unstable
      rollkeeper list              Show rolling packages
      rollkeeper upgrade           Upgrade all rolling packages
      rollkeeper system-upgrade    Upgrade stable and rolling packages
      rollkeeper search QUERY      Search stable and unstable
      rollkeeper status            Show configuration status
      rollkeeper check             Check consistency of the configuration

    \b
    Examples:
      sudo rollkeeper init
      sudo rollkeeper install golang
      rollkeeper -v list

    Use ``rollkeeper COMMAND --help`` for command-specific options.
    """
    # Respect NO_COLOR for downstream libraries
    if color:
        os.environ.pop("NO_COLOR", None)
    else:
        os.environ["NO_COLOR"] = "1"
    reconfigure_console()

    _configure_logging(verbose)

    try:
        loaded_config = load_config(config)
    except ConfigError as exc:
        print_error(str(exc))
        raise SystemExit(1) from exc

    # Tests inject a context carrying a fake backend
    rollkeeper_ctx = ctx.ensure_object(RollKeeperContext)
    rollkeeper_ctx.config_path = config or (
        loaded_config.source_path if loaded_config.source_path else None
    )
    rollkeeper_ctx.color = color
    rollkeeper_ctx.verbose = verbose
    rollkeeper_ctx.config = loaded_config

    logger.debug("rollkeeper v%s", __version__)
    logger.debug("Config path: %s", rollkeeper_ctx.config_path)
    if loaded_config.source_path:
        logger.debug("Loaded configuration: %s", loaded_config.to_log_dict())
    logger.debug("Verbosity: %s | Color: %s", verbose, color)


def _configure_logging(verbose: int) -> None:
    """Configure logging level based on verbosity flags."""
    level = verbosity_level(verbose)
    setup_logging(level=level, verbose=verbose > 1)
    logger.debug("Logging initialized at %s level", logging.getLevelName(level))


# Register CLI subcommands
try:
    from rollkeeper.commands.init import init
    from rollkeeper.commands.install import install
    from rollkeeper.commands.roll import roll, unroll
    from rollkeeper.commands.list import list_packages
    from rollkeeper.commands.upgrade import upgrade, system_upgrade
    from rollkeeper.commands.search import search
    from rollkeeper.commands.status import status
    from rollkeeper.commands.check import check

    cli.add_command(init)
    cli.add_command(install)
    cli.add_command(roll)
    cli.add_command(unroll)
    cli.add_command(list_packages)
    cli.add_command(upgrade)
    cli.add_command(system_upgrade)
    cli.add_command(search)
    cli.add_command(status)
    cli.add_command(check)

except ImportError as exc:
    sys.stderr.write(f"FATAL: Failed to import CLI commands: {exc}\n")
    sys.exit(1)


def main() -> int:
    """Main entry point for the rollkeeper CLI.

    Returns:
        Exit code:
            0   Success
            1   Unhandled or application error
            2   Usage error (Click)
            130 Interrupted by user (Ctrl+C)
    """
    try:
        cli(standalone_mode=False)
        return 0

    except click.ClickException as exc:
        exc.show()
        return exc.exit_code

    except click.exceptions.Abort:
        print_warning("\nOperation cancelled by user")
        return 130

    except RollKeeperError as exc:
        print_error(str(exc))
        logger.debug(
            "RollKeeperError details: %s",
            exc.details or "<none>",
            exc_info=True,
        )
        return 1

    except KeyboardInterrupt:
        print_warning("\nOperation cancelled by user")
        return 130

    except Exception as exc:
        print_error(f"Unexpected error: {exc}")
        logger.exception("Unhandled exception in CLI")
        return 1

    finally:
        # Closes the log file handler a mutating command opened
        disable_logging()


if __name__ == "__main__":
    sys.exit(main())
