"""
Shared helpers for rollkeeper's CLI commands.

Every command that takes a package name validates it through
:func:`package_name_callback` before any work is done, so an unsafe name
is a usage error (exit code 2) and never reaches the stores.
"""

from __future__ import annotations

from contextlib import nullcontext
from typing import ContextManager, Optional

import click

from rollkeeper.context import RollKeeperContext
from rollkeeper.exceptions import ValidationError
from rollkeeper.models.package import validate_package_name


def package_name_callback(
    ctx: click.Context, param: click.Parameter, value: Optional[str]
) -> Optional[str]:
    """Click callback rejecting package names that violate the name policy."""
    if value is None:
        return value
    try:
        return validate_package_name(value)
    except ValidationError as exc:
        raise click.BadParameter(exc.message, ctx=ctx, param=param) from exc


def session(ctx: RollKeeperContext, *, dry_run: bool) -> ContextManager[None]:
    """Return the context a command body runs in.

    Dry runs change nothing, so they need neither root nor the lock.
    """
    if dry_run:
        return nullcontext()
    return ctx.mutating()
