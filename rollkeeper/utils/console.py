"""
Console output utilities for rollkeeper using Rich.

This module provides user-facing output helpers for CLI commands.
For diagnostic or debug output, use :mod:`rollkeeper.utils.logger`.

Guidelines:
- print_* functions: user-facing status messages
- print_table / confirm: structured or interactive CLI output
- format_* / colorize_* functions: Rich markup for table cells, styled
  by rolling class, pin priority and finding status
- Logging should never go through this module
"""

from __future__ import annotations

import os
import sys
import threading
from typing import Any, Dict, List, Optional, Sequence

from rich.table import Table
from rich.theme import Theme
from rich.markup import escape
from rich.console import Console

from rollkeeper.constants import DEPENDENCY_PRIORITY, PRIMARY_PRIORITY

# ---------------------------------------------------------------------------
# Theme configuration
# ---------------------------------------------------------------------------

ROLLKEEPER_THEME = Theme(
    {
        "success": "bold green",
        "error": "bold red",
        "warning": "bold yellow",
        "info": "bold blue",
        "dim": "dim",
        "primary": "bold cyan",
        "dependency": "cyan",
        "repaired": "green",
        "open": "red",
    }
)

# ---------------------------------------------------------------------------
# Console lifecycle management
# ---------------------------------------------------------------------------

_console: Optional[Console] = None
_console_lock = threading.Lock()


def _should_use_color() -> bool:
    """Return True if colored output should be enabled."""
    if os.environ.get("NO_COLOR"):
        return False
    if os.environ.get("CI"):
        return False
    try:
        return sys.stdout.isatty()
    except (AttributeError, OSError):
        return False


def _get_console() -> Console:
    """Return a singleton Rich Console instance."""
    global _console

    if _console is None:
        with _console_lock:
            if _console is None:
                use_color = _should_use_color()
                _console = Console(
                    theme=ROLLKEEPER_THEME,
                    no_color=not use_color,
                    highlight=use_color,
                )
    return _console


def reconfigure_console() -> None:
    """Reset the global console instance.

    Useful if environment variables (e.g. NO_COLOR) change at runtime.
    """
    global _console
    with _console_lock:
        _console = None


# ---------------------------------------------------------------------------
# Status message helpers
# ---------------------------------------------------------------------------


def print_success(message: str, *, prefix: str = "[SUCCESS]") -> None:
    """Print a success message."""
    _get_console().print(f"{prefix} {message}", style="success", markup=False)


def print_error(message: str, *, prefix: str = "[ERROR]") -> None:
    """Print an error message."""
    _get_console().print(f"{prefix} {message}", style="error", markup=False)


def print_warning(message: str, *, prefix: str = "[WARNING]") -> None:
    """Print a warning message."""
    _get_console().print(f"{prefix} {message}", style="warning", markup=False)


def print_info(message: str, *, prefix: str = "[INFO]") -> None:
    """Print an informational message."""
    _get_console().print(f"{prefix} {message}", style="info", markup=False)


# ---------------------------------------------------------------------------
# Structured output
# ---------------------------------------------------------------------------


def print_table(
    data: List[Dict[str, Any]],
    *,
    title: Optional[str] = None,
    column_styles: Optional[Dict[str, Dict[str, Any]]] = None,
) -> None:
    """Render one row per package or finding as a Rich table.

    Columns follow the key order of the first row. Cell values may carry
    Rich markup, such as the labels built by the ``format_*`` helpers.

    Args:
        data: List of row dictionaries.
        title: Optional table title.
        column_styles: Per-column ``style``, ``justify`` and ``no_wrap``.
    """
    if not data:
        return

    table = Table(title=title, show_header=True, header_style="bold")

    column_styles = column_styles or {}
    for header in data[0]:
        config = column_styles.get(header, {})
        table.add_column(
            header,
            style=config.get("style"),
            justify=config.get("justify", "default"),
            no_wrap=config.get("no_wrap", False),
            overflow="fold",
        )

    for row in data:
        table.add_row(*(str(row.get(h, "")) for h in data[0]))

    _get_console().print(table)


# ---------------------------------------------------------------------------
# User interaction
# ---------------------------------------------------------------------------


def confirm(message: str, *, default: bool = False) -> bool:
    """Prompt the user for a yes/no confirmation.

    - "y", "yes"   → return True
    - "n", "no"    → return False
    - empty or unrecognized input → return `default`
    - Ctrl+C / EOF → return False

    Args:
        message: Prompt message shown to the user.
        default: Default choice used when the user presses Enter or
            provides an unrecognized response.

    Returns:
        True if confirmed, False otherwise.
    """
    console = _get_console()
    suffix = " [Y/n]: " if default else " [y/N]: "
    console.print(f"{message}{suffix}", end="", style="warning", markup=False)

    try:
        response = input().strip().lower()
    except (KeyboardInterrupt, EOFError):
        console.print()
        return False

    if not response:
        return default

    if response in ("y", "yes"):
        return True
    if response in ("n", "no"):
        return False

    return default


# ---------------------------------------------------------------------------
# Advanced / internal helpers
# ---------------------------------------------------------------------------


def get_raw_console() -> Console:
    """Return the underlying Rich Console instance."""
    return _get_console()


def format_role(is_primary: bool, parents: Sequence[str]) -> str:
    """Return a Rich-markup label for a package's rolling class.

    A primary package that some other rolling package also depends on
    keeps its primary label, with the parents shown as a note.

    Examples:
        >>> format_role(True, [])
        '[primary]primary[/primary]'
        >>> format_role(False, ["golang", "hugo"])
        '[dependency]dep of: golang, hugo[/dependency]'
    """
    names = escape(", ".join(parents))
    if is_primary:
        label = "[primary]primary[/primary]"
        return f"{label} [dim](also needed by {names})[/dim]" if parents else label
    return f"[dependency]dep of: {names}[/dependency]"


def format_priority(priority: Optional[int]) -> str:
    """Return a Rich-markup label for a pin priority.

    The two rolling classes get their class style; any other value means
    the pin was edited by hand and is flagged, as is a missing pin.
    """
    if priority is None:
        return "[open]missing[/open]"
    if priority == PRIMARY_PRIORITY:
        return f"[primary]{priority}[/primary]"
    if priority == DEPENDENCY_PRIORITY:
        return f"[dependency]{priority}[/dependency]"
    return f"[warning]{priority}[/warning]"


def format_finding_status(repaired: bool) -> str:
    return "[repaired]repaired[/repaired]" if repaired else "[open]open[/open]"


def colorize_update_type(update_type: str) -> str:
    """Return a Rich-markup colored label for a Debian version change.

    Args:
        update_type: Classification from
            :func:`rollkeeper.utils.version_utils.get_update_type`.

    Returns:
        Rich markup string.
    """
    color_map = {
        "major": "red",
        "minor": "yellow",
        "patch": "green",
        "update": "green",
        "new": "cyan",
        "downgrade": "bold red",
        "same": "dim",
        "unknown": "dim",
    }

    color = color_map.get(update_type.lower())
    return f"[{color}]{update_type}[/{color}]" if color else update_type
