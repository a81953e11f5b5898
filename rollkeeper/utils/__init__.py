"""
Utility helpers for rollkeeper.

This package provides reusable utilities used across rollkeeper, including:

- Console output helpers (Rich-based)
- Logging configuration and retrieval
- Filesystem safety helpers
- Repository reachability probing
- Debian version comparison helpers

Only symbols listed in ``__all__`` are considered part of the public API.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Filesystem utilities
# ---------------------------------------------------------------------------

from rollkeeper.utils.filesystem import (
    read_lines,
    safe_read_file,
    safe_remove_file,
    safe_write_file,
    validate_path,
    write_lines,
)

# ---------------------------------------------------------------------------
# Logging utilities
# ---------------------------------------------------------------------------

from rollkeeper.utils.logger import (
    disable_logging,
    get_logger,
    is_logging_configured,
    setup_logging,
)

# ---------------------------------------------------------------------------
# Console utilities
# ---------------------------------------------------------------------------

from rollkeeper.utils.console import (
    colorize_update_type,
    confirm,
    format_finding_status,
    format_priority,
    format_role,
    get_raw_console,
    print_error,
    print_info,
    print_success,
    print_table,
    print_warning,
    reconfigure_console,
)

# ---------------------------------------------------------------------------
# HTTP utilities
# ---------------------------------------------------------------------------

from rollkeeper.utils.http import HTTPClient, probe_channel

# ---------------------------------------------------------------------------
# Version utilities
# ---------------------------------------------------------------------------

from rollkeeper.utils.version_utils import get_update_type

# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

__all__ = [
    # Console
    "confirm",
    "print_error",
    "print_info",
    "print_table",
    "print_success",
    "print_warning",
    "get_raw_console",
    "reconfigure_console",
    "colorize_update_type",
    "format_role",
    "format_priority",
    "format_finding_status",
    # Logging
    "get_logger",
    "setup_logging",
    "disable_logging",
    "is_logging_configured",
    # Filesystem
    "read_lines",
    "write_lines",
    "safe_read_file",
    "safe_write_file",
    "safe_remove_file",
    "validate_path",
    # HTTP
    "HTTPClient",
    "probe_channel",
    # Version utilities
    "get_update_type",
]
