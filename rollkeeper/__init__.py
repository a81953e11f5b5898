"""
rollkeeper - rolling packages on a stable Debian system

rollkeeper lets an administrator track individual packages against the
unstable channel while the rest of the system stays pinned to stable.

Features include:
    • Per-package APT pins generated and removed automatically
    • Reference-counted tracking of dependencies pulled in from unstable
    • Best-effort rollback when an install from unstable fails
    • Consistency checking between the registry, pins and dpkg state
"""

from __future__ import annotations

from rollkeeper.__version__ import __version__

# ---------------------------------------------------------------------------
# Package Metadata
# ---------------------------------------------------------------------------

__author__ = "rollkeeper Contributors"
__license__ = "GPL-3.0-or-later"
__description__ = "Track selected Debian packages against unstable on a stable system."

__all__ = [
    "__version__",
]
