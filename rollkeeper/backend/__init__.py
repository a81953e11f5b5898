"""
Package backend exports for rollkeeper.

    from rollkeeper.backend import AptBackend, PackageBackend
"""

from __future__ import annotations

from rollkeeper.backend.base import PackageBackend
from rollkeeper.backend.apt import AptBackend, PolicyInfo, parse_policy

__all__ = [
    "PackageBackend",
    "AptBackend",
    "PolicyInfo",
    "parse_policy",
]
