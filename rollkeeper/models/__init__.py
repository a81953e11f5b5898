"""
Unified data model exports for rollkeeper.

This module re-exports all core data models to provide a stable and
convenient public API.

Example:
    >>> from rollkeeper.models import RollingPackage, DependencyEdge, PreferencePin
"""

from __future__ import annotations

from rollkeeper.models.package import (
    RollingPackage,
    is_valid_package_name,
    validate_package_name,
)
from rollkeeper.models.dependency import DependencyEdge
from rollkeeper.models.pin import PinPriority, PreferencePin
from rollkeeper.models.report import CheckName, CheckReport, Finding, UpgradeReport

__all__ = [
    "RollingPackage",
    "validate_package_name",
    "is_valid_package_name",
    "DependencyEdge",
    "PinPriority",
    "PreferencePin",
    "CheckName",
    "CheckReport",
    "Finding",
    "UpgradeReport",
]
