"""
Core functionality exports for rollkeeper.

This module provides convenient access to the core subsystems of rollkeeper:

    from rollkeeper.core import RegistryStore, DependencyGraph, RollingEngine

The stores are the source of truth, the engine mutates them, and the
checker reconciles them with the system.
"""

from __future__ import annotations

from rollkeeper.core.registry import RegistryStore
from rollkeeper.core.dependency_graph import DependencyGraph
from rollkeeper.core.preferences import PreferenceSynthesizer, sanitize_identifier
from rollkeeper.core.lock import ProcessLock, pid_is_alive
from rollkeeper.core.bootstrap import Bootstrapper, InitResult
from rollkeeper.core.engine import (
    DemotionResult,
    PackageState,
    PromotionResult,
    RollingEngine,
    SystemUpgradeResult,
)
from rollkeeper.core.checker import ConsistencyChecker

__all__ = [
    "RegistryStore",
    "DependencyGraph",
    "PreferenceSynthesizer",
    "sanitize_identifier",
    "ProcessLock",
    "pid_is_alive",
    "Bootstrapper",
    "InitResult",
    "RollingEngine",
    "PackageState",
    "PromotionResult",
    "DemotionResult",
    "SystemUpgradeResult",
    "ConsistencyChecker",
]
