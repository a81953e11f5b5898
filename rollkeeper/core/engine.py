"""Promotion and demotion of rolling packages.

:class:`RollingEngine` moves packages between stable and rolling state,
keeping the registry, the dependency graph and the preference pins in
step:

1. **Promote** (``install`` / ``roll``) - validate, resolve the package
   against unstable, make sure APT is not locked, then register the
   package, pin it at primary priority, pin its new direct dependencies
   at dependency priority and install from unstable. Any failure after
   registration rolls back the package's registry entry and pin. A
   failure before APT was invoked also drops the dependencies adopted
   in the same operation; once the install has started they stay,
   because APT may already have installed some of them. This rollback
   is best effort, not a transaction.
2. **Demote** (``unroll``) - drop the package's registry entry and pin,
   then drop each dependency it alone was keeping rolling. Nothing is
   ever uninstalled.
3. **Bulk upgrade** - install every tracked package from unstable,
   collecting failures instead of stopping at the first one.

Validation and precondition errors are always raised before any state
changes. The engine does not lock the process itself; callers wrap
mutating calls in :class:`rollkeeper.core.lock.ProcessLock`.
"""

from __future__ import annotations

from enum import Enum
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

from rollkeeper.backend.base import PackageBackend
from rollkeeper.constants import UNSTABLE_CHANNEL
from rollkeeper.core.dependency_graph import DependencyGraph
from rollkeeper.core.preferences import PreferenceSynthesizer
from rollkeeper.core.registry import RegistryStore
from rollkeeper.exceptions import (
    AlreadyTrackedError,
    BackendError,
    BackendLockedError,
    NotInstalledError,
    NotTrackedError,
    PackageNotFoundError,
    RollKeeperError,
)
from rollkeeper.models.package import RollingPackage, validate_package_name
from rollkeeper.models.pin import PinPriority
from rollkeeper.models.report import UpgradeReport
from rollkeeper.utils.logger import get_logger

logger = get_logger("engine")

__all__ = [
    "RollingEngine",
    "PackageState",
    "PromotionResult",
    "DemotionResult",
    "SystemUpgradeResult",
]


class PackageState(str, Enum):
    """Lifecycle states of a package under rollkeeper."""

    STABLE = "stable"
    PROMOTION_PENDING = "promotion-pending"
    ROLLING_PRIMARY = "rolling-primary"
    ROLLING_DEPENDENCY = "rolling-dependency"
    FAILED = "failed"


@dataclass
class PromotionResult:
    """Outcome of a promotion.

    Attributes:
        package: Promoted package.
        dependencies: Dependencies pinned on its behalf.
        previous_version: Version installed before the operation.
        dry_run: ``True`` when nothing was changed.
    """

    package: str
    dependencies: List[str] = field(default_factory=list)
    previous_version: Optional[str] = None
    dry_run: bool = False


@dataclass
class DemotionResult:
    """Outcome of a demotion.

    Attributes:
        package: Demoted package.
        removed_dependencies: Dependencies that stopped rolling with it.
        kept_dependencies: Dependencies still needed by other parents.
        dry_run: ``True`` when nothing was changed.
    """

    package: str
    removed_dependencies: List[str] = field(default_factory=list)
    kept_dependencies: List[str] = field(default_factory=list)
    dry_run: bool = False


@dataclass
class SystemUpgradeResult:
    """Outcome of a full system upgrade."""

    stable_ok: bool = True
    rolling: UpgradeReport = field(default_factory=UpgradeReport)
    autoremove_ok: bool = True

    @property
    def ok(self) -> bool:
        return self.rolling.ok


class RollingEngine:
    """State machine promoting and demoting rolling packages.

    Args:
        registry: Registry of rolling packages.
        graph: Dependency graph.
        preferences: Pin file synthesizer.
        backend: Package backend.
        non_interactive: Pass ``-y``-style non-interactive mode to
            backend installs.
        channel: Release archive rolling packages track.
    """

    def __init__(
        self,
        registry: RegistryStore,
        graph: DependencyGraph,
        preferences: PreferenceSynthesizer,
        backend: PackageBackend,
        *,
        non_interactive: bool = False,
        channel: str = UNSTABLE_CHANNEL,
    ) -> None:
        self.registry = registry
        self.graph = graph
        self.preferences = preferences
        self.backend = backend
        self.non_interactive = non_interactive
        self.channel = channel

    # ------------------------------------------------------------------
    # State queries
    # ------------------------------------------------------------------

    def state_of(self, name: str) -> PackageState:
        """Return the rolling class of *name*.

        The primary class is the one recorded when the package was
        registered; a primary package that later gained a parent edge
        stays primary.
        """
        if not self.registry.contains(name):
            return PackageState.STABLE
        if self.registry.is_primary(name):
            return PackageState.ROLLING_PRIMARY
        if self.graph.is_dependency(name):
            return PackageState.ROLLING_DEPENDENCY
        return PackageState.ROLLING_PRIMARY

    def packages(self, *, with_versions: bool = True) -> List[RollingPackage]:
        """Return a display view of every rolling package, in registry order."""
        result: List[RollingPackage] = []
        for name in self.registry.list():
            parents = sorted(self.graph.parents_of(name))
            installed = candidate = None
            if with_versions:
                installed = self.backend.installed_version(name)
                candidate = self.backend.candidate_version(name, self.channel)
            result.append(
                RollingPackage(
                    name=name,
                    is_primary=self.state_of(name) is PackageState.ROLLING_PRIMARY,
                    parents=parents,
                    installed_version=installed,
                    candidate_version=candidate,
                    priority=self.preferences.priority_of(name),
                )
            )
        return result

    # ------------------------------------------------------------------
    # Promotion
    # ------------------------------------------------------------------

    def install(self, name: str, *, dry_run: bool = False) -> PromotionResult:
        """Install *name* from unstable and track it as a primary rolling package.

        Raises:
            ValidationError: *name* is unsafe.
            AlreadyTrackedError: *name* is already rolling.
            PackageNotFoundError: *name* is unknown even after a refresh.
            BackendLockedError: APT is locked by another process.
            BackendError: The install failed (after rollback).
        """
        validate_package_name(name, operation="install")
        if self.registry.contains(name):
            raise AlreadyTrackedError(
                f"Package '{name}' is already configured as rolling",
                package_name=name,
                operation="install",
            )
        previous = self.backend.installed_version(name)

        if dry_run:
            if not self.backend.exists(name):
                logger.warning("Package '%s' not found in current package lists", name)
            logger.info("[DRY RUN] Would install %s from %s", name, self.channel)
            return PromotionResult(package=name, previous_version=previous, dry_run=True)

        self._ensure_resolvable(name, operation="install")
        return self._promote(name, previous, operation="install")

    def plan_roll(self, name: str) -> Tuple[str, Optional[str]]:
        """Check the roll preconditions for *name* without changing anything.

        Returns:
            ``(installed_version, unstable_candidate)``.

        Raises:
            ValidationError: *name* is unsafe.
            NotInstalledError: *name* is not installed.
            AlreadyTrackedError: *name* is already rolling.
        """
        validate_package_name(name, operation="roll")
        installed = self.backend.installed_version(name)
        if installed is None:
            raise NotInstalledError(
                f"Package '{name}' is not currently installed",
                package_name=name,
                operation="roll",
            )
        if self.registry.contains(name):
            raise AlreadyTrackedError(
                f"Package '{name}' is already configured as rolling",
                package_name=name,
                operation="roll",
            )
        return installed, self.backend.candidate_version(name, self.channel)

    def roll(self, name: str, *, dry_run: bool = False) -> PromotionResult:
        """Convert the installed package *name* to rolling and upgrade it from unstable.

        Raises:
            ValidationError: *name* is unsafe.
            NotInstalledError: *name* is not installed.
            AlreadyTrackedError: *name* is already rolling.
            PackageNotFoundError: *name* is unknown even after a refresh.
            BackendLockedError: APT is locked by another process.
            BackendError: The upgrade failed (after rollback).
        """
        previous, _ = self.plan_roll(name)

        if dry_run:
            logger.info("[DRY RUN] Would convert %s to rolling", name)
            return PromotionResult(package=name, previous_version=previous, dry_run=True)

        self._ensure_resolvable(name, operation="roll")
        return self._promote(name, previous, operation="roll")

    def _ensure_resolvable(self, name: str, *, operation: str) -> None:
        """Check *name* is known, refreshing package lists once if it is not."""
        if self.backend.exists(name):
            return

        logger.warning("Package '%s' not found. Updating package lists...", name)
        self._require_unlocked(operation)
        self.backend.refresh_metadata()
        if not self.backend.exists(name):
            raise PackageNotFoundError(
                f"Package '{name}' not found in any repository",
                package_name=name,
                operation=operation,
            )

    def _require_unlocked(self, operation: str) -> None:
        if self.backend.is_locked():
            raise BackendLockedError(
                f"APT is locked by another process; cannot {operation}"
            )

    def _promote(self, name: str, previous: Optional[str], *, operation: str) -> PromotionResult:
        # Checked before the registry is touched so a locked APT leaves no trace
        self._require_unlocked(operation)
        logger.debug("%s: %s -> %s", name, PackageState.STABLE.value, PackageState.PROMOTION_PENDING.value)

        self.registry.add(name, primary=True)
        dependencies: List[str] = []
        installing = False
        try:
            self.preferences.create(name, PinPriority.PRIMARY)
            self._pin_dependencies(name, dependencies)
            self._require_unlocked(operation)
            installing = True
            self.backend.install(name, self.channel, self.non_interactive)
        except RollKeeperError as exc:
            logger.error("Failed to %s %s from %s: %s", operation, name, self.channel, exc)
            logger.warning("Rolling back changes due to %s failure...", operation)
            self._rollback(name, [] if installing else dependencies)
            logger.debug("%s: -> %s -> %s", name, PackageState.FAILED.value, PackageState.STABLE.value)
            raise

        logger.info("Successfully %s %s from %s", _past(operation), name, self.channel)
        return PromotionResult(
            package=name,
            dependencies=dependencies,
            previous_version=previous,
        )

    def _pin_dependencies(self, name: str, adopted: List[str]) -> None:
        """Adopt *name*'s new direct dependencies at dependency priority.

        Each dependency is appended to *adopted* before its pin is written,
        so a failure part way leaves a record of what to undo.
        """
        for dep in self.graph.discover(name, self.backend, self.registry):
            logger.info("Pinning dependency %s for %s", dep, name)
            adopted.append(dep)
            self.preferences.create(dep, PinPriority.DEPENDENCY)
            self.registry.add(dep)
            self.graph.add_edge(dep, name)

    def _rollback(self, name: str, dependencies: List[str]) -> None:
        """Undo a failed promotion: the package itself and any *dependencies* adopted for it."""
        try:
            self.registry.discard(name)
        finally:
            self.preferences.remove(name)
        for dep in dependencies:
            self.graph.remove_edge(dep, name)
            if not self.graph.parents_of(dep):
                self.demote_dependency(dep)

    # ------------------------------------------------------------------
    # Demotion
    # ------------------------------------------------------------------

    def unroll(self, name: str, *, dry_run: bool = False) -> DemotionResult:
        """Stop tracking *name*; the installed package is left alone.

        Raises:
            ValidationError: *name* is unsafe.
            NotTrackedError: *name* is not rolling.
        """
        validate_package_name(name, operation="unroll")
        if not self.registry.contains(name):
            raise NotTrackedError(
                f"Package '{name}' is not configured as rolling",
                package_name=name,
                operation="unroll",
            )

        children = self.graph.children_of(name)
        # Primary packages never go with a parent; they only lose the edge
        removable = {
            dep for dep in self.graph.dependents_removed_with(name)
            if not self.registry.is_primary(dep)
        }
        result = DemotionResult(
            package=name,
            removed_dependencies=sorted(removable),
            kept_dependencies=sorted(children - removable),
            dry_run=dry_run,
        )
        if dry_run:
            return result

        self.registry.remove(name)
        self.preferences.remove(name)
        # A dependency unrolled directly drops its own edges too
        self.graph.remove_dependency(name)

        for dep in sorted(children):
            self.graph.remove_edge(dep, name)
            if dep in removable and not self.graph.parents_of(dep):
                logger.info("Removing dependency %s (no longer needed)", dep)
                self.demote_dependency(dep)
            else:
                logger.debug("Keeping dependency %s (still needed by other packages)", dep)

        logger.info("Removed %s from rolling status", name)
        return result

    def demote_dependency(self, dep: str) -> None:
        """Fully stop tracking *dep*: registry entry, pin and any remaining edges."""
        self.registry.discard(dep)
        self.preferences.remove(dep)
        self.graph.remove_dependency(dep)

    # ------------------------------------------------------------------
    # Bulk operations
    # ------------------------------------------------------------------

    def upgrade_all(
        self,
        *,
        refresh: bool = True,
        on_result: Optional[Callable[[str, Optional[BackendError]], None]] = None,
    ) -> UpgradeReport:
        """Upgrade every rolling package from unstable.

        One package's failure never stops the sweep; failures are
        collected in the returned report.

        Args:
            refresh: Refresh package lists once before the sweep.
            on_result: Called after each package with the error, if any.

        Raises:
            BackendLockedError: APT became locked during the sweep.
            BackendError: The initial refresh failed.
        """
        report = UpgradeReport()
        names = self.registry.list()
        if not names:
            return report

        if refresh:
            self._require_unlocked("upgrade")
            self.backend.refresh_metadata()

        for name in names:
            error: Optional[BackendError] = None
            self._require_unlocked("upgrade")
            try:
                self.backend.install(name, self.channel, self.non_interactive)
            except BackendError as exc:
                error = exc
                report.failed.append((name, str(exc)))
                logger.warning("Failed to upgrade %s: %s", name, exc)
            else:
                report.upgraded.append(name)
                logger.info("Upgraded %s", name)
            if on_result is not None:
                on_result(name, error)

        logger.info(report.summary())
        return report

    def system_upgrade(self) -> SystemUpgradeResult:
        """Refresh, upgrade stable packages, upgrade rolling ones, then autoremove.

        A failed stable upgrade or autoremove is logged and reported, not
        raised; the rolling sweep runs regardless.

        Raises:
            BackendLockedError: APT is locked before any step.
            BackendError: The initial refresh failed.
        """
        self._require_unlocked("system-upgrade")
        self.backend.refresh_metadata()

        stable_ok = True
        self._require_unlocked("system-upgrade")
        try:
            self.backend.upgrade_system(self.non_interactive)
        except BackendError as exc:
            stable_ok = False
            logger.warning("Some stable packages failed to upgrade: %s", exc)

        rolling = self.upgrade_all(refresh=False)

        autoremove_ok = True
        self._require_unlocked("system-upgrade")
        try:
            self.backend.autoremove(self.non_interactive)
        except BackendError as exc:
            autoremove_ok = False
            logger.warning("Autoremove encountered issues: %s", exc)

        return SystemUpgradeResult(
            stable_ok=stable_ok, rolling=rolling, autoremove_ok=autoremove_ok
        )


def _past(operation: str) -> str:
    return {"install": "installed", "roll": "rolled"}.get(operation, operation)
