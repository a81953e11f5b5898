"""Consistency checking across rollkeeper's stores.

:class:`ConsistencyChecker` reconciles the registry, the dependency graph,
the preference pins and the installed state of the system. It runs a
fixed sequence of independent passes:

1. **Initialization** - the channel declaration and global preferences
   exist.
2. **Edge orphans** - every edge's parent is tracked.
3. **Install state** - every tracked package is installed.
4. **Broken dependencies** - APT reports no unmet dependencies on the
   system. Report only; fixing it means running APT.
5. **Pin presence** - every tracked package has a pin.
6. **Pin orphans** - every pin belongs to a tracked package.
7. **Pin format** - every pin has ``Package:``, ``Pin:`` and
   ``Pin-Priority:`` fields.
8. **Reachability** - the unstable channel answers within a bounded time.

Findings accumulate into one :class:`CheckReport`; a pass that blows up
becomes a finding of its own and never stops the remaining passes. The
checker only writes when asked to repair, and even then it never
installs or removes packages.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable, List, Optional

from rollkeeper.backend.base import PackageBackend
from rollkeeper.core.bootstrap import Bootstrapper
from rollkeeper.core.dependency_graph import DependencyGraph
from rollkeeper.core.preferences import PreferenceSynthesizer
from rollkeeper.core.registry import RegistryStore
from rollkeeper.exceptions import RollKeeperError
from rollkeeper.models.pin import PinPriority
from rollkeeper.models.report import CheckName, CheckReport, Finding
from rollkeeper.utils.logger import get_logger

logger = get_logger("checker")

__all__ = ["ConsistencyChecker"]

Probe = Callable[[], bool]


class ConsistencyChecker:
    """Read-only reconciliation of registry, graph, pins and installed state.

    Args:
        registry: Registry of rolling packages.
        graph: Dependency graph.
        preferences: Pin file synthesizer.
        backend: Package backend used for install state.
        bootstrap: Host configuration; the initialization pass is skipped
            without it.
        probe: Reachability probe of the unstable channel; the
            reachability pass is skipped without it.
    """

    def __init__(
        self,
        registry: RegistryStore,
        graph: DependencyGraph,
        preferences: PreferenceSynthesizer,
        backend: PackageBackend,
        *,
        bootstrap: Optional[Bootstrapper] = None,
        probe: Optional[Probe] = None,
    ) -> None:
        self.registry = registry
        self.graph = graph
        self.preferences = preferences
        self.backend = backend
        self.bootstrap = bootstrap
        self.probe = probe

    def run(self, *, repair: bool = False) -> CheckReport:
        """Run every pass and return the accumulated report.

        Args:
            repair: Fix what can be fixed: demote orphaned dependencies,
                regenerate missing or malformed pins and delete orphaned
                pins. Install state, broken dependencies and reachability are
                never repaired.
        """
        report = CheckReport(repair=repair)
        passes = [
            (CheckName.INITIALIZATION, self._check_initialization, self.bootstrap is not None),
            (CheckName.EDGE_ORPHANS, self._check_edge_orphans, True),
            (CheckName.INSTALL_STATE, self._check_install_state, True),
            (CheckName.BROKEN_DEPENDENCIES, self._check_broken_dependencies, True),
            (CheckName.PIN_PRESENCE, self._check_pin_presence, True),
            (CheckName.PIN_ORPHANS, self._check_pin_orphans, True),
            (CheckName.PIN_FORMAT, self._check_pin_format, True),
            (CheckName.REACHABILITY, self._check_reachability, self.probe is not None),
        ]

        for check, func, enabled in passes:
            if not enabled:
                logger.debug("Skipping %s check", check.value)
                continue
            logger.info("Running %s check...", check.value)
            try:
                func(report, repair)
            except (RollKeeperError, OSError) as exc:
                logger.error("%s check failed: %s", check.value, exc)
                report.add(Finding(check, f"Check could not complete: {exc}"))
            report.passes_run.append(check)

        if report.is_clean:
            logger.info("All checks passed")
        else:
            logger.warning("Found %d issue(s)", report.issues)
        return report

    # ------------------------------------------------------------------
    # Passes
    # ------------------------------------------------------------------

    def _check_initialization(self, report: CheckReport, repair: bool) -> None:
        assert self.bootstrap is not None
        missing = self.bootstrap.missing_files()
        if missing:
            names = ", ".join(str(p) for p in missing)
            report.add(
                Finding(
                    CheckName.INITIALIZATION,
                    f"System not properly initialized (missing: {names})",
                )
            )

    def _check_edge_orphans(self, report: CheckReport, repair: bool) -> None:
        for edge in self.graph.edges():
            if self.registry.contains(edge.parent):
                continue
            message = (
                f"Orphaned dependency: {edge.dependency} "
                f"(parent {edge.parent} no longer rolling)"
            )
            logger.warning(message)
            if repair:
                self._demote_orphan(edge.dependency, edge.parent)
            report.add(
                Finding(CheckName.EDGE_ORPHANS, message, edge.dependency, repaired=repair)
            )

    def _demote_orphan(self, dep: str, parent: str) -> None:
        self.graph.remove_edge(dep, parent)
        if self.registry.is_primary(dep):
            logger.info("Keeping %s (rolling in its own right)", dep)
            return
        if self.graph.parents_of(dep):
            logger.info("Keeping %s (still needed by other packages)", dep)
            return
        logger.info("Auto-removing orphaned dependency %s", dep)
        self.registry.discard(dep)
        self.preferences.remove(dep)

    def _check_install_state(self, report: CheckReport, repair: bool) -> None:
        for name in self.registry.list():
            if self.backend.installed_version(name) is None:
                report.add(
                    Finding(
                        CheckName.INSTALL_STATE,
                        f"Rolling package not installed: {name}",
                        name,
                    )
                )

    def _check_broken_dependencies(self, report: CheckReport, repair: bool) -> None:
        broken = self.backend.broken_packages()
        if broken:
            report.add(
                Finding(
                    CheckName.BROKEN_DEPENDENCIES,
                    f"Found {len(broken)} package(s) with broken dependencies: "
                    f"{', '.join(broken)} (run 'sudo apt --fix-broken install')",
                )
            )

    def _check_pin_presence(self, report: CheckReport, repair: bool) -> None:
        for name in self.registry.list():
            if self.preferences.exists(name):
                continue
            if repair:
                self.preferences.create(name, self._default_priority(name))
            report.add(
                Finding(
                    CheckName.PIN_PRESENCE,
                    f"Missing preference file for rolling package: {name}",
                    name,
                    repaired=repair,
                )
            )

    def _check_pin_orphans(self, report: CheckReport, repair: bool) -> None:
        for path in self.preferences.managed_files():
            name = self.preferences.package_for(path)
            if name is not None and self.registry.contains(name):
                continue
            if repair:
                self.preferences.remove_file(path)
            report.add(
                Finding(
                    CheckName.PIN_ORPHANS,
                    f"Orphaned preference file: {path.name}",
                    name,
                    repaired=repair,
                )
            )

    def _check_pin_format(self, report: CheckReport, repair: bool) -> None:
        for path in self.preferences.managed_files():
            missing = self.preferences.missing_fields(path)
            if not missing:
                continue
            name = self.preferences.package_for(path)
            fixed = repair and name is not None and self.registry.contains(name)
            if fixed:
                self._regenerate(name, path)
            report.add(
                Finding(
                    CheckName.PIN_FORMAT,
                    f"Malformed preference file {path.name} (missing {', '.join(missing)})",
                    name,
                    repaired=fixed,
                )
            )

    def _regenerate(self, name: str, path: Path) -> None:
        # The derived path must be the file we inspected
        if self.preferences.path_for(name) != path:
            return
        self.preferences.create(name, self._default_priority(name))

    def _check_reachability(self, report: CheckReport, repair: bool) -> None:
        assert self.probe is not None
        if not self.probe():
            report.add(
                Finding(
                    CheckName.REACHABILITY,
                    "Unstable repository is not reachable",
                )
            )

    def _default_priority(self, name: str) -> PinPriority:
        """Priority for a regenerated pin.

        The recorded class wins; a package with no recorded class is a
        dependency only if something pulled it in.
        """
        if self.registry.is_primary(name):
            return PinPriority.PRIMARY
        if self.graph.parents_of(name):
            return PinPriority.DEPENDENCY
        return PinPriority.PRIMARY

    def orphaned_edges(self) -> List[str]:
        """Return ``dep:parent`` lines whose parent is no longer tracked."""
        return [
            e.to_line() for e in self.graph.edges() if not self.registry.contains(e.parent)
        ]
