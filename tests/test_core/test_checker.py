"""Unit tests for rollkeeper.core.checker.

Test Coverage:
- A clean report right after install
- Each pass detecting its inconsistency
- Repair mode (demote orphans, regenerate and delete pins)
- Recorded primary class surviving repair
- Broken dependency reporting
- Failing passes becoming findings instead of aborting the run
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from rollkeeper.core.bootstrap import Bootstrapper
from rollkeeper.core.checker import ConsistencyChecker
from rollkeeper.core.dependency_graph import DependencyGraph
from rollkeeper.core.engine import RollingEngine
from rollkeeper.core.preferences import PreferenceSynthesizer
from rollkeeper.core.registry import RegistryStore
from rollkeeper.exceptions import BackendError
from rollkeeper.models.report import CheckName

if TYPE_CHECKING:
    from conftest import FakeBackend


@pytest.mark.unit
class TestCleanState:
    """Tests for a consistent system."""

    def test_clean_after_install(self, engine: RollingEngine, checker: ConsistencyChecker) -> None:
        """Test a freshly promoted package leaves nothing to report."""
        engine.install("golang")
        engine.install("hugo")

        report = checker.run()

        assert report.is_clean is True
        assert report.passes_run == [
            CheckName.EDGE_ORPHANS,
            CheckName.INSTALL_STATE,
            CheckName.BROKEN_DEPENDENCIES,
            CheckName.PIN_PRESENCE,
            CheckName.PIN_ORPHANS,
            CheckName.PIN_FORMAT,
        ]

    def test_clean_after_unroll(self, engine: RollingEngine, checker: ConsistencyChecker) -> None:
        """Test demotion leaves no orphaned pins or edges."""
        engine.install("golang")
        engine.unroll("golang")

        assert checker.run().is_clean is True


@pytest.mark.unit
class TestEdgeOrphans:
    """Tests for the edge orphan pass."""

    def test_orphan_detected(
        self, checker: ConsistencyChecker, graph: DependencyGraph
    ) -> None:
        """Test an edge to an untracked parent is reported."""
        graph.add_edge("golang-src", "ghost")

        report = checker.run()

        findings = report.by_check(CheckName.EDGE_ORPHANS)
        assert len(findings) == 1
        assert findings[0].package == "golang-src"
        assert findings[0].repaired is False
        assert checker.orphaned_edges() == ["golang-src:ghost"]

    def test_orphan_repaired(
        self,
        checker: ConsistencyChecker,
        registry: RegistryStore,
        graph: DependencyGraph,
        preferences: PreferenceSynthesizer,
    ) -> None:
        """Test repair demotes a dependency whose only parent is gone."""
        registry.add("golang-src")
        preferences.create("golang-src", 500)
        graph.add_edge("golang-src", "ghost")

        report = checker.run(repair=True)

        assert report.unresolved == 0
        assert len(graph) == 0
        assert "golang-src" not in registry
        assert preferences.exists("golang-src") is False
        assert checker.run().is_clean is True

    def test_orphan_with_live_parent_kept(
        self,
        engine: RollingEngine,
        checker: ConsistencyChecker,
        registry: RegistryStore,
        graph: DependencyGraph,
    ) -> None:
        """Test repair keeps a dependency another parent still needs."""
        engine.install("golang")
        graph.add_edge("golang-src", "ghost")

        checker.run(repair=True)

        assert registry.contains("golang-src")
        assert graph.parents_of("golang-src") == {"golang"}


@pytest.mark.unit
class TestInstallState:
    """Tests for the install state pass."""

    def test_not_installed_reported_not_repaired(
        self,
        checker: ConsistencyChecker,
        registry: RegistryStore,
        preferences: PreferenceSynthesizer,
        backend: FakeBackend,
    ) -> None:
        """Test repair never installs anything."""
        registry.add("hugo")
        preferences.create("hugo", 990)

        report = checker.run(repair=True)

        findings = report.by_check(CheckName.INSTALL_STATE)
        assert [f.package for f in findings] == ["hugo"]
        assert findings[0].repaired is False
        assert report.unresolved == 1
        assert backend.install_calls == []


@pytest.mark.unit
class TestPins:
    """Tests for the pin presence, orphan and format passes."""

    def test_missing_pin_regenerated(
        self,
        engine: RollingEngine,
        checker: ConsistencyChecker,
        preferences: PreferenceSynthesizer,
    ) -> None:
        """Test a deleted pin comes back at the right priority, byte for byte."""
        engine.install("golang")
        original = preferences.path_for("golang-go").read_bytes()
        preferences.remove("golang-go")

        report = checker.run(repair=True)

        assert [f.package for f in report.by_check(CheckName.PIN_PRESENCE)] == ["golang-go"]
        assert preferences.path_for("golang-go").read_bytes() == original

    def test_missing_pin_only_reported(
        self, engine: RollingEngine, checker: ConsistencyChecker, preferences: PreferenceSynthesizer
    ) -> None:
        """Test nothing is written without repair."""
        engine.install("hugo")
        preferences.remove("hugo")

        report = checker.run()

        assert report.issues == 1
        assert preferences.exists("hugo") is False

    def test_orphan_pin_removed(
        self, checker: ConsistencyChecker, preferences: PreferenceSynthesizer
    ) -> None:
        """Test a pin without a registry entry is deleted on repair."""
        path = preferences.create("ghost", 990)

        report = checker.run()
        assert [f.package for f in report.by_check(CheckName.PIN_ORPHANS)] == ["ghost"]
        assert path.exists()

        checker.run(repair=True)
        assert not path.exists()

    def test_global_file_not_an_orphan(
        self, checker: ConsistencyChecker, preferences_dir: Path
    ) -> None:
        """Test the global preferences file is never reported."""
        (preferences_dir / "rollkeeper-preferences").write_text("Package: *\n")

        assert checker.run().is_clean is True

    def test_malformed_pin_regenerated(
        self,
        engine: RollingEngine,
        checker: ConsistencyChecker,
        preferences: PreferenceSynthesizer,
    ) -> None:
        """Test a pin missing fields is rewritten when its package is tracked."""
        engine.install("hugo")
        path = preferences.path_for("hugo")
        path.write_text("Package: hugo\n")

        report = checker.run(repair=True)

        findings = report.by_check(CheckName.PIN_FORMAT)
        assert len(findings) == 1
        assert findings[0].repaired is True
        assert preferences.is_well_formed(path) is True
        assert preferences.priority_of("hugo") == 990


@pytest.mark.unit
class TestOptionalPasses:
    """Tests for the initialization and reachability passes."""

    def test_initialization_reported(
        self,
        registry: RegistryStore,
        graph: DependencyGraph,
        preferences: PreferenceSynthesizer,
        backend: FakeBackend,
        tmp_path: Path,
    ) -> None:
        """Test missing host configuration is reported."""
        boot = Bootstrapper(
            state_dir=tmp_path / "state",
            preferences_dir=tmp_path / "preferences.d",
            sources_dir=tmp_path / "sources.list.d",
            codename="bookworm",
        )
        checker = ConsistencyChecker(registry, graph, preferences, backend, bootstrap=boot)

        report = checker.run()

        assert report.passes_run[0] is CheckName.INITIALIZATION
        assert len(report.by_check(CheckName.INITIALIZATION)) == 1

    def test_unreachable_repository(
        self,
        registry: RegistryStore,
        graph: DependencyGraph,
        preferences: PreferenceSynthesizer,
        backend: FakeBackend,
    ) -> None:
        """Test a failed probe becomes a finding."""
        checker = ConsistencyChecker(
            registry, graph, preferences, backend, probe=lambda: False
        )

        report = checker.run()

        assert report.passes_run[-1] is CheckName.REACHABILITY
        assert len(report.by_check(CheckName.REACHABILITY)) == 1


@pytest.mark.unit
class TestFailingPass:
    """Tests for passes that raise."""

    def test_exception_becomes_finding(
        self,
        checker: ConsistencyChecker,
        registry: RegistryStore,
        preferences: PreferenceSynthesizer,
        backend: FakeBackend,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """Test a crashing pass is reported and later passes still run."""
        registry.add("hugo")
        preferences.create("hugo", 990)

        def boom(name: str) -> None:
            raise BackendError("dpkg-query exploded")

        monkeypatch.setattr(backend, "installed_version", boom)

        report = checker.run()

        findings = report.by_check(CheckName.INSTALL_STATE)
        assert len(findings) == 1
        assert "Check could not complete" in findings[0].message
        assert CheckName.PIN_FORMAT in report.passes_run


@pytest.mark.unit
class TestBrokenDependencies:
    """Tests for the broken dependency pass."""

    def test_broken_reported_not_repaired(
        self, checker: ConsistencyChecker, backend: FakeBackend
    ) -> None:
        """Test unmet dependencies are reported with the APT fix hint, never repaired."""
        backend.broken = ["hugo", "golang-go"]

        report = checker.run(repair=True)

        findings = report.by_check(CheckName.BROKEN_DEPENDENCIES)
        assert len(findings) == 1
        assert "2 package(s)" in findings[0].message
        assert "hugo, golang-go" in findings[0].message
        assert "apt --fix-broken install" in findings[0].message
        assert findings[0].repaired is False
        assert report.unresolved == 1
        assert backend.install_calls == []

    def test_query_failure_becomes_finding(
        self, checker: ConsistencyChecker, backend: FakeBackend
    ) -> None:
        """Test a failing APT query is reported and the later passes still run."""
        backend.fail_queries.add("apt-get check")

        report = checker.run()

        findings = report.by_check(CheckName.BROKEN_DEPENDENCIES)
        assert len(findings) == 1
        assert "Check could not complete" in findings[0].message
        assert CheckName.PIN_FORMAT in report.passes_run


@pytest.mark.unit
class TestRecordedClass:
    """Tests for repairs honouring the class recorded at registration."""

    @pytest.fixture
    def primary_dependency(
        self, engine: RollingEngine, graph: DependencyGraph
    ) -> RollingEngine:
        engine.install("golang-src")
        engine.install("hugo")
        # golang-src was already tracked, so hugo did not adopt it; link it by hand
        graph.add_edge("golang-src", "hugo")
        return engine

    def test_regenerated_pin_keeps_primary_priority(
        self,
        primary_dependency: RollingEngine,
        checker: ConsistencyChecker,
        preferences: PreferenceSynthesizer,
    ) -> None:
        """Test a primary package that gained a parent is re-pinned at 990."""
        preferences.remove("golang-src")

        checker.run(repair=True)

        assert preferences.priority_of("golang-src") == 990

    def test_orphan_repair_keeps_primary(
        self,
        primary_dependency: RollingEngine,
        checker: ConsistencyChecker,
        registry: RegistryStore,
        graph: DependencyGraph,
        preferences: PreferenceSynthesizer,
    ) -> None:
        """Test dropping a dead parent's edge never demotes a primary package."""
        graph.add_edge("golang-src", "ghost")
        graph.remove_edge("golang-src", "hugo")

        report = checker.run(repair=True)

        assert report.unresolved == 0
        assert registry.contains("golang-src")
        assert preferences.priority_of("golang-src") == 990
        assert graph.parents_of("golang-src") == set()


@pytest.mark.unit
class TestHandEditedRegistry:
    """Tests for registries containing lines that fail the name policy."""

    def test_invalid_line_does_not_hide_valid_entries(
        self,
        state_dir: Path,
        graph: DependencyGraph,
        preferences: PreferenceSynthesizer,
        backend: FakeBackend,
    ) -> None:
        """Test every valid name is still checked when one line is unusable."""
        (state_dir / "rolling-packages").write_text("bad/name\nfoo\nbar\n")
        registry = RegistryStore(state_dir / "rolling-packages")
        checker = ConsistencyChecker(registry, graph, preferences, backend)

        report = checker.run()

        assert [f.package for f in report.by_check(CheckName.PIN_PRESENCE)] == ["foo", "bar"]
        assert all("Check could not complete" not in f.message for f in report.findings)
