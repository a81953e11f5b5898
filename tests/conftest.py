from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Set, Tuple

import pytest

from rollkeeper.backend.base import PackageBackend
from rollkeeper.core import (
    ConsistencyChecker,
    DependencyGraph,
    PreferenceSynthesizer,
    RegistryStore,
    RollingEngine,
)
from rollkeeper.exceptions import BackendError
from rollkeeper.utils.logger import disable_logging


class FakeBackend(PackageBackend):
    """In-memory package database for tests.

    Packages are registered with :meth:`add_package`; installs only
    update :attr:`installed`, and every mutating call is recorded so tests
    can assert on what would have reached APT.
    """

    def __init__(self) -> None:
        self.available: Dict[str, Dict[str, str]] = {}
        self.installed: Dict[str, str] = {}
        self.dependencies: Dict[str, List[str]] = {}
        self.descriptions: Dict[str, str] = {}
        self.virtual: Set[str] = set()
        self.after_refresh: Dict[str, Dict[str, str]] = {}
        self.broken: List[str] = []

        self.locked = False
        self.fail_install: Set[str] = set()
        self.fail_refresh = False
        self.fail_upgrade_system = False
        self.fail_autoremove = False
        self.fail_queries: Set[str] = set()

        self.install_calls: List[Tuple[str, Optional[str], bool]] = []
        self.refresh_calls = 0
        self.upgrade_system_calls = 0
        self.autoremove_calls = 0

    def add_package(
        self,
        name: str,
        *,
        stable: Optional[str] = None,
        unstable: Optional[str] = None,
        depends: Iterable[str] = (),
        installed: Optional[str] = None,
        description: str = "",
    ) -> None:
        channels: Dict[str, str] = {}
        if stable is not None:
            channels["stable"] = stable
        if unstable is not None:
            channels["unstable"] = unstable
        self.available[name] = channels
        self.dependencies[name] = list(depends)
        self.descriptions[name] = description
        if installed is not None:
            self.installed[name] = installed

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def exists(self, name: str, channel: Optional[str] = None) -> bool:
        if name not in self.available:
            return False
        return channel is None or channel in self.available[name]

    def is_virtual(self, name: str) -> bool:
        return name in self.virtual

    def direct_dependencies(self, name: str) -> List[str]:
        if name in self.fail_queries:
            raise BackendError(f"apt-cache depends {name} timed out", command="apt-cache depends")
        return list(self.dependencies.get(name, []))

    def installed_version(self, name: str) -> Optional[str]:
        return self.installed.get(name)

    def candidate_version(self, name: str, channel: str) -> Optional[str]:
        return self.available.get(name, {}).get(channel)

    def is_locked(self) -> bool:
        return self.locked

    def broken_packages(self) -> List[str]:
        if "apt-get check" in self.fail_queries:
            raise BackendError("apt-get check exited with status 100", returncode=100)
        return list(self.broken)

    def search(self, query: str, channel: Optional[str] = None) -> List[Tuple[str, str]]:
        return [
            (name, self.descriptions.get(name, ""))
            for name in sorted(self.available)
            if query in name and (channel is None or channel in self.available[name])
        ]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def install(
        self,
        name: str,
        channel: Optional[str] = None,
        non_interactive: bool = False,
    ) -> None:
        self.install_calls.append((name, channel, non_interactive))
        if name in self.fail_install:
            raise BackendError(
                f"Failed to install {name}",
                command=f"apt-get install {name}",
                returncode=100,
                package_name=name,
            )
        channels = self.available.get(name, {})
        version = channels.get(channel or "stable") or next(iter(channels.values()), None)
        if version is None:
            raise BackendError(f"Unable to locate package {name}", returncode=100)
        self.installed[name] = version
        # Like APT, pull in missing concrete dependencies from the same channel
        for dep in self.dependencies.get(name, []):
            if dep not in self.virtual and dep not in self.installed and dep in self.available:
                dep_channels = self.available[dep]
                dep_version = dep_channels.get(channel or "stable")
                if dep_version is not None:
                    self.installed[dep] = dep_version

    def refresh_metadata(self) -> None:
        self.refresh_calls += 1
        if self.fail_refresh:
            raise BackendError("Failed to update package lists", command="apt-get update")
        for name, channels in self.after_refresh.items():
            self.available.setdefault(name, {}).update(channels)
            self.dependencies.setdefault(name, [])

    def upgrade_system(self, non_interactive: bool = False) -> None:
        self.upgrade_system_calls += 1
        if self.fail_upgrade_system:
            raise BackendError("apt-get upgrade failed", returncode=100)

    def autoremove(self, non_interactive: bool = False) -> None:
        self.autoremove_calls += 1
        if self.fail_autoremove:
            raise BackendError("apt-get autoremove failed", returncode=100)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def backend() -> FakeBackend:
    """Fake backend preloaded with a small package universe.

    ``golang`` depends on ``golang-go`` and ``golang-src``; ``hugo``
    shares ``golang-src`` with it. ``mail-transport-agent`` is virtual.
    ``vim`` is installed from stable.
    """
    fake = FakeBackend()
    fake.add_package(
        "golang",
        stable="2:1.19~1",
        unstable="2:1.22~3",
        depends=["golang-go", "golang-src", "mail-transport-agent"],
    )
    fake.add_package("golang-go", stable="2:1.19~1", unstable="2:1.22~3")
    fake.add_package("golang-src", stable="2:1.19~1", unstable="2:1.22~3")
    fake.add_package("hugo", stable="0.111.3-1", unstable="0.123.7-1", depends=["golang-src"])
    fake.add_package(
        "vim",
        stable="2:9.0.1378-2",
        unstable="2:9.1.0016-1",
        installed="2:9.0.1378-2",
        depends=["vim-common", "vim-runtime"],
    )
    fake.add_package("vim-common", stable="2:9.0.1378-2", unstable="2:9.1.0016-1")
    fake.add_package("vim-runtime", stable="2:9.0.1378-2", unstable="2:9.1.0016-1")
    fake.virtual.add("mail-transport-agent")
    return fake


@pytest.fixture
def state_dir(tmp_path: Path) -> Path:
    path = tmp_path / "state"
    path.mkdir()
    return path


@pytest.fixture
def preferences_dir(tmp_path: Path) -> Path:
    path = tmp_path / "preferences.d"
    path.mkdir()
    return path


@pytest.fixture
def registry(state_dir: Path) -> RegistryStore:
    return RegistryStore(state_dir / "rolling-packages")


@pytest.fixture
def graph(state_dir: Path) -> DependencyGraph:
    return DependencyGraph(state_dir / "rolling-dependencies")


@pytest.fixture
def preferences(preferences_dir: Path) -> PreferenceSynthesizer:
    return PreferenceSynthesizer(preferences_dir)


@pytest.fixture
def engine(
    registry: RegistryStore,
    graph: DependencyGraph,
    preferences: PreferenceSynthesizer,
    backend: FakeBackend,
) -> RollingEngine:
    return RollingEngine(registry, graph, preferences, backend, non_interactive=True)


@pytest.fixture
def checker(
    registry: RegistryStore,
    graph: DependencyGraph,
    preferences: PreferenceSynthesizer,
    backend: FakeBackend,
) -> ConsistencyChecker:
    return ConsistencyChecker(registry, graph, preferences, backend)


@pytest.fixture(autouse=True)
def _reset_logging() -> Iterator[None]:
    """Drop handlers a CLI run installed so they never outlive the test's streams."""
    yield
    disable_logging()
