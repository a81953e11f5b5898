"""Dependency graph of rolling packages.

Records, as :class:`DependencyEdge` values, which rolling package pulled
each auto-pinned dependency in from unstable. A dependency shared by
several rolling packages has one edge per parent; it stays rolling until
the last of those edges is removed.

The graph is persisted in the dependency file, one ``dependency:parent``
pair per line, rewritten atomically on every mutation.

Discovery is deliberately one hop deep: once a direct dependency is
pinned to unstable, APT's own resolver takes care of what it needs.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterator, List, Set

from rollkeeper.backend.base import PackageBackend
from rollkeeper.core.registry import RegistryStore
from rollkeeper.exceptions import ValidationError
from rollkeeper.models.dependency import DependencyEdge
from rollkeeper.utils.filesystem import read_lines, write_lines
from rollkeeper.utils.logger import get_logger

logger = get_logger("dependency_graph")

__all__ = ["DependencyGraph"]


class DependencyGraph:
    """File-backed ``dependency -> {parents}`` relation.

    Args:
        path: Dependency file. A missing file is an empty graph.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._edges: List[DependencyEdge] = []
        self.reload()

    def reload(self) -> None:
        """Re-read the dependency file.

        Malformed lines are skipped with a warning; they cannot be acted
        on safely.
        """
        edges: List[DependencyEdge] = []
        for line in read_lines(self.path):
            try:
                edge = DependencyEdge.from_line(line)
            except ValidationError as exc:
                logger.warning("Ignoring dependency entry %r: %s", line, exc.message)
                continue
            if edge not in edges:
                edges.append(edge)
        self._edges = edges

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def edges(self) -> List[DependencyEdge]:
        return list(self._edges)

    def __iter__(self) -> Iterator[DependencyEdge]:
        return iter(list(self._edges))

    def __len__(self) -> int:
        return len(self._edges)

    def has_edge(self, dep: str, parent: str) -> bool:
        return DependencyEdge(dep, parent) in self._edges

    def parents_of(self, dep: str) -> Set[str]:
        """Return every package that pulled *dep* in."""
        return {e.parent for e in self._edges if e.dependency == dep}

    def children_of(self, parent: str) -> Set[str]:
        """Return every dependency *parent* pulled in."""
        return {e.dependency for e in self._edges if e.parent == parent}

    def is_dependency(self, name: str) -> bool:
        return any(e.dependency == name for e in self._edges)

    def dependents_removed_with(self, parent: str) -> Set[str]:
        """Return the dependencies whose only parent is *parent*.

        These are the packages that stop being needed once *parent* is
        demoted. Must be computed before *parent*'s edges are removed.
        """
        return {
            dep for dep in self.children_of(parent) if self.parents_of(dep) == {parent}
        }

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add_edge(self, dep: str, parent: str) -> None:
        """Record that *parent* pulled *dep* in. Adding an existing edge is a no-op."""
        edge = DependencyEdge(dep, parent)
        if edge in self._edges:
            return
        self._commit(self._edges + [edge])
        logger.debug("Tracked dependency %s for %s", dep, parent)

    def remove_edge(self, dep: str, parent: str) -> bool:
        """Delete one edge; return whether it existed."""
        edge = DependencyEdge(dep, parent)
        if edge not in self._edges:
            return False
        self._commit([e for e in self._edges if e != edge])
        logger.debug("Removed dependency relationship %s:%s", dep, parent)
        return True

    def remove_dependency(self, dep: str) -> int:
        """Delete every edge of *dep*; return how many were removed."""
        remaining = [e for e in self._edges if e.dependency != dep]
        removed = len(self._edges) - len(remaining)
        if removed:
            self._commit(remaining)
        return removed

    def _commit(self, edges: List[DependencyEdge]) -> None:
        write_lines(self.path, [e.to_line() for e in edges])
        self._edges = edges

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    def discover(
        self,
        package: str,
        backend: PackageBackend,
        registry: RegistryStore,
    ) -> List[str]:
        """Return the direct dependencies of *package* that should be pinned.

        A candidate is skipped when it is already in the registry (it is
        tracked in its own right), when it is a virtual package, or when
        another parent already manages it. The graph is not modified;
        the caller adopts each returned name.
        """
        adopt: List[str] = []
        for dep in backend.direct_dependencies(package):
            if dep == package or dep in adopt:
                continue
            if registry.contains(dep):
                logger.debug("Dependency %s already tracked as rolling package", dep)
                continue
            if backend.is_virtual(dep):
                logger.debug("Skipping virtual package dependency: %s", dep)
                continue
            if self.parents_of(dep) - {package}:
                logger.debug("Dependency %s already pinned for another package", dep)
                continue
            try:
                DependencyEdge(dep, package)
            except ValidationError:
                logger.warning("Skipping dependency with unsafe name: %r", dep)
                continue
            adopt.append(dep)
        return adopt
