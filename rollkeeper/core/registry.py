"""Registry of rolling packages.

The registry file holds one package name per line. It is the source of
truth for which packages are rolling; the dependency graph records why,
and preference pins are derived from both.

A second file beside it lists the names the user promoted directly.
Membership there is recorded at registration time and never recomputed,
so a primary package that later also becomes somebody's dependency keeps
its class.

Every mutation rewrites the files atomically before returning, and the
in-memory view is only committed once the writes succeeded, so a failed
write never leaves memory and disk disagreeing.

Typical usage::

    registry = RegistryStore(Path("/var/lib/rollkeeper/rolling-packages"))
    registry.add("golang", primary=True)
    assert registry.contains("golang")
    assert registry.is_primary("golang")
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterator, List, Optional, Set

from rollkeeper.constants import PRIMARY_FILENAME
from rollkeeper.exceptions import (
    AlreadyTrackedError,
    FileOperationError,
    NotTrackedError,
    ValidationError,
)
from rollkeeper.models.package import validate_package_name
from rollkeeper.utils.filesystem import read_lines, write_lines
from rollkeeper.utils.logger import get_logger

logger = get_logger("registry")

__all__ = ["RegistryStore"]


class RegistryStore:
    """File-backed set of rolling package names.

    Names keep their insertion order for display. Duplicate lines in a
    hand-edited file are collapsed on load, and lines that fail the
    package name policy are skipped with a warning.

    Args:
        path: Registry file. A missing file is an empty registry.
        primary_path: Primary-class file; defaults to a sibling of *path*.
    """

    def __init__(self, path: Path, primary_path: Optional[Path] = None) -> None:
        self.path = Path(path)
        self.primary_path = Path(primary_path) if primary_path else self.path.with_name(PRIMARY_FILENAME)
        self._names: List[str] = []
        self._primary: Set[str] = set()
        self.reload()

    def reload(self) -> None:
        """Re-read the registry and primary-class files."""
        names: List[str] = []
        for line in read_lines(self.path):
            try:
                validate_package_name(line, operation="registry-load")
            except ValidationError as exc:
                logger.warning("Ignoring registry entry %r: %s", line, exc.message)
                continue
            if line in names:
                logger.warning("Duplicate registry entry ignored: %s", line)
                continue
            names.append(line)
        self._names = names
        # Entries for names no longer tracked are dropped on the next write
        self._primary = {line for line in read_lines(self.primary_path) if line in names}
        logger.debug("Loaded %d rolling package(s) from %s", len(names), self.path)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def contains(self, name: str) -> bool:
        return name in self._names

    def is_primary(self, name: str) -> bool:
        """Return whether *name* was registered as a primary package."""
        return name in self._primary

    def list(self) -> List[str]:
        """Return tracked names in insertion order."""
        return list(self._names)

    def __contains__(self, name: object) -> bool:
        return name in self._names

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._names))

    def __len__(self) -> int:
        return len(self._names)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add(self, name: str, *, primary: bool = False) -> None:
        """Track *name*, remembering whether the user promoted it directly.

        Raises:
            ValidationError: *name* violates the package name policy.
            AlreadyTrackedError: *name* is already tracked.
            FileOperationError: A registry file could not be written.
        """
        validate_package_name(name, operation="registry-add")
        if name in self._names:
            raise AlreadyTrackedError(
                f"Package '{name}' is already configured as rolling",
                package_name=name,
                operation="registry-add",
            )

        self._commit(self._names + [name], (self._primary | {name}) if primary else self._primary)
        logger.debug("Added %s to rolling packages list", name)

    def remove(self, name: str) -> None:
        """Stop tracking *name*.

        Raises:
            NotTrackedError: *name* is not tracked.
            FileOperationError: A registry file could not be written.
        """
        if name not in self._names:
            raise NotTrackedError(
                f"Package '{name}' is not configured as rolling",
                package_name=name,
                operation="registry-remove",
            )

        self._commit([n for n in self._names if n != name], self._primary - {name})
        logger.debug("Removed %s from rolling packages list", name)

    def discard(self, name: str) -> bool:
        """Remove *name* if tracked; return whether anything changed."""
        if name not in self._names:
            return False
        self.remove(name)
        return True

    def _commit(self, names: List[str], primary: Set[str]) -> None:
        write_lines(self.path, names)
        if primary != self._primary:
            try:
                write_lines(self.primary_path, [n for n in names if n in primary])
            except FileOperationError:
                write_lines(self.path, self._names)
                raise
        self._names = names
        self._primary = primary
