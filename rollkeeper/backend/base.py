"""Package backend interface for rollkeeper.

This module defines the abstract interface through which the rolling
engine and the consistency checker reach the system package database.
The production implementation drives APT via subprocess
(:class:`rollkeeper.backend.apt.AptBackend`); tests use a pure in-memory
implementation so the engine can be exercised without a package database.

All methods are synchronous and blocking. Query methods answer ``False``
/ ``None`` / empty for unknown packages; mutating methods raise
:class:`rollkeeper.exceptions.BackendError` on failure.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Optional, Tuple


class PackageBackend(ABC):
    """Abstract interface for package database operations."""

    @abstractmethod
    def exists(self, name: str, channel: Optional[str] = None) -> bool:
        """Return whether *name* is known to the package database.

        Args:
            name: Package name.
            channel: When given, only a candidate from this release archive
                counts (e.g. ``"unstable"``).
        """
        ...

    @abstractmethod
    def is_virtual(self, name: str) -> bool:
        """Return whether *name* is only provided by other packages."""
        ...

    @abstractmethod
    def direct_dependencies(self, name: str) -> List[str]:
        """Return the names *name* directly depends on, in declared order.

        Virtual placeholders the backend cannot name concretely are
        omitted.
        """
        ...

    @abstractmethod
    def installed_version(self, name: str) -> Optional[str]:
        """Return the installed version of *name*, or ``None`` if not installed."""
        ...

    @abstractmethod
    def candidate_version(self, name: str, channel: str) -> Optional[str]:
        """Return the newest version of *name* available from *channel*."""
        ...

    @abstractmethod
    def install(
        self,
        name: str,
        channel: Optional[str] = None,
        non_interactive: bool = False,
    ) -> None:
        """Install or upgrade *name*, targeting *channel* when given.

        Raises:
            BackendError: The package manager reported failure.
        """
        ...

    @abstractmethod
    def refresh_metadata(self) -> None:
        """Refresh package lists from all configured sources.

        Raises:
            BackendError: The refresh failed.
        """
        ...

    @abstractmethod
    def is_locked(self) -> bool:
        """Return whether another process holds the package manager's locks."""
        ...

    @abstractmethod
    def search(self, query: str, channel: Optional[str] = None) -> List[Tuple[str, str]]:
        """Search package names and descriptions.

        Args:
            query: Search expression.
            channel: When given, keep only packages whose candidate comes
                from this release archive.

        Returns:
            ``(name, description)`` pairs.
        """
        ...

    @abstractmethod
    def upgrade_system(self, non_interactive: bool = False) -> None:
        """Upgrade all installed packages according to the current pins.

        Raises:
            BackendError: The upgrade failed.
        """
        ...

    @abstractmethod
    def autoremove(self, non_interactive: bool = False) -> None:
        """Remove automatically installed packages that are no longer needed.

        Raises:
            BackendError: The cleanup failed.
        """
        ...

    @abstractmethod
    def broken_packages(self) -> List[str]:
        """Return the installed packages whose dependencies are unmet.

        Raises:
            BackendError: The package manager could not be queried.
        """
        ...
