"""APT preference pins for rolling packages.

:class:`PreferenceSynthesizer` creates and removes the per-package
preference files under ``/etc/apt/preferences.d``. File names are derived
from the package name, and every name is re-validated and every derived
path checked to lie inside the preference directory before anything is
written or deleted, whatever the caller has already checked.

The synthesizer never touches the global preferences file; that file is
written once by :mod:`rollkeeper.core.bootstrap`.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import List, Optional

from rollkeeper.constants import (
    GLOBAL_PREFERENCES_FILENAME,
    PREFERENCE_PREFIX,
    REQUIRED_PIN_FIELDS,
    SAFE_FILENAME_PATTERN,
    UNSTABLE_CHANNEL,
)
from rollkeeper.exceptions import FileOperationError, ValidationError
from rollkeeper.models.package import validate_package_name
from rollkeeper.models.pin import PreferencePin, missing_required_fields
from rollkeeper.utils.filesystem import (
    safe_read_file,
    safe_remove_file,
    safe_write_file,
    validate_path,
)
from rollkeeper.utils.logger import get_logger

logger = get_logger("preferences")

__all__ = ["PreferenceSynthesizer", "sanitize_identifier"]

_UNSAFE_RE = re.compile(SAFE_FILENAME_PATTERN)


def sanitize_identifier(name: str) -> str:
    """Strip every character outside ``[a-zA-Z0-9+._-]`` from *name*."""
    return _UNSAFE_RE.sub("", name)


class PreferenceSynthesizer:
    """Writes and removes per-package APT pin files.

    Args:
        directory: APT preferences directory.
        prefix: File name prefix shared by all managed pin files.
        channel: Release archive pins point at.
    """

    def __init__(
        self,
        directory: Path,
        *,
        prefix: str = PREFERENCE_PREFIX,
        channel: str = UNSTABLE_CHANNEL,
    ) -> None:
        self.directory = Path(directory)
        self.prefix = prefix
        self.channel = channel

    @property
    def global_file(self) -> Path:
        return self.directory / GLOBAL_PREFERENCES_FILENAME

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def path_for(self, name: str) -> Path:
        """Return the pin file path for *name*.

        Raises:
            ValidationError: *name* is unsafe, or its pin file would be the
                global preferences file or fall outside the directory.
        """
        validate_package_name(name, operation="preference")
        identifier = sanitize_identifier(name)
        candidate = self.directory / f"{self.prefix}{identifier}"

        try:
            resolved = validate_path(candidate, base_dir=self.directory)
        except FileOperationError as exc:
            raise ValidationError(
                "Invalid preference file path generated",
                package_name=name,
                operation="preference",
            ) from exc

        if not resolved.name.startswith(self.prefix) or resolved.parent != validate_path(
            self.directory
        ):
            raise ValidationError(
                "Invalid preference file path generated",
                package_name=name,
                operation="preference",
            )
        if resolved.name == GLOBAL_PREFERENCES_FILENAME:
            raise ValidationError(
                "Package name collides with the global preferences file",
                package_name=name,
                operation="preference",
            )
        return candidate

    def package_for(self, path: Path) -> Optional[str]:
        """Return the package name a managed pin file belongs to."""
        name = Path(path).name
        if not name.startswith(self.prefix) or name == GLOBAL_PREFERENCES_FILENAME:
            return None
        return name[len(self.prefix) :]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create(self, name: str, priority: int) -> Path:
        """Write the pin file for *name* at *priority*, replacing any existing one.

        Raises:
            ValidationError: *name* is unsafe.
            FileOperationError: The pin file could not be written.
        """
        path = self.path_for(name)
        pin = PreferencePin(package=name, priority=int(priority), channel=self.channel)
        safe_write_file(path, pin.render())
        logger.debug("Created preference file for %s (priority %d)", name, int(priority))
        return path

    def remove(self, name: str) -> bool:
        """Delete the pin file for *name*; a missing file is not an error.

        Returns:
            ``True`` if a file was deleted.
        """
        path = self.path_for(name)
        removed = safe_remove_file(path)
        if removed:
            logger.debug("Removed preference file for %s", name)
        return removed

    def remove_file(self, path: Path) -> bool:
        """Delete a managed pin file by path (used for orphaned files)."""
        target = validate_path(path, base_dir=self.directory)
        if self.package_for(target) is None:
            raise ValidationError(
                f"Refusing to remove unmanaged file: {target.name}",
                operation="preference",
            )
        return safe_remove_file(target)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def exists(self, name: str) -> bool:
        return self.path_for(name).is_file()

    def read(self, name: str) -> Optional[PreferencePin]:
        """Parse the pin file for *name*; ``None`` if absent or malformed."""
        path = self.path_for(name)
        if not path.is_file():
            return None
        return PreferencePin.parse(safe_read_file(path))

    def priority_of(self, name: str) -> Optional[int]:
        pin = self.read(name)
        return int(pin.priority) if pin else None

    def managed_files(self) -> List[Path]:
        """Return every pin file in the directory, excluding the global file."""
        if not self.directory.is_dir():
            return []
        return sorted(
            p
            for p in self.directory.glob(f"{self.prefix}*")
            if p.is_file() and p != self.global_file
        )

    def missing_fields(self, path: Path) -> List[str]:
        """Return the required stanza fields absent from *path*."""
        return missing_required_fields(safe_read_file(path), list(REQUIRED_PIN_FIELDS))

    def is_well_formed(self, path: Path) -> bool:
        return not self.missing_fields(path)
