"""
Rolling package data model for rollkeeper.

This module defines the package-name policy every entry point applies
before a name is allowed anywhere near a file path or a command line, and
the :class:`RollingPackage` view combining registry, dependency graph and
installation state for display.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from rollkeeper.constants import (
    FORBIDDEN_NAME_SEQUENCES,
    MAX_PACKAGE_NAME_LENGTH,
    PACKAGE_NAME_PATTERN,
)
from rollkeeper.exceptions import ValidationError
from rollkeeper.utils.version_utils import get_update_type

_NAME_RE = re.compile(PACKAGE_NAME_PATTERN)
_BAD_PATTERN_RE = re.compile(r"(^-|--|-$|^\.|\.$)")


def validate_package_name(name: str, *, operation: Optional[str] = None) -> str:
    """Validate a package name against rollkeeper's name policy.

    Accepted names start with an alphanumeric character, contain only
    alphanumerics and ``+._-``, are at most 80 characters long, and never
    contain ``..``, ``/``, ``;``, ``|``, doubled hyphens, or a leading or
    trailing hyphen or dot.

    Args:
        name: Candidate package name.
        operation: Operation name recorded on the raised error.

    Returns:
        The name, unchanged, when it is acceptable.

    Raises:
        ValidationError: The name violates the policy.

    Example::

        >>> validate_package_name("python3-dev")
        'python3-dev'
        >>> validate_package_name("../etc/passwd")
        Traceback (most recent call last):
        ...
        rollkeeper.exceptions.ValidationError: ...
    """
    if not isinstance(name, str) or not name:
        raise ValidationError(
            "Package name must be a non-empty string",
            package_name=str(name) if name else None,
            operation=operation,
        )

    if len(name) > MAX_PACKAGE_NAME_LENGTH:
        raise ValidationError(
            f"Package name too long ({len(name)} > {MAX_PACKAGE_NAME_LENGTH})",
            package_name=name,
            operation=operation,
        )

    if any(seq in name for seq in FORBIDDEN_NAME_SEQUENCES):
        raise ValidationError(
            f"Package name contains invalid characters: {name}",
            package_name=name,
            operation=operation,
        )

    if not _NAME_RE.fullmatch(name):
        raise ValidationError(
            f"Invalid package name: {name}",
            package_name=name,
            operation=operation,
        )

    if _BAD_PATTERN_RE.search(name):
        raise ValidationError(
            f"Package name contains invalid patterns: {name}",
            package_name=name,
            operation=operation,
        )

    return name


def is_valid_package_name(name: str) -> bool:
    """Return ``True`` if *name* passes :func:`validate_package_name`."""
    try:
        validate_package_name(name)
    except ValidationError:
        return False
    return True


@dataclass
class RollingPackage:
    """A package tracked against the unstable channel.

    Attributes:
        name: Validated package name.
        is_primary: ``True`` when the user rolled the package explicitly,
            ``False`` when it was pulled in as a dependency.
        parents: Packages that pulled this one in (empty for primaries).
        installed_version: Version reported by dpkg, if installed.
        candidate_version: Version offered by the unstable channel.
        priority: Pin priority read back from the pin file, if present.
    """

    name: str
    is_primary: bool = True
    parents: List[str] = field(default_factory=list)
    installed_version: Optional[str] = None
    candidate_version: Optional[str] = None
    priority: Optional[int] = None

    def __post_init__(self) -> None:
        validate_package_name(self.name)
        self.parents = sorted(set(self.parents))

    @property
    def is_installed(self) -> bool:
        return self.installed_version is not None

    @property
    def update_type(self) -> str:
        """Classification of installed -> unstable candidate."""
        return get_update_type(self.installed_version, self.candidate_version)

    def has_update(self) -> bool:
        return self.update_type not in ("same", "unknown", "downgrade") and (
            self.candidate_version is not None
        )

    def describe_origin(self) -> str:
        """Return ``"primary"`` or ``"dep of: a, b"``."""
        if self.is_primary or not self.parents:
            return "primary"
        return f"dep of: {', '.join(self.parents)}"

    def to_json(self) -> Dict[str, Any]:
        """Return a JSON-serializable representation."""
        return {
            "name": self.name,
            "primary": self.is_primary,
            "parents": list(self.parents),
            "installed_version": self.installed_version,
            "candidate_version": self.candidate_version,
            "update_type": self.update_type,
            "priority": self.priority,
        }
