"""
Dependency edge data model for rollkeeper.

A :class:`DependencyEdge` records that ``dependency`` is rolling because
``parent`` pulled it in. Several edges may share the same dependency, one
per parent; the number of edges is the dependency's reference count.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict

from rollkeeper.exceptions import ValidationError
from rollkeeper.models.package import validate_package_name

#: Separator used in the on-disk ``dependency:parent`` encoding.
EDGE_SEPARATOR = ":"


@dataclass(frozen=True)
class DependencyEdge:
    """A ``dependency -> parent`` relation.

    Args:
        dependency: Package pulled in from unstable.
        parent: Rolling package whose dependency scan found it.
    """

    dependency: str
    parent: str

    def __post_init__(self) -> None:
        validate_package_name(self.dependency)
        validate_package_name(self.parent)

    def to_line(self) -> str:
        """Encode the edge as one line of the dependency file."""
        return f"{self.dependency}{EDGE_SEPARATOR}{self.parent}"

    @classmethod
    def from_line(cls, line: str) -> "DependencyEdge":
        """Decode one ``dependency:parent`` line.

        Raises:
            ValidationError: The line is not a pair of valid package names.
        """
        dependency, sep, parent = line.strip().partition(EDGE_SEPARATOR)
        if not sep or not dependency or not parent:
            raise ValidationError(f"Malformed dependency entry: {line.strip()!r}")
        return cls(dependency=dependency, parent=parent)

    def to_json(self) -> Dict[str, str]:
        return {"dependency": self.dependency, "parent": self.parent}

    def __str__(self) -> str:
        return f"{self.dependency} (dep of {self.parent})"
