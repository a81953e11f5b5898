"""
APT preference pin data model for rollkeeper.

Each rolling package owns one preference file holding two stanzas at the
same priority: one for the exact package name and one for the
``<name>*`` wildcard, so that split binary packages built from the same
source (``-dev``, ``-dbg``, ...) follow the same channel.
"""

from __future__ import annotations

import re
from enum import IntEnum
from dataclasses import dataclass
from typing import Dict, List, Optional

from rollkeeper.constants import (
    DEPENDENCY_PRIORITY,
    PRIMARY_PRIORITY,
    PROGRAM_NAME,
    UNSTABLE_CHANNEL,
)
from rollkeeper.exceptions import ValidationError
from rollkeeper.models.package import validate_package_name

_PRIORITY_RE = re.compile(r"^Pin-Priority:\s*(-?\d+)\s*$", re.MULTILINE)
_PACKAGE_RE = re.compile(r"^Package:\s*(\S+)\s*$", re.MULTILINE)
_RELEASE_RE = re.compile(r"^Pin:\s*release\s+a=(\S+)\s*$", re.MULTILINE)


class PinPriority(IntEnum):
    """Priority classes of rolling package pins.

    ``PRIMARY`` matches stable's own pin so the explicit choice wins;
    ``DEPENDENCY`` sits between stable (990) and unstable's default (200).
    """

    PRIMARY = PRIMARY_PRIORITY
    DEPENDENCY = DEPENDENCY_PRIORITY


@dataclass(frozen=True)
class PreferencePin:
    """A pin of one package (and its name-prefixed siblings) to a channel.

    Attributes:
        package: Package name the pin applies to.
        priority: Pin priority.
        channel: Release archive the pin targets.
    """

    package: str
    priority: int = PinPriority.PRIMARY
    channel: str = UNSTABLE_CHANNEL

    def __post_init__(self) -> None:
        validate_package_name(self.package)

    @property
    def is_primary(self) -> bool:
        return self.priority >= PinPriority.PRIMARY

    def render(self) -> str:
        """Render the preference file content.

        The output depends only on the pin's fields, so writing the same
        pin twice produces byte-identical files.
        """
        priority = int(self.priority)
        return (
            f"# APT Rolling Package: {self.package}\n"
            f"# Managed by {PROGRAM_NAME} - do not edit manually\n"
            "\n"
            f"Package: {self.package}\n"
            f"Pin: release a={self.channel}\n"
            f"Pin-Priority: {priority}\n"
            "\n"
            "# Also pin related packages with same name prefix\n"
            f"Package: {self.package}*\n"
            f"Pin: release a={self.channel}\n"
            f"Pin-Priority: {priority}\n"
        )

    @classmethod
    def parse(cls, content: str) -> Optional["PreferencePin"]:
        """Rebuild a pin from preference file content.

        Returns:
            The pin described by the first stanza, or ``None`` if the
            content lacks a package, release or priority line, or names
            a package (such as ``*``) that fails the name policy.
        """
        package = _PACKAGE_RE.search(content)
        release = _RELEASE_RE.search(content)
        priority = _PRIORITY_RE.search(content)
        if not (package and release and priority):
            return None
        try:
            return cls(
                package=package.group(1).rstrip("*"),
                priority=int(priority.group(1)),
                channel=release.group(1),
            )
        except ValidationError:
            return None

    def to_json(self) -> Dict[str, object]:
        return {
            "package": self.package,
            "priority": int(self.priority),
            "channel": self.channel,
        }


def missing_required_fields(content: str, required: List[str]) -> List[str]:
    """Return the required stanza fields that no line of *content* starts with."""
    lines = content.splitlines()
    return [
        field_name
        for field_name in required
        if not any(line.startswith(field_name) for line in lines)
    ]
