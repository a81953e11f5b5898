"""
Result models for rollkeeper's bulk operations.

:class:`CheckReport` collects the findings of a consistency check and
:class:`UpgradeReport` tallies a bulk upgrade sweep. Neither raises on
failure; callers inspect them and decide how to report.
"""

from __future__ import annotations

from enum import Enum
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple


class CheckName(str, Enum):
    """Identifiers of the consistency checker's passes."""

    INITIALIZATION = "initialization"
    EDGE_ORPHANS = "edge-orphans"
    INSTALL_STATE = "install-state"
    BROKEN_DEPENDENCIES = "broken-dependencies"
    PIN_PRESENCE = "pin-presence"
    PIN_ORPHANS = "pin-orphans"
    PIN_FORMAT = "pin-format"
    REACHABILITY = "reachability"


@dataclass(frozen=True)
class Finding:
    """One issue found by a consistency check pass.

    Args:
        check: Pass that produced the finding.
        message: Human-readable description.
        package: Package the finding concerns, if any.
        repaired: ``True`` when the checker fixed the issue.
    """

    check: CheckName
    message: str
    package: Optional[str] = None
    repaired: bool = False

    def to_json(self) -> Dict[str, Any]:
        return {
            "check": self.check.value,
            "message": self.message,
            "package": self.package,
            "repaired": self.repaired,
        }

    def __str__(self) -> str:
        suffix = " (repaired)" if self.repaired else ""
        return f"[{self.check.value}] {self.message}{suffix}"


@dataclass
class CheckReport:
    """Accumulated results of a consistency check.

    Attributes:
        findings: Every issue found, in pass order.
        passes_run: Passes that completed, in order.
        repair: Whether the run was authorized to repair.
    """

    findings: List[Finding] = field(default_factory=list)
    passes_run: List[CheckName] = field(default_factory=list)
    repair: bool = False

    def add(self, finding: Finding) -> None:
        self.findings.append(finding)

    @property
    def issues(self) -> int:
        """The single issue counter shared by all passes."""
        return len(self.findings)

    @property
    def is_clean(self) -> bool:
        return self.issues == 0

    @property
    def unresolved(self) -> int:
        """Findings the run did not repair."""
        return sum(1 for f in self.findings if not f.repaired)

    def by_check(self, check: CheckName) -> List[Finding]:
        return [f for f in self.findings if f.check == check]

    def __iter__(self) -> Iterator[Finding]:
        return iter(self.findings)

    def to_json(self) -> Dict[str, Any]:
        return {
            "clean": self.is_clean,
            "issues": self.issues,
            "unresolved": self.unresolved,
            "repair": self.repair,
            "passes": [p.value for p in self.passes_run],
            "findings": [f.to_json() for f in self.findings],
        }


@dataclass
class UpgradeReport:
    """Tally of a bulk upgrade sweep.

    Attributes:
        upgraded: Packages upgraded successfully.
        failed: ``(package, reason)`` pairs for packages that failed.
    """

    upgraded: List[str] = field(default_factory=list)
    failed: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.upgraded) + len(self.failed)

    @property
    def ok(self) -> bool:
        return not self.failed

    def summary(self) -> str:
        if self.ok:
            return f"All {len(self.upgraded)} rolling packages upgraded successfully"
        return (
            f"Upgraded {len(self.upgraded)} packages, "
            f"but {len(self.failed)} failed"
        )
