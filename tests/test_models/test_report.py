from __future__ import annotations

import pytest

from rollkeeper.models.report import CheckName, CheckReport, Finding, UpgradeReport


@pytest.mark.unit
class TestCheckReport:
    """Tests for CheckReport."""

    def test_empty_report_is_clean(self) -> None:
        """Test a report without findings is clean."""
        report = CheckReport()

        assert report.issues == 0
        assert report.is_clean is True
        assert report.unresolved == 0

    def test_findings_share_one_counter(self) -> None:
        """Test findings from different passes add to the same counter."""
        report = CheckReport()
        report.add(Finding(CheckName.EDGE_ORPHANS, "orphan", "golang-src"))
        report.add(Finding(CheckName.PIN_PRESENCE, "missing pin", "golang", repaired=True))

        assert report.issues == 2
        assert report.is_clean is False
        assert report.unresolved == 1
        assert [f.package for f in report.by_check(CheckName.EDGE_ORPHANS)] == ["golang-src"]

    def test_to_json(self) -> None:
        """Test JSON output lists passes and findings."""
        report = CheckReport(repair=True)
        report.passes_run.append(CheckName.PIN_ORPHANS)
        report.add(
            Finding(CheckName.PIN_ORPHANS, "Orphaned preference file: rollkeeper-x", "x", True)
        )

        data = report.to_json()

        assert data["clean"] is False
        assert data["issues"] == 1
        assert data["unresolved"] == 0
        assert data["passes"] == ["pin-orphans"]
        assert data["findings"][0]["check"] == "pin-orphans"
        assert data["findings"][0]["repaired"] is True

    def test_finding_str(self) -> None:
        """Test findings render with their pass name."""
        finding = Finding(CheckName.INSTALL_STATE, "Rolling package not installed: vim")

        assert str(finding) == "[install-state] Rolling package not installed: vim"
        assert str(Finding(CheckName.PIN_FORMAT, "x", repaired=True)).endswith("(repaired)")


@pytest.mark.unit
class TestUpgradeReport:
    """Tests for UpgradeReport."""

    def test_all_ok(self) -> None:
        """Test the success summary."""
        report = UpgradeReport(upgraded=["golang", "hugo"])

        assert report.ok is True
        assert report.total == 2
        assert report.summary() == "All 2 rolling packages upgraded successfully"

    def test_with_failures(self) -> None:
        """Test the tally when some packages fail."""
        report = UpgradeReport(upgraded=["golang"], failed=[("hugo", "boom")])

        assert report.ok is False
        assert report.total == 2
        assert report.summary() == "Upgraded 1 packages, but 1 failed"
