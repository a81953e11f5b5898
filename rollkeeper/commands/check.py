"""Check command implementation for rollkeeper.

Runs the consistency checker over the registry, the dependency graph, the
preference pins and the installed state, and reports every finding. With
``--repair`` the checker also fixes what it safely can; repairing writes
files, so it needs root and the process lock like any other mutation.

Typical usage::

    $ rollkeeper check
    $ sudo rollkeeper check --repair
    $ rollkeeper check --format json --skip-network

Exits with 1 when unresolved issues remain.
"""

from __future__ import annotations

import sys
import json
from typing import Any, Dict, List

import click
from rich.markup import escape

from rollkeeper.commands import session
from rollkeeper.context import RollKeeperContext, pass_context
from rollkeeper.exceptions import RollKeeperError
from rollkeeper.models import CheckReport, Finding
from rollkeeper.utils import (
    format_finding_status,
    get_logger,
    print_error,
    print_info,
    print_success,
    print_table,
    print_warning,
)

logger = get_logger("commands.check")


@click.command()
@click.option("--repair", is_flag=True, help="Fix orphaned and missing records where possible.")
@click.option(
    "--skip-network",
    is_flag=True,
    help="Do not probe the unstable repository.",
)
@click.option(
    "--format",
    "-f",
    type=click.Choice(["table", "simple", "json"], case_sensitive=False),
    default="table",
    help="Output format.",
)
@pass_context
def check(ctx: RollKeeperContext, repair: bool, skip_network: bool, format: str) -> None:
    """Check consistency between rolling packages, pins and the system."""
    try:
        with session(ctx, dry_run=not repair):
            report = ctx.checker(probe=not skip_network).run(repair=repair)
    except RollKeeperError as e:
        print_error(f"{e}")
        sys.exit(1)

    if format == "json":
        click.echo(json.dumps(report.to_json(), indent=2))
    elif format == "simple":
        _display_simple(report.findings)
    else:
        _display_table(report.findings)

    if format != "json":
        _display_summary(report)

    sys.exit(1 if report.unresolved else 0)


# ---------------------------------------------------------------------------
# Display renderers
# ---------------------------------------------------------------------------


def _display_table(findings: List[Finding]) -> None:
    data = [
        {
            "Check": f.check.value,
            "Package": f.package or "[dim]-[/dim]",
            "Issue": escape(f.message),
            "Status": format_finding_status(f.repaired),
        }
        for f in findings
    ]

    column_styles: Dict[str, Dict[str, Any]] = {
        "Check": {"style": "bold", "no_wrap": True},
        "Package": {"style": "cyan", "no_wrap": True},
        "Issue": {"justify": "left", "no_wrap": False},
        "Status": {"justify": "center"},
    }

    print_table(data, title="Consistency Check", column_styles=column_styles)


def _display_simple(findings: List[Finding]) -> None:
    for finding in findings:
        if finding.repaired:
            print_info(str(finding))
        else:
            print_warning(str(finding))


def _display_summary(report: CheckReport) -> None:
    if report.is_clean:
        print_success("System check completed - no issues found")
        return
    repaired = report.issues - report.unresolved
    if repaired:
        print_info(f"Repaired {repaired} issue(s)")
    if report.unresolved:
        print_warning(f"System check completed - {report.unresolved} issue(s) found")
        if not report.repair:
            print_info("Run 'rollkeeper check --repair' as root to fix what can be fixed")
