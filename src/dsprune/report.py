from __future__ import annotations

import json
from dataclasses import asdict

from dsprune.models import Outcome, PruneReport

MEGABYTE = 1_048_576
PROBLEM_ACTIONS = {"error", "warning", "partial"}


def format_size(size: int) -> str:
    return f"{size / MEGABYTE:.2f} MB"


def format_outcome(outcome: Outcome) -> str:
    line = f"[{outcome.action}] {outcome.rel_path}"
    details = []
    if outcome.reason:
        details.append(outcome.reason)
    if outcome.action == "removed" and outcome.kind != "dir":
        details.append(format_size(outcome.size))
    if outcome.message:
        details.append(outcome.message)
    if details:
        line += f" ({', '.join(details)})"
    return line


def render_summary(report: PruneReport) -> str:
    lines = []
    if report.dry_run:
        lines.append("Dry-run: nothing was deleted.")
    if report.interrupted:
        lines.append("Interrupted: the report below is partial.")
    lines.extend(
        [
            f"Installation: {report.root}",
            f"Total files removed: {report.files_removed}",
            f"Total directories removed: {report.dirs_removed}",
            f"Total size removed: {format_size(report.bytes_reclaimed)}",
            f"Files kept: {report.files_kept}",
        ]
    )
    if report.archives_rewritten:
        lines.append(
            f"Archive members removed: {report.archive_members_removed} "
            f"from {report.archives_rewritten} archives "
            f"({format_size(report.archive_bytes_reclaimed)})"
        )
    lines.append(f"Errors: {report.errors}")
    if report.warnings:
        lines.append(f"Warnings: {report.warnings}")
    return "\n".join(lines)


def render_problems(report: PruneReport) -> str:
    """List entries that were left alone because something went wrong."""
    lines = [
        format_outcome(outcome)
        for outcome in report.outcomes
        if outcome.action in PROBLEM_ACTIONS
    ]
    return "\n".join(lines)


def report_to_json(report: PruneReport) -> str:
    return json.dumps(asdict(report), indent=2, sort_keys=True)
