from __future__ import annotations

import json

from dsprune.models import Outcome, PruneReport, Verdict
from dsprune.report import format_size, render_problems, render_summary, report_to_json


def _report() -> PruneReport:
    report = PruneReport(root="/srv/iw4x")
    report.record(Outcome("images/hud.iwi", "file", Verdict.REMOVE, "removed", size=3 * 1_048_576))
    report.record(Outcome("images", "dir", Verdict.REMOVE, "removed", reason="emptied"))
    report.record(Outcome("iw4x.exe", "file", Verdict.KEEP, "kept", reason="binary"))
    report.record(
        Outcome("sound/gun.wav", "file", Verdict.REMOVE, "error", reason="audio", message="denied")
    )
    return report


def test_record_updates_counts() -> None:
    report = _report()

    assert report.files_removed == 1
    assert report.dirs_removed == 1
    assert report.bytes_reclaimed == 3 * 1_048_576
    assert report.files_kept == 1
    assert report.errors == 1
    assert [o.rel_path for o in report.removed] == ["images/hud.iwi", "images"]


def test_summary() -> None:
    report = _report()
    report.interrupted = True

    summary = render_summary(report)

    assert "Interrupted" in summary
    assert "Total files removed: 1" in summary
    assert "Total size removed: 3.00 MB" in summary
    assert "Errors: 1" in summary
    assert "Archive members" not in summary


def test_problems_lists_only_failures() -> None:
    problems = render_problems(_report())

    assert problems == "[error] sound/gun.wav (audio, denied)"


def test_json_uses_plain_values() -> None:
    data = json.loads(report_to_json(_report()))

    assert data["outcomes"][0]["verdict"] == "remove"
    assert data["root"] == "/srv/iw4x"


def test_format_size() -> None:
    assert format_size(0) == "0.00 MB"
    assert format_size(1_572_864) == "1.50 MB"
