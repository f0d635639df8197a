from __future__ import annotations

import re

from tutor_import.models.report import ImportReport
from tutor_import.services.summary import render_summary_line

SUMMARY_PATTERN = re.compile(
    r"^SUMMARY rows=(\d+) valid=(\d+) invalid=(\d+) success=(\d+) partial=(\d+) "
    r"failed=(\d+) warnings=(\d+) not_attempted=(\d+) status=([a-z_]+)$"
)


def _report(**overrides) -> ImportReport:
    values = dict(
        total_records=100, valid_count=98, invalid_count=2, attempted_count=98,
        success_count=97, partial_count=3, error_count=1, warning_count=12,
        not_attempted_count=0, status="completed",
    )
    values.update(overrides)
    return ImportReport(**values)


def test_render_summary_line_matches_format():
    line = render_summary_line(_report())
    m = SUMMARY_PATTERN.match(line)
    assert m, line
    assert m.groups() == ("100", "98", "2", "97", "3", "1", "12", "0", "completed")


def test_render_summary_line_preview():
    line = render_summary_line(_report(attempted_count=0, success_count=0, partial_count=0,
                                       error_count=0, status="preview"))
    assert line.endswith("success=0 partial=0 failed=0 warnings=12 not_attempted=0 status=preview")


def test_render_summary_line_aborted():
    line = render_summary_line(_report(not_attempted_count=40, status="aborted_timeout"))
    assert SUMMARY_PATTERN.match(line)
    assert "not_attempted=40 status=aborted_timeout" in line
