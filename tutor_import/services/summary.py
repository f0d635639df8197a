from __future__ import annotations

from ..models.report import ImportReport

"""SUMMARY line rendering.

Format (single line, space separated key=value pairs):
SUMMARY rows={total} valid={valid} invalid={invalid} success={success}
partial={partial} failed={failed} warnings={warnings} not_attempted={n} status={status}
"""

__all__ = [
    "render_summary_line",
]


def render_summary_line(report: ImportReport) -> str:
    """Render the SUMMARY line for an ImportReport.

    Examples:
        >>> r = ImportReport(total_records=3, valid_count=2, invalid_count=1, attempted_count=2,
        ...                  success_count=2, partial_count=0, error_count=0, warning_count=1,
        ...                  not_attempted_count=0, status="completed")
        >>> render_summary_line(r)
        'SUMMARY rows=3 valid=2 invalid=1 success=2 partial=0 failed=0 warnings=1 not_attempted=0 status=completed'
    """
    return (
        f"SUMMARY rows={report.total_records} "
        f"valid={report.valid_count} "
        f"invalid={report.invalid_count} "
        f"success={report.success_count} "
        f"partial={report.partial_count} "
        f"failed={report.error_count} "
        f"warnings={report.warning_count} "
        f"not_attempted={report.not_attempted_count} "
        f"status={report.status}"
    )
