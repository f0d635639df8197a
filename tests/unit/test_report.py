from __future__ import annotations

from tutor_import.models.outcome import BatchResult, BatchStatus, OutcomeKind, RecordOutcome
from tutor_import.models.record import ParsedRecord
from tutor_import.models.report import ReportEntry
from tutor_import.services.report import build_report


def _rec(row: int, errors=(), warnings=()) -> ParsedRecord:
    return ParsedRecord(row, {}, {}, errors=tuple(errors), warnings=tuple(warnings))


def test_preview_report():
    records = [
        _rec(1),
        _rec(2, errors=["Nama Lengkap is required", "Email Aktif is required"]),
        _rec(3, warnings=["Agama: unknown option"]),
    ]
    report = build_report(records)
    assert report.status == "preview"
    assert (report.total_records, report.valid_count, report.invalid_count) == (3, 2, 1)
    assert (report.attempted_count, report.success_count, report.error_count) == (0, 0, 0)
    assert report.warning_count == 1
    assert report.invalid_rows == [
        ReportEntry(2, "Email Aktif is required"),
        ReportEntry(2, "Nama Lengkap is required"),
    ]
    assert report.errors == report.invalid_rows


def test_final_report_counts_and_ordering():
    records = [_rec(1), _rec(2, errors=["Email Aktif is required"]), _rec(3), _rec(4), _rec(5)]
    batch = BatchResult(
        outcomes=[
            RecordOutcome(1, OutcomeKind.SUCCESS, user_id="u1"),
            RecordOutcome(3, OutcomeKind.ERROR, message="email 'x' is already registered"),
            RecordOutcome(4, OutcomeKind.PARTIAL, user_id="u4", message="saved without: banking",
                          warnings=("banking not saved: boom",), failed_parts=("banking",)),
            RecordOutcome(5, OutcomeKind.SUCCESS, user_id="u5"),
        ],
        status=BatchStatus.COMPLETED,
        attempted=4,
    )
    report = build_report(records, batch)
    assert report.status == "completed"
    assert report.attempted_count == 4
    assert report.success_count == 3
    assert report.partial_count == 1
    assert report.error_count == 1
    assert report.warning_count == 1
    assert report.not_attempted_count == 0
    assert report.errors == [
        ReportEntry(2, "Email Aktif is required"),
        ReportEntry(3, "email 'x' is already registered"),
    ]
    assert report.partial_rows == [ReportEntry(4, "saved without: banking")]


def test_warning_rows_counted_once():
    records = [_rec(1, warnings=["a", "b"])]
    batch = BatchResult(
        outcomes=[RecordOutcome(1, OutcomeKind.SUCCESS, warnings=("role missing",))],
        status=BatchStatus.COMPLETED,
        attempted=1,
    )
    assert build_report(records, batch).warning_count == 1


def test_timeout_reason_kept_out_of_row_errors():
    records = [_rec(1), _rec(2), _rec(3)]
    batch = BatchResult(
        outcomes=[RecordOutcome(1, OutcomeKind.SUCCESS)],
        status=BatchStatus.ABORTED_TIMEOUT,
        attempted=1,
        not_attempted_rows=[2, 3],
        fatal_message="batch time budget of 600s exhausted; 2 rows not attempted",
    )
    report = build_report(records, batch)
    assert report.status == "aborted_timeout"
    assert report.not_attempted_count == 2
    assert report.error_count == 0
    assert report.errors == []
    assert all(1 <= e.row <= report.total_records for e in report.errors)
    assert report.abort_reason == "batch time budget of 600s exhausted; 2 rows not attempted"
    assert report.to_dict()["abortReason"] == report.abort_reason


def test_fatal_report_counts_failing_row():
    records = [_rec(1), _rec(2), _rec(3)]
    batch = BatchResult(
        outcomes=[RecordOutcome(1, OutcomeKind.SUCCESS),
                  RecordOutcome(2, OutcomeKind.ERROR, message="database connection lost")],
        status=BatchStatus.ABORTED_FATAL,
        attempted=2,
        not_attempted_rows=[3],
        fatal_message="database connection lost",
    )
    report = build_report(records, batch)
    assert report.status == "aborted_fatal"
    assert report.error_count == 1
    assert report.not_attempted_count == 1
    assert report.errors == [ReportEntry(2, "database connection lost")]
    assert report.abort_reason == "database connection lost"


def test_to_dict_uses_camel_case():
    report = build_report([_rec(1, errors=["x"])])
    data = report.to_dict()
    assert data["invalidCount"] == 1
    assert data["invalidRows"] == [{"row": 1, "message": "x"}]
    assert data["errors"] == [{"row": 1, "message": "x"}]
    assert data["abortReason"] is None
