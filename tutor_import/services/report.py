from __future__ import annotations

from collections.abc import Sequence

from ..models.outcome import BatchResult, BatchStatus, OutcomeKind
from ..models.record import ParsedRecord
from ..models.report import ImportReport, ReportEntry

"""Import report aggregation (pure; no I/O)."""

__all__ = [
    "build_report",
]


def build_report(records: Sequence[ParsedRecord], batch: BatchResult | None = None) -> ImportReport:
    """Aggregate validation results and (optionally) persistence outcomes.

    Without a batch the report describes a preview: nothing attempted, status
    "preview". errors holds invalid rows and failed writes, sorted by row then
    message; warningCount counts rows with at least one validation or
    persistence warning. A batch that stopped early carries its reason in
    abort_reason; errors stays row-scoped.
    """
    invalid = [r for r in records if not r.is_valid]
    invalid_entries = sorted(
        ReportEntry(r.row_number, message) for r in invalid for message in r.errors
    )

    warned_rows = {r.row_number for r in records if r.warnings}
    outcome_errors: list[ReportEntry] = []
    partial_entries: list[ReportEntry] = []
    success = partial = failed = attempted = not_attempted = 0
    status = "preview"
    abort_reason: str | None = None
    if batch is not None:
        status = batch.status.value
        attempted = batch.attempted
        not_attempted = len(batch.not_attempted_rows)
        for outcome in batch.outcomes:
            if outcome.warnings:
                warned_rows.add(outcome.row_number)
            if outcome.kind is OutcomeKind.ERROR:
                failed += 1
                outcome_errors.append(ReportEntry(outcome.row_number, outcome.message or "failed"))
            else:
                success += 1
                if outcome.kind is OutcomeKind.PARTIAL:
                    partial += 1
                    partial_entries.append(
                        ReportEntry(outcome.row_number, outcome.message or "partially saved")
                    )
        if batch.status is not BatchStatus.COMPLETED:
            abort_reason = batch.fatal_message

    return ImportReport(
        total_records=len(records),
        valid_count=len(records) - len(invalid),
        invalid_count=len(invalid),
        attempted_count=attempted,
        success_count=success,
        partial_count=partial,
        error_count=failed,
        warning_count=len(warned_rows),
        not_attempted_count=not_attempted,
        status=status,
        abort_reason=abort_reason,
        errors=sorted(invalid_entries + outcome_errors),
        invalid_rows=invalid_entries,
        partial_rows=sorted(partial_entries),
    )
