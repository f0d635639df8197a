from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

"""Import report shape handed to the operator UI."""

__all__ = [
    "ReportEntry",
    "ImportReport",
]


@dataclass(frozen=True, order=True)
class ReportEntry:
    row: int
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {"row": self.row, "message": self.message}


@dataclass(frozen=True)
class ImportReport:
    total_records: int  # parsed rows
    valid_count: int
    invalid_count: int
    attempted_count: int  # valid rows the orchestrator tried
    success_count: int  # SUCCESS + PARTIAL
    partial_count: int
    error_count: int  # attempted rows that failed
    warning_count: int  # rows carrying at least one warning
    not_attempted_count: int
    status: str
    abort_reason: str | None = None  # why an aborted batch stopped
    errors: list[ReportEntry] = field(default_factory=list)
    invalid_rows: list[ReportEntry] = field(default_factory=list)
    partial_rows: list[ReportEntry] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalRecords": self.total_records,
            "validCount": self.valid_count,
            "invalidCount": self.invalid_count,
            "attemptedCount": self.attempted_count,
            "successCount": self.success_count,
            "partialCount": self.partial_count,
            "errorCount": self.error_count,
            "warningCount": self.warning_count,
            "notAttemptedCount": self.not_attempted_count,
            "status": self.status,
            "abortReason": self.abort_reason,
            "errors": [e.to_dict() for e in self.errors],
            "invalidRows": [e.to_dict() for e in self.invalid_rows],
            "partialRows": [e.to_dict() for e in self.partial_rows],
        }
