from __future__ import annotations

from dataclasses import dataclass, field

"""Upload-side models: one UploadedRow per physical data row of the file.

The row_number is the 1-based position of the data row in the source file
(header excluded). Blank rows are dropped by the reader but still counted, so
numbers always point back at the operator's spreadsheet.
"""

__all__ = [
    "UploadedRow",
    "ParseResult",
]


@dataclass(frozen=True)
class UploadedRow:
    """Header-keyed string values taken directly from a parsed row."""
    row_number: int  # 1-based data row position
    values: dict[str, str]  # header -> trimmed cell text ("" when empty)

    def get(self, header: str, default: str | None = None) -> str | None:
        return self.values.get(header, default)


@dataclass(frozen=True)
class ParseResult:
    """Output of the tabular reader."""
    rows: list[UploadedRow]
    headers: list[str]
    warnings: list[str] = field(default_factory=list)  # row-level anomalies, parsing continued

    @property
    def row_count(self) -> int:
        return len(self.rows)
